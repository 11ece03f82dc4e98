"""
Tests for the HTTP API.
"""

import pytest
from fastapi.testclient import TestClient
from stylesnap.config import Config
from stylesnap.container import DependencyContainer
from stylesnap.orchestrator import StyleExtractor
from stylesnap.web.main import create_app

from tests.helpers.fake_browser import FakeLease


@pytest.fixture
def lease():
    return FakeLease()


@pytest.fixture
def client(lease, fast_config):
    app = create_app(extractor=StyleExtractor(lease, fast_config))
    with TestClient(app) as test_client:
        yield test_client


class TestExtractEndpoint:
    def test_returns_snapshot(self, client, lease):
        response = client.post(
            "/extract",
            json={"url": "https://example.com/", "options": {"includeScreenshot": False}},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["metadata"]["elementCount"] == 3
        assert body["screenshot"] is None
        assert "#2563eb" in body["colorPalette"]
        assert lease.created == lease.closed == 1

    def test_invalid_url_is_bad_request(self, client):
        response = client.post("/extract", json={"url": "ftp://example.com/"})

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["error_type"] == "InvalidInputError"
        assert "HTTP and HTTPS" in detail["message"]

    def test_missing_url_is_rejected(self, client):
        assert client.post("/extract", json={}).status_code == 422


class TestOperationalEndpoints:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["active_extractions"] == 0

    def test_list_extractions(self, client):
        assert client.get("/extractions").json() == {"count": 0, "extractions": []}

    def test_cancel_unknown_extraction(self, client):
        assert client.delete("/extractions/extraction_missing").status_code == 404

    def test_metrics(self, client):
        client.post("/extract", json={"url": "https://example.com/", "options": {"includeScreenshot": False}})
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "stylesnap_extractions_total" in response.text

    def test_health_includes_container_status(self):
        app = create_app(container=DependencyContainer(config=Config()))
        with TestClient(app) as test_client:
            body = test_client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["container"]["is_running"] is True
        assert body["container"]["components"] == {"page_pool": True, "color_index": True}
