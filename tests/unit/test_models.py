"""
Tests for request validation and the snapshot wire shape.
"""

from datetime import datetime, timezone

import pytest
from stylesnap.errors import InvalidInputError
from stylesnap.models import (
    ElementAttributes,
    ElementStyles,
    ExtractionOptions,
    ExtractionRequest,
    Rect,
    Screenshot,
    SnapshotMetadata,
    StyleElementRecord,
    StyleSnapshot,
    Typography,
    Viewport,
    validate_url,
)


def _record(element_id: str) -> StyleElementRecord:
    return StyleElementRecord(
        id=element_id,
        name=".btn",
        type="button",
        text="Go",
        class_name="btn",
        rect=Rect(0, 0, 100, 30),
        styles=ElementStyles(color="rgb(0, 0, 0)", background_color="rgb(255, 255, 255)"),
        attributes=ElementAttributes(role="button"),
        selector="button.btn",
    )


class TestUrlValidation:
    @pytest.mark.parametrize("url", ["ftp://example.com", "file:///etc/passwd", "javascript:alert(1)", "", "   "])
    def test_rejects_non_http_urls(self, url):
        with pytest.raises(InvalidInputError):
            validate_url(url, [])

    def test_strips_whitespace(self):
        assert validate_url("  https://example.com/a  ", []) == "https://example.com/a"

    def test_local_hosts_allowed_without_allow_list(self):
        assert validate_url("http://localhost:3000/", []) == "http://localhost:3000/"

    def test_local_hosts_must_match_allow_list(self):
        with pytest.raises(InvalidInputError, match="allowed hosts"):
            validate_url("http://192.168.1.20/", ["staging.internal"])
        assert validate_url("http://localhost:3000/", ["localhost"]) == "http://localhost:3000/"

    def test_public_hosts_ignore_allow_list(self):
        assert validate_url("https://example.com/", ["localhost"]) == "https://example.com/"


class TestExtractionRequest:
    def test_defaults(self):
        request = ExtractionRequest.from_options("https://example.com")
        assert request.viewport == Viewport(1920, 1080)
        assert request.include_screenshot is True
        assert request.authentication is None
        assert request.timeout is None
        assert request.host == "example.com"

    def test_camel_case_options_and_millisecond_timeouts(self):
        request = ExtractionRequest.from_options(
            "https://example.com",
            {
                "viewport": {"width": 390, "height": 844},
                "includeScreenshot": False,
                "timeout": 45000,
                "stabilityTimeout": 2500,
                "authentication": {"username": "ada", "password": "s3cret", "targetUrl": "https://example.com/app"},
                "screenshot": {"type": "jpeg", "quality": 60},
            },
        )
        assert request.viewport == Viewport(390, 844)
        assert request.include_screenshot is False
        assert request.timeout == 45.0
        assert request.stability_timeout == 2.5
        assert request.authentication.target_url == "https://example.com/app"
        assert request.screenshot.image_type == "jpeg"
        assert request.screenshot.quality == 60

    def test_password_is_not_in_repr(self):
        request = ExtractionRequest.from_options(
            "https://example.com", {"authentication": {"username": "ada", "password": "s3cret"}}
        )
        assert "s3cret" not in repr(request)

    def test_accepts_parsed_options(self):
        options = ExtractionOptions(include_screenshot=False)
        assert ExtractionRequest.from_options("https://example.com", options).include_screenshot is False

    @pytest.mark.parametrize(
        "options",
        [
            {"authentication": {"username": "ada", "password": ""}},
            {"authentication": {"username": "   ", "password": "x"}},
            {"authentication": {"username": "ada"}},
            {"authentication": {"username": "ada", "password": "x", "targetUrl": "ftp://example.com"}},
            {"viewport": {"width": 0, "height": 800}},
            {"timeout": -1},
        ],
    )
    def test_malformed_options_are_invalid_input(self, options):
        with pytest.raises(InvalidInputError):
            ExtractionRequest.from_options("https://example.com", options)


class TestStyleSnapshot:
    def _snapshot(self, elements, element_count=None, screenshot=None):
        return StyleSnapshot(
            url="https://example.com",
            elements=elements,
            color_palette=["#000000", "#ffffff"],
            typography=Typography(font_families=["Inter"], line_heights=["24px"]),
            spacing=["8px"],
            border_radius=["6px"],
            metadata=SnapshotMetadata(
                title="Example",
                url="https://example.com",
                element_count=len(elements) if element_count is None else element_count,
                extractor_version="test",
            ),
            screenshot=screenshot,
            duration_ms=1234,
        )

    def test_element_count_must_match(self):
        with pytest.raises(ValueError):
            self._snapshot([_record("element-0-0-0")], element_count=2)

    def test_to_dict_uses_camel_case(self):
        screenshot = Screenshot(data="aGk=", image_type="png", timestamp=datetime(2024, 1, 1, tzinfo=timezone.utc))
        data = self._snapshot([_record("element-0-0-0")], screenshot=screenshot).to_dict()

        assert data["duration"] == 1234
        assert data["colorPalette"] == ["#000000", "#ffffff"]
        assert data["borderRadius"] == ["6px"]
        assert data["typography"]["fontFamilies"] == ["Inter"]
        assert data["typography"]["lineHeights"] == ["24px"]
        assert data["metadata"]["elementCount"] == 1
        assert data["screenshot"]["type"] == "png"

        element = data["elements"][0]
        assert element["className"] == "btn"
        assert element["styles"]["backgroundColor"] == "rgb(255, 255, 255)"
        assert "display" not in element["styles"]
        assert element["rect"] == {"x": 0, "y": 0, "width": 100, "height": 30}

    def test_element_styles_from_computed(self):
        styles = ElementStyles.from_computed({"backgroundColor": "rgb(1, 2, 3)", "borderTopLeftRadius": "4px"})
        assert styles.background_color == "rgb(1, 2, 3)"
        assert styles.border_top_left_radius == "4px"
        assert styles.opacity == "1"
