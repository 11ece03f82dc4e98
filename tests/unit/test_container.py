"""
Tests for DependencyContainer and configuration loading.
"""

import pytest
from stylesnap.browser.pool import PlaywrightPagePool
from stylesnap.config import Config
from stylesnap.container import DependencyContainer
from stylesnap.extraction.color_index import InMemoryColorUsageIndex
from stylesnap.orchestrator import StyleExtractor


class TestContainerLifecycle:
    @pytest.mark.asyncio
    async def test_components_are_shared(self):
        container = DependencyContainer(config=Config())
        async with container.lifecycle():
            extractor = await container.get_extractor()

            assert isinstance(extractor, StyleExtractor)
            assert extractor is await container.get_extractor()
            assert isinstance(extractor.lease, PlaywrightPagePool)
            assert isinstance(await container.get_color_index(), InMemoryColorUsageIndex)
            assert extractor.color_index is await container.get_color_index()

            health = container.get_health_status()
            assert health["is_running"] is True
            assert health["components"] == {"page_pool": True, "color_index": True}
            assert health["active_extractions"] == 0

        assert container.is_running is False
        assert container.get_health_status()["components"] == {"page_pool": False, "color_index": False}

    @pytest.mark.asyncio
    async def test_duplicate_shutdown_calls_are_idempotent(self):
        container = DependencyContainer()
        await container.initialize()
        await container.shutdown()
        await container.shutdown()
        assert container.is_running is False

    @pytest.mark.asyncio
    async def test_shutdown_handler_errors_are_isolated(self):
        container = DependencyContainer()
        calls = []

        def failing_handler():
            calls.append("sync")
            raise RuntimeError("handler error")

        async def async_handler():
            calls.append("async")

        container.add_shutdown_handler(failing_handler)
        container.add_shutdown_handler(async_handler)

        await container.initialize()
        await container.shutdown()
        assert calls == ["sync", "async"]

    @pytest.mark.asyncio
    async def test_loads_yaml_config(self, tmp_path):
        path = tmp_path / "stylesnap.yaml"
        path.write_text("timeouts:\n  extraction: 12\nextraction:\n  max_elements: 50\n", encoding="utf-8")

        container = DependencyContainer(config_path=path)
        await container.initialize()
        try:
            assert container.config.timeouts.extraction == 12
            assert container.config.extraction.max_elements == 50
        finally:
            await container.shutdown()


class TestConfig:
    def test_slow_target_matching(self):
        config = Config()
        config.timeouts.slow_target_hosts = ["figma.com"]

        assert config.is_slow_target("figma.com")
        assert config.is_slow_target("www.Figma.com")
        assert not config.is_slow_target("notfigma.com")

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("STYLESNAP_TIMEOUTS__EXTRACTION", "42")
        assert Config().timeouts.extraction == 42

    def test_empty_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert Config.from_yaml(path).extraction.max_elements == 1500

    def test_missing_yaml(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Config.from_yaml(tmp_path / "missing.yaml")

    def test_strategies_cannot_be_empty(self):
        with pytest.raises(ValueError):
            Config.model_validate({"navigation": {"strategies": []}})
