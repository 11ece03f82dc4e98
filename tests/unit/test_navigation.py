"""
Tests for the navigation driver: strategy rotation, deadline-derived
timeouts and recovery from invalidated frames.
"""

import time

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from stylesnap.browser.navigation import NavigationDriver
from stylesnap.config import NavigationConfig, TimeoutConfig
from stylesnap.errors import ExtractionTimeoutError, NavigationError
from stylesnap.lifecycle import CancellationToken
from stylesnap.observability import METRICS

from tests.helpers.fake_browser import FakePage
from tests.helpers.metric_delta import metric_delta

URL = "https://example.com/"


@pytest.fixture
def driver(fast_config):
    return NavigationDriver(fast_config.navigation, fast_config.timeouts)


class TestAttemptTimeout:
    def test_without_deadline_uses_base(self, driver):
        assert driver.attempt_timeout(None) == 45.0

    def test_derived_from_remaining_time(self, driver):
        timeout = driver.attempt_timeout(time.monotonic() + 10)
        assert 9.0 < timeout <= 9.5

    def test_never_below_floor(self, driver):
        assert driver.attempt_timeout(time.monotonic() - 5) == 2.0

    def test_never_above_base(self):
        driver = NavigationDriver(NavigationConfig(), TimeoutConfig(navigation_base=5.0))
        assert driver.attempt_timeout(time.monotonic() + 120) == 5.0


class TestNavigate:
    @pytest.mark.asyncio
    async def test_succeeds_on_first_strategy(self, driver):
        page = FakePage()
        result = await driver.navigate(page, URL, token=CancellationToken())

        assert result.page is page
        assert not result.recovered
        assert [(a.strategy, a.error) for a in result.attempts] == [("networkidle", None)]
        assert page.goto_calls == [(URL, "networkidle", 45000.0)]
        assert page.url == URL

    @pytest.mark.asyncio
    async def test_rotates_strategies_until_one_succeeds(self, driver):
        page = FakePage(goto_effects=[PlaywrightTimeoutError("Timeout"), PlaywrightTimeoutError("Timeout"), None])

        with metric_delta(METRICS["navigation_attempts"], 1, strategy="load", result="success"):
            result = await driver.navigate(page, URL, token=CancellationToken())

        assert [call[1] for call in page.goto_calls] == ["networkidle", "domcontentloaded", "load"]
        assert [a.attempt_number for a in result.attempts] == [1, 2, 3]
        assert result.attempts[0].error is not None
        assert result.attempts[2].error is None

    @pytest.mark.asyncio
    async def test_slow_targets_start_with_domcontentloaded(self, driver):
        page = FakePage()
        await driver.navigate(page, URL, token=CancellationToken(), slow_target=True)
        assert page.goto_calls[0][1] == "domcontentloaded"

    @pytest.mark.asyncio
    async def test_exhausted_attempts_raise_navigation_error(self, driver):
        page = FakePage(fail_urls={URL: PlaywrightError("net::ERR_NAME_NOT_RESOLVED")})

        with pytest.raises(NavigationError, match="Navigation failed after 3 attempts") as exc_info:
            await driver.navigate(page, URL, token=CancellationToken())
        assert exc_info.value.attempts == 3
        assert "ERR_NAME_NOT_RESOLVED" in exc_info.value.reason
        assert len(page.goto_calls) == 3

    @pytest.mark.asyncio
    async def test_frame_invalidation_replaces_page_once(self, driver):
        broken = FakePage(goto_effects=[PlaywrightError("Navigation failed because frame was detached")])
        fresh = FakePage()
        replacements = []

        async def replace_page():
            replacements.append(fresh)
            return fresh

        result = await driver.navigate(broken, URL, token=CancellationToken(), replace_page=replace_page)

        assert result.recovered
        assert result.page is fresh
        assert replacements == [fresh]
        assert len(broken.goto_calls) == 1
        assert fresh.url == URL

    @pytest.mark.asyncio
    async def test_second_frame_invalidation_is_fatal(self, driver):
        detached = PlaywrightError("Execution context was destroyed, most likely because of a navigation")

        async def replace_page():
            return FakePage(fail_urls={URL: detached})

        with pytest.raises(NavigationError, match="Execution context was destroyed"):
            await driver.navigate(
                FakePage(fail_urls={URL: detached}), URL, token=CancellationToken(), replace_page=replace_page
            )

    @pytest.mark.asyncio
    async def test_frame_invalidation_without_replacement(self, driver):
        page = FakePage(goto_effects=[PlaywrightError("frame was detached")])

        with pytest.raises(NavigationError):
            await driver.navigate(page, URL, token=CancellationToken())

    @pytest.mark.asyncio
    async def test_aborted_token_stops_navigation(self, driver):
        token = CancellationToken()
        token.abort("Extraction timed out after 10ms")

        with pytest.raises(ExtractionTimeoutError):
            await driver.navigate(FakePage(), URL, token=token)

    @pytest.mark.asyncio
    async def test_deadline_interrupts_hanging_navigation(self, driver):
        token = CancellationToken()
        token.arm(0.05)
        page = FakePage(hang_urls=[URL])

        with pytest.raises(ExtractionTimeoutError):
            await driver.navigate(page, URL, token=token, deadline=time.monotonic() + 0.05)
        assert len(page.goto_calls) == 1
