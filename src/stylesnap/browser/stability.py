"""
Waits for single-page applications to finish rendering.

Only JS-heavy pages are waited on. Every wait is bounded by the stability
budget and by the time left before the extraction deadline; a wait that
times out is logged and the extraction carries on.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Optional

import structlog
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import StabilityConfig
from ..lifecycle import CancellationToken
from .scripts import CONTENT_PRESENT_JS, DETECT_SPA_JS, DOM_SIZE_JS, LOADING_CLEARED_JS

logger = structlog.get_logger(__name__)


class StabilityWaiter:
    def __init__(self, config: StabilityConfig) -> None:
        self.config = config

    async def is_js_heavy(self, page: Any) -> bool:
        return bool(
            await page.evaluate(
                DETECT_SPA_JS,
                {
                    "globals": self.config.framework_globals,
                    "markers": self.config.framework_markers,
                    "threshold": self.config.script_threshold,
                },
            )
        )

    def _bounded(self, budget: float, deadline: Optional[float]) -> float:
        if deadline is None:
            return budget
        return max(0.0, min(budget, deadline - time.monotonic()))

    async def _wait_step(
        self,
        page: Any,
        step: str,
        expression: str,
        arg: Any,
        budget: float,
        token: CancellationToken,
        deadline: Optional[float],
    ) -> bool:
        token.checkpoint()
        timeout = self._bounded(budget, deadline)
        if timeout <= 0:
            logger.info("Stability wait skipped, no time left", step=step)
            return False
        try:
            await token.race(page.wait_for_function(expression, arg=arg, timeout=timeout * 1000))
            return True
        except PlaywrightTimeoutError:
            logger.info("Stability wait timed out, continuing", step=step, timeout_s=round(timeout, 2))
            return False
        except PlaywrightError as e:
            logger.warning("Stability wait failed, continuing", step=step, error=str(e))
            return False

    async def wait(
        self,
        page: Any,
        *,
        token: CancellationToken,
        timeout: Optional[float] = None,
        deadline: Optional[float] = None,
        slow_target: bool = False,
    ) -> bool:
        """
        Give the page time to settle. Returns True when every wait resolved
        before its timeout (or the page was not JS-heavy).
        """
        if slow_target:
            budget = self.config.slow_target_timeout
        else:
            budget = timeout or self.config.default_timeout

        token.checkpoint()
        try:
            js_heavy = await token.race(self.is_js_heavy(page))
        except PlaywrightError as e:
            logger.warning("Could not inspect page for frameworks", error=str(e))
            js_heavy = False
        settled = True
        if js_heavy:
            logger.info("JS-heavy page detected, waiting for stability", budget_s=budget)
            steps = [
                ("loading-cleared", LOADING_CLEARED_JS, self.config.loading_selector),
                (
                    "content-present",
                    CONTENT_PRESENT_JS,
                    {"selector": self.config.content_selector, "minimum": self.config.min_content_elements},
                ),
                ("dom-size", DOM_SIZE_JS, self.config.min_dom_nodes),
            ]
            for step, expression, arg in steps:
                if not await self._wait_step(page, step, expression, arg, budget, token, deadline):
                    settled = False

        await token.race(asyncio.sleep(self.config.settle_delay))
        return settled
