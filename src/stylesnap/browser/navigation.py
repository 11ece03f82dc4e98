"""
Navigation driver.

Tries an ordered list of readiness strategies with linearly increasing
backoff. Each attempt's timeout is derived from the shared extraction
deadline so later attempts are never starved below a floor. A page whose
frame was invalidated mid-flight is replaced once and navigation restarts
on the fresh page.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence

import structlog
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_incrementing

from ..config import NavigationConfig, TimeoutConfig
from ..errors import ExtractionTimeoutError, FrameInvalidatedError, NavigationError, is_frame_invalidation
from ..lifecycle import CancellationToken
from ..observability import increment

logger = structlog.get_logger(__name__)

PageFactory = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class NavigationAttempt:
    """One (readiness strategy, timeout) pair tried against a page."""

    attempt_number: int
    strategy: str
    timeout: float
    error: Optional[str] = None


@dataclass
class NavigationResult:
    page: Any
    attempts: List[NavigationAttempt] = field(default_factory=list)
    recovered: bool = False


def _retryable(error: BaseException) -> bool:
    if isinstance(error, ExtractionTimeoutError):
        return False
    return not is_frame_invalidation(error)


class NavigationDriver:
    def __init__(self, navigation: NavigationConfig, timeouts: TimeoutConfig) -> None:
        self.navigation = navigation
        self.timeouts = timeouts

    def attempt_timeout(self, deadline: Optional[float]) -> float:
        """Seconds granted to the next attempt given a monotonic ``deadline``."""
        base = self.timeouts.navigation_base
        if deadline is None:
            return base
        remaining = deadline - time.monotonic() - self.timeouts.deadline_margin
        return min(base, max(self.timeouts.navigation_floor, remaining))

    def strategies_for(self, slow_target: bool) -> Sequence[str]:
        return self.navigation.slow_target_strategies if slow_target else self.navigation.strategies

    async def navigate(
        self,
        page: Any,
        url: str,
        *,
        token: CancellationToken,
        deadline: Optional[float] = None,
        slow_target: bool = False,
        replace_page: Optional[PageFactory] = None,
    ) -> NavigationResult:
        """
        Drive ``page`` to ``url``. Returns the page that finally loaded, which
        differs from the input when the frame was invalidated and replaced.
        """
        result = NavigationResult(page=page)
        try:
            await self._run_strategies(page, url, token, deadline, slow_target, result.attempts)
            return result
        except FrameInvalidatedError as e:
            if replace_page is None:
                raise NavigationError(
                    f"Navigation failed after {len(result.attempts)} attempts: {e.reason}",
                    attempts=len(result.attempts),
                    cause=e.cause,
                ) from e
            logger.warning("Frame invalidated during navigation, replacing page", url=url, error=e.reason)

        token.checkpoint()
        result.page = await replace_page()
        result.recovered = True
        try:
            await self._run_strategies(result.page, url, token, deadline, slow_target, result.attempts)
        except FrameInvalidatedError as e:
            raise NavigationError(
                f"Navigation failed after {len(result.attempts)} attempts: {e.reason}",
                attempts=len(result.attempts),
                cause=e.cause,
            ) from e
        return result

    async def _run_strategies(
        self,
        page: Any,
        url: str,
        token: CancellationToken,
        deadline: Optional[float],
        slow_target: bool,
        attempts: List[NavigationAttempt],
    ) -> None:
        strategies = self.strategies_for(slow_target)
        max_attempts = self.navigation.max_attempts
        step = self.navigation.backoff_step
        tried = 0

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_incrementing(start=step, increment=step),
                retry=retry_if_exception(_retryable),
                reraise=True,
            ):
                with attempt:
                    number = attempt.retry_state.attempt_number
                    tried = number
                    strategy = strategies[min(number - 1, len(strategies) - 1)]
                    timeout = self.attempt_timeout(deadline)
                    token.checkpoint()
                    logger.info(
                        "Navigation attempt",
                        url=url,
                        attempt=number,
                        max_attempts=max_attempts,
                        strategy=strategy,
                        timeout_s=round(timeout, 2),
                    )
                    try:
                        await token.race(page.goto(url, wait_until=strategy, timeout=timeout * 1000))
                    except Exception as e:
                        attempts.append(NavigationAttempt(number, strategy, timeout, error=str(e)))
                        increment("navigation_attempts", labels={"strategy": strategy, "result": "failure"})
                        logger.warning("Navigation attempt failed", url=url, attempt=number, error=str(e))
                        raise
                    attempts.append(NavigationAttempt(number, strategy, timeout))
                    increment("navigation_attempts", labels={"strategy": strategy, "result": "success"})
                    logger.info("Navigation succeeded", url=url, strategy=strategy, attempt=number)
        except ExtractionTimeoutError:
            raise
        except Exception as e:
            if is_frame_invalidation(e):
                raise FrameInvalidatedError(str(e), cause=e) from e
            raise NavigationError(
                f"Navigation failed after {tried} attempts: {e}",
                attempts=tried,
                cause=e,
            ) from e
