"""Screenshot capture with a short, independent retry budget."""

from __future__ import annotations

import asyncio
import base64
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog
from tenacity import AsyncRetrying, retry_if_not_exception_type, stop_after_attempt, wait_fixed

from ..config import ScreenshotConfig
from ..errors import ExtractionTimeoutError, ScreenshotError
from ..lifecycle import CancellationToken
from ..models import Screenshot, ScreenshotSettings
from ..observability import increment

logger = structlog.get_logger(__name__)


class ScreenshotCapturer:
    def __init__(self, config: ScreenshotConfig) -> None:
        self.config = config

    def _options(self, settings: ScreenshotSettings) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "type": settings.image_type,
            "full_page": settings.full_page,
            "timeout": self.config.timeout * 1000,
        }
        if settings.image_type == "jpeg":
            options["quality"] = settings.quality
        return options

    async def _capture_once(self, page: Any, settings: ScreenshotSettings) -> bytes:
        try:
            return await asyncio.wait_for(page.screenshot(**self._options(settings)), timeout=self.config.timeout)
        except asyncio.TimeoutError as e:
            raise ScreenshotError("Screenshot timeout") from e

    async def capture(
        self, page: Any, settings: ScreenshotSettings, token: Optional[CancellationToken] = None
    ) -> Optional[Screenshot]:
        """
        Returns a base64 screenshot, or None when every attempt failed or
        the extraction deadline fired first. Never raises.
        """
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.config.attempts),
                wait=wait_fixed(self.config.retry_delay),
                retry=retry_if_not_exception_type(ExtractionTimeoutError),
                reraise=True,
            ):
                with attempt:
                    number = attempt.retry_state.attempt_number
                    logger.debug("Screenshot attempt", attempt=number, max_attempts=self.config.attempts)
                    try:
                        if token is not None:
                            raw = await token.race(self._capture_once(page, settings))
                        else:
                            raw = await self._capture_once(page, settings)
                    except ExtractionTimeoutError:
                        raise
                    except Exception as e:
                        logger.warning("Screenshot attempt failed", attempt=number, error=str(e))
                        raise
        except ExtractionTimeoutError as e:
            logger.warning("Screenshot skipped, extraction deadline reached", reason=e.reason)
            return None
        except Exception as e:
            increment("screenshot_failures")
            logger.warning("Screenshot capture failed, continuing without screenshot", error=str(e))
            return None

        return Screenshot(
            data=base64.b64encode(raw).decode("ascii"),
            image_type=settings.image_type,
            timestamp=datetime.now(timezone.utc),
        )
