"""
Error taxonomy for style extraction.

Every error surfaced by ``StyleExtractor.extract`` is an ``ExtractionError``.
Context (url, elapsed time, extraction id) is attached once, on the way out.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ExtractionError(Exception):
    """Base class; also used to wrap unexpected failures inside an extraction."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        elapsed_ms: Optional[int] = None,
        extraction_id: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.reason = message
        self.url = url
        self.elapsed_ms = elapsed_ms
        self.extraction_id = extraction_id
        self.cause = cause

    def with_context(
        self, *, url: str, elapsed_ms: int, extraction_id: Optional[str] = None
    ) -> "ExtractionError":
        self.url = url
        self.elapsed_ms = elapsed_ms
        if extraction_id is not None:
            self.extraction_id = extraction_id
        return self

    def __str__(self) -> str:
        if self.url is None:
            return self.reason
        if self.elapsed_ms is None:
            return f"Web extraction failed for {self.url}: {self.reason}"
        return f"Web extraction failed for {self.url} after {self.elapsed_ms}ms: {self.reason}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": type(self).__name__,
            "message": self.reason,
            "url": self.url,
            "elapsed_ms": self.elapsed_ms,
            "extraction_id": self.extraction_id,
        }


class InvalidInputError(ExtractionError):
    """Bad URL/protocol or malformed authentication descriptor. Raised before any lease."""


class NavigationError(ExtractionError):
    """All readiness strategies were exhausted."""

    def __init__(self, message: str, *, attempts: int = 0, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.attempts = attempts


class AuthenticationError(ExtractionError):
    """The login form could not be submitted, or is still shown after submitting."""


class ExtractionTimeoutError(ExtractionError):
    """The overall extraction deadline elapsed."""


class ScreenshotError(ExtractionError):
    """Screenshot capture failed. Never surfaced; the snapshot carries no screenshot."""


class FrameInvalidatedError(ExtractionError):
    """The page's execution context was replaced mid-navigation."""


FRAME_INVALIDATION_MARKERS = (
    "frame was detached",
    "requesting main frame too early",
    "execution context was destroyed",
)


def is_frame_invalidation(error: BaseException) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in FRAME_INVALIDATION_MARKERS)


def is_context_destroyed(error: BaseException) -> bool:
    return "execution context was destroyed" in str(error).lower()
