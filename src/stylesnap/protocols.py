"""
Contracts for the collaborators an extraction talks to.

The orchestrator never owns browser processes. It borrows pages through a
``PageLease`` and reports color usage to a ``ColorUsageIndex``; both are
swappable (a Playwright pool and an in-memory index ship with the package).
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, Tuple, runtime_checkable
from uuid import uuid4

if TYPE_CHECKING:
    from .models import ColorOccurrence, Viewport


class ColorKind(Enum):
    """Which style property a color occurrence came from."""

    TEXT = "text"
    BACKGROUND = "background"
    BORDER = "border"


class ExtractionState(Enum):
    """Lifecycle of one tracked extraction."""

    CREATED = "created"
    LEASED = "leased"
    NAVIGATING = "navigating"
    AUTHENTICATING = "authenticating"
    STABILIZING = "stabilizing"
    EXTRACTING = "extracting"
    ASSEMBLED = "assembled"
    RELEASED = "released"
    RELEASED_ON_ERROR = "released-on-error"


@runtime_checkable
class PageLease(Protocol):
    """Hands out isolated renderer pages bound to a page id."""

    async def create_page(self, viewport: "Viewport") -> Tuple[Any, str]:
        """Lease a fresh page configured for ``viewport``; returns ``(page, page_id)``."""
        ...

    def mark_page_active(self, page_id: str) -> None:
        """Protect the page from idle reaping."""
        ...

    def mark_page_inactive(self, page_id: str) -> None:
        """Allow the page to be reaped."""
        ...

    async def close_page(self, page_id: str) -> None:
        """Return the page. Unknown or already closed ids are ignored."""
        ...


@runtime_checkable
class ColorUsageIndex(Protocol):
    """Receives every normalized color occurrence found on a page."""

    def record(self, occurrence: "ColorOccurrence") -> None:
        ...


def create_extraction_id() -> str:
    return f"extraction_{uuid4().hex}"
