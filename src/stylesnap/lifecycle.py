"""
Extraction ledger and cancellation plumbing.

Every in-flight extraction is tracked by id. The single ``release`` path
aborts the cancellation token, returns the leased page and removes the
entry; it runs on every exit and is a no-op the second time.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, FrozenSet, List, Optional, TypeVar

import structlog

from .errors import ExtractionTimeoutError
from .models import Viewport
from .observability import gauge, increment
from .protocols import ExtractionState, PageLease, create_extraction_id

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CancellationToken:
    """
    One-shot abort signal for an extraction.

    The token is checked at checkpoints (start of navigation, start of each
    wait) and raced against page operations. Work that is already past its
    last checkpoint is never interrupted.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._timer: Optional[asyncio.TimerHandle] = None
        self.reason: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self._event.is_set()

    def arm(self, seconds: float) -> None:
        """Abort automatically once ``seconds`` have elapsed."""
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(seconds, self.abort, f"Extraction timed out after {int(seconds * 1000)}ms")

    def abort(self, reason: str = "Extraction aborted") -> None:
        if self._event.is_set():
            return
        self.reason = reason
        self._event.set()
        self.dispose()

    def dispose(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def checkpoint(self) -> None:
        if self.aborted:
            raise ExtractionTimeoutError(self.reason or "Extraction aborted")

    async def race(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first."""
        if self.aborted:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.checkpoint()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            task.cancel()
            waiter.cancel()
            raise

        if task in done:
            waiter.cancel()
            return task.result()

        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise ExtractionTimeoutError(self.reason or "Extraction aborted")


@dataclass
class ExtractionSession:
    """The tracked unit of work for one ``extract`` call."""

    extraction_id: str
    url: str
    token: CancellationToken
    budget: float
    started_at: float = field(default_factory=time.monotonic)
    page: Any = None
    page_id: Optional[str] = None
    state: ExtractionState = ExtractionState.CREATED
    releasing: bool = False

    @property
    def deadline(self) -> float:
        return self.started_at + self.budget

    def remaining(self) -> float:
        return max(0.0, self.deadline - time.monotonic())

    def elapsed_ms(self) -> int:
        return int((time.monotonic() - self.started_at) * 1000)


_TRANSITIONS: Dict[ExtractionState, FrozenSet[ExtractionState]] = {
    ExtractionState.CREATED: frozenset({ExtractionState.LEASED}),
    ExtractionState.LEASED: frozenset({ExtractionState.NAVIGATING}),
    ExtractionState.NAVIGATING: frozenset({ExtractionState.AUTHENTICATING, ExtractionState.STABILIZING}),
    ExtractionState.AUTHENTICATING: frozenset({ExtractionState.STABILIZING}),
    ExtractionState.STABILIZING: frozenset({ExtractionState.EXTRACTING}),
    ExtractionState.EXTRACTING: frozenset({ExtractionState.ASSEMBLED}),
    ExtractionState.ASSEMBLED: frozenset({ExtractionState.RELEASED}),
}


class ExtractionLedger:
    """Maps extraction id to session for the duration of each call."""

    def __init__(self, lease: PageLease) -> None:
        self._lease = lease
        self._sessions: Dict[str, ExtractionSession] = {}

    def __contains__(self, extraction_id: str) -> bool:
        return extraction_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, extraction_id: str) -> Optional[ExtractionSession]:
        return self._sessions.get(extraction_id)

    def active_ids(self) -> List[str]:
        return list(self._sessions)

    def open(self, url: str, budget: float) -> ExtractionSession:
        """Create a session and arm its token for ``budget`` seconds."""
        token = CancellationToken()
        session = ExtractionSession(
            extraction_id=create_extraction_id(),
            url=url,
            token=token,
            budget=budget,
        )
        token.arm(budget)
        self._sessions[session.extraction_id] = session
        gauge("active_extractions", len(self._sessions))
        logger.debug("Extraction opened", extraction_id=session.extraction_id, budget_s=budget)
        return session

    def transition(self, session: ExtractionSession, state: ExtractionState) -> None:
        allowed = _TRANSITIONS.get(session.state, frozenset())
        if state not in allowed:
            raise RuntimeError(f"Invalid extraction state transition {session.state.value} -> {state.value}")
        session.state = state

    async def lease_page(self, session: ExtractionSession, viewport: Viewport) -> Any:
        """Lease a page for ``session``; it never holds more than one."""
        if session.page_id is not None:
            raise RuntimeError(f"Extraction {session.extraction_id} already holds page {session.page_id}")
        page, page_id = await self._lease.create_page(viewport)
        session.page = page
        session.page_id = page_id
        self._lease.mark_page_active(page_id)
        increment("page_leases", labels={"event": "created"})
        logger.debug("Page leased", extraction_id=session.extraction_id, page_id=page_id)
        return page

    async def replace_page(self, session: ExtractionSession, viewport: Viewport) -> Any:
        """Close the current page, then lease a fresh one."""
        await self._return_page(session)
        return await self.lease_page(session, viewport)

    async def _return_page(self, session: ExtractionSession) -> None:
        page_id = session.page_id
        if page_id is None:
            return
        session.page = None
        session.page_id = None
        try:
            self._lease.mark_page_inactive(page_id)
        except Exception as e:
            logger.warning("Failed to mark page inactive", page_id=page_id, error=str(e))
        try:
            await self._lease.close_page(page_id)
        except Exception as e:
            logger.warning("Failed to close page", page_id=page_id, error=str(e))
        increment("page_leases", labels={"event": "closed"})
        logger.debug("Page returned", extraction_id=session.extraction_id, page_id=page_id)

    async def release(self, extraction_id: str) -> bool:
        """
        Abort the token, return the page and drop the entry.

        Returns False when the id is unknown or already being released.
        """
        session = self._sessions.get(extraction_id)
        if session is None or session.releasing:
            return False
        session.releasing = True
        try:
            session.token.abort("Extraction released")
            await self._return_page(session)
        finally:
            if session.state is ExtractionState.ASSEMBLED:
                session.state = ExtractionState.RELEASED
            else:
                session.state = ExtractionState.RELEASED_ON_ERROR
            self._sessions.pop(extraction_id, None)
            gauge("active_extractions", len(self._sessions))
        logger.debug("Extraction released", extraction_id=extraction_id, state=session.state.value)
        return True

    async def release_all(self) -> int:
        released = 0
        for extraction_id in self.active_ids():
            if await self.release(extraction_id):
                released += 1
        return released
