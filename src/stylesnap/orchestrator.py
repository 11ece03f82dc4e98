"""
Extraction orchestrator.

``StyleExtractor.extract`` leases a page, drives it through navigation,
optional login and stability waits, extracts the DOM and assembles one
snapshot. Every call is tracked in the ledger, and the ledger's single
release path runs on every exit.
"""

from __future__ import annotations

import time
from dataclasses import replace
from typing import Any, List, Optional

import structlog
from structlog.contextvars import bound_contextvars

from .browser.auth import AuthenticationHeuristics
from .browser.navigation import NavigationDriver
from .browser.screenshot import ScreenshotCapturer
from .browser.stability import StabilityWaiter
from .config import Config
from .errors import ExtractionError
from .extraction.assembler import SnapshotAssembler, collect_occurrences
from .extraction.dom_extractor import DomExtractor
from .lifecycle import ExtractionLedger, ExtractionSession
from .models import ColorOccurrence, ExtractionRequest, OptionsLike, ScreenshotSettings, StyleSnapshot, Viewport
from .observability import histogram, increment
from .protocols import ColorUsageIndex, ExtractionState, PageLease

logger = structlog.get_logger(__name__)


class StyleExtractor:
    """Produces a ``StyleSnapshot`` from a live page, or one descriptive error."""

    def __init__(
        self,
        lease: PageLease,
        config: Optional[Config] = None,
        color_index: Optional[ColorUsageIndex] = None,
    ) -> None:
        self.config = config or Config()
        self.lease = lease
        self.color_index = color_index
        self.ledger = ExtractionLedger(lease)
        self.navigator = NavigationDriver(self.config.navigation, self.config.timeouts)
        self.authenticator = AuthenticationHeuristics(self.config.authentication)
        self.stability = StabilityWaiter(self.config.stability)
        self.dom = DomExtractor(self.config.extraction)
        self.assembler = SnapshotAssembler(self.config.extraction)
        self.screenshots = ScreenshotCapturer(self.config.screenshot)

    def build_request(self, url: str, options: OptionsLike = None) -> ExtractionRequest:
        viewport = self.config.browser.viewport
        shot = self.config.screenshot
        return ExtractionRequest.from_options(
            url,
            options,
            default_viewport=Viewport(width=viewport.width, height=viewport.height),
            default_screenshot=ScreenshotSettings(
                image_type=shot.image_type, quality=shot.quality, full_page=shot.full_page
            ),
            allowed_hosts=self.config.security.allowed_hosts,
        )

    def budget_for(self, request: ExtractionRequest) -> float:
        if request.timeout:
            return request.timeout
        if self.config.is_slow_target(request.host):
            return self.config.timeouts.slow_target_extraction
        return self.config.timeouts.extraction

    async def extract(self, url: str, options: OptionsLike = None) -> StyleSnapshot:
        """
        Extract a style snapshot from ``url``.

        Input is validated before anything is leased. Every other failure is
        surfaced as an ``ExtractionError`` carrying the url and elapsed time.
        """
        request = self.build_request(url, options)
        slow_target = self.config.is_slow_target(request.host)
        session = self.ledger.open(request.url, self.budget_for(request))

        with bound_contextvars(extraction_id=session.extraction_id, url=request.url):
            logger.info("Starting extraction", budget_s=session.budget, slow_target=slow_target)
            try:
                snapshot = await self._run(session, request, slow_target)
            except ExtractionError as e:
                self._record_outcome(session, "failure")
                e.with_context(url=request.url, elapsed_ms=session.elapsed_ms(), extraction_id=session.extraction_id)
                logger.error("Extraction failed", error_type=type(e).__name__, error=e.reason)
                raise
            except Exception as e:
                self._record_outcome(session, "failure")
                logger.error("Extraction failed", error_type=type(e).__name__, error=str(e))
                raise ExtractionError(
                    str(e) or type(e).__name__,
                    url=request.url,
                    elapsed_ms=session.elapsed_ms(),
                    extraction_id=session.extraction_id,
                    cause=e,
                ) from e
            finally:
                await self.ledger.release(session.extraction_id)

            self._record_outcome(session, "success")
            histogram("elements_extracted", snapshot.metadata.element_count)
            logger.info(
                "Extraction completed",
                duration_ms=snapshot.duration_ms,
                elements=snapshot.metadata.element_count,
                colors=len(snapshot.color_palette),
            )
            return snapshot

    async def _run(self, session: ExtractionSession, request: ExtractionRequest, slow_target: bool) -> StyleSnapshot:
        token = session.token
        # Slow targets get fixed per-attempt timeouts instead of deadline-derived ones.
        deadline = None if slow_target else session.deadline

        page = await self.ledger.lease_page(session, request.viewport)
        self.ledger.transition(session, ExtractionState.LEASED)

        self.ledger.transition(session, ExtractionState.NAVIGATING)
        page = await self._navigate(session, request, page, request.url, deadline, slow_target)

        if request.authentication is not None:
            self.ledger.transition(session, ExtractionState.AUTHENTICATING)
            await token.race(self.authenticator.authenticate(page, request.authentication))
            target_url = request.authentication.target_url
            if target_url and page.url != target_url:
                logger.info("Navigating to target after login", target_url=target_url)
                page = await self._navigate(session, request, page, target_url, deadline, slow_target)

        self.ledger.transition(session, ExtractionState.STABILIZING)
        await self.stability.wait(
            page,
            token=token,
            timeout=request.stability_timeout,
            deadline=deadline,
            slow_target=slow_target,
        )

        # Past this point the deadline no longer interrupts: collected DOM data is assembled.
        self.ledger.transition(session, ExtractionState.EXTRACTING)
        if page.is_closed():
            raise ExtractionError("Page was closed before extraction could begin")
        frames = await self.dom.extract(page)

        screenshot = None
        if request.include_screenshot and request.screenshot is not None:
            screenshot = await self.screenshots.capture(page, request.screenshot, token)

        snapshot = self.assembler.assemble(
            request.url,
            frames,
            screenshot=screenshot,
            duration_ms=session.elapsed_ms(),
        )
        self._report_colors(session.extraction_id, collect_occurrences(frames, snapshot))
        self.ledger.transition(session, ExtractionState.ASSEMBLED)
        return snapshot

    async def _navigate(
        self,
        session: ExtractionSession,
        request: ExtractionRequest,
        page: Any,
        url: str,
        deadline: Optional[float],
        slow_target: bool,
    ) -> Any:
        async def replace_page() -> Any:
            return await self.ledger.replace_page(session, request.viewport)

        result = await self.navigator.navigate(
            page,
            url,
            token=session.token,
            deadline=deadline,
            slow_target=slow_target,
            replace_page=replace_page,
        )
        return result.page

    def _report_colors(self, extraction_id: str, occurrences: List[ColorOccurrence]) -> None:
        if self.color_index is None:
            return
        for occurrence in occurrences:
            try:
                self.color_index.record(replace(occurrence, extraction_id=extraction_id))
            except Exception as e:
                logger.warning("Color index rejected occurrence", color=occurrence.hex, error=str(e))

    def _record_outcome(self, session: ExtractionSession, outcome: str) -> None:
        increment("extractions_total", labels={"outcome": outcome})
        histogram(
            "extraction_duration_seconds",
            time.monotonic() - session.started_at,
            labels={"outcome": outcome},
        )

    # --- Ledger access ---

    async def cleanup(self, extraction_id: str) -> bool:
        """Release an extraction. Safe to call more than once."""
        return await self.ledger.release(extraction_id)

    async def cancel_extraction(self, extraction_id: str) -> bool:
        session = self.ledger.get(extraction_id)
        if session is None:
            return False
        session.token.abort("Extraction cancelled")
        logger.info("Extraction cancelled", extraction_id=extraction_id)
        return await self.ledger.release(extraction_id)

    async def cancel_all_extractions(self) -> int:
        cancelled = 0
        for extraction_id in self.ledger.active_ids():
            if await self.cancel_extraction(extraction_id):
                cancelled += 1
        return cancelled

    def active_extractions(self) -> List[str]:
        return self.ledger.active_ids()
