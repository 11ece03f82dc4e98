"""
Playwright-backed page pool.

One Chromium process is launched lazily and shared; every lease gets its own
browser context so cookies and storage never leak between extractions.
Inactive pages older than ``max_idle_seconds`` are reaped in the background.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

import structlog
from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError

from ..config import BrowserConfig
from ..models import Viewport
from .scripts import STEALTH_INIT_SCRIPT

logger = structlog.get_logger(__name__)


@dataclass
class _PageEntry:
    page_id: str
    page: Page
    context: BrowserContext
    created_at: float = field(default_factory=time.monotonic)
    last_used: float = field(default_factory=time.monotonic)
    active: bool = False


class PlaywrightPagePool:
    """Implements ``PageLease`` on top of a shared Chromium instance."""

    def __init__(self, config: BrowserConfig) -> None:
        self.config = config
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._entries: Dict[str, _PageEntry] = {}
        self._launch_lock = asyncio.Lock()
        self._creation_slots = asyncio.Semaphore(config.max_concurrent_page_creations)
        self._reaper: Optional[asyncio.Task[None]] = None
        self._closing = False
        self._created = 0
        self._closed = 0

    async def initialize(self) -> None:
        """Start the idle reaper. The browser itself launches on first use."""
        if self._reaper is None:
            self._reaper = asyncio.create_task(self._reap_loop())

    async def _ensure_browser(self) -> Browser:
        async with self._launch_lock:
            if self._closing:
                raise RuntimeError("Page pool is shutting down")
            if self._browser is not None and self._browser.is_connected():
                return self._browser
            if self._playwright is None:
                self._playwright = await async_playwright().start()
            logger.info("Launching Chromium", headless=self.config.headless)
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                args=self.config.launch_args,
            )
            self._browser.on("disconnected", self._on_disconnected)
            return self._browser

    def _on_disconnected(self, browser: Browser) -> None:
        logger.warning("Browser disconnected", open_pages=len(self._entries))
        self._entries.clear()
        self._browser = None

    async def create_page(self, viewport: Viewport) -> Tuple[Page, str]:
        async with self._creation_slots:
            browser = await self._ensure_browser()
            context = await browser.new_context(
                viewport={"width": viewport.width, "height": viewport.height},
                user_agent=self.config.user_agent,
                extra_http_headers=self.config.extra_http_headers,
            )
            try:
                if self.config.stealth:
                    await context.add_init_script(STEALTH_INIT_SCRIPT)
                page = await context.new_page()
            except Exception:
                # Not yet tracked in _entries, so nothing else can close it.
                await self._discard_context(context)
                raise

        page_id = f"page_{uuid4().hex[:12]}"
        self._created += 1
        self._entries[page_id] = _PageEntry(page_id=page_id, page=page, context=context)
        page.on("close", lambda _: self._entries.pop(page_id, None))
        logger.debug("Page created", page_id=page_id, width=viewport.width, height=viewport.height)
        return page, page_id

    async def _discard_context(self, context: BrowserContext) -> None:
        try:
            await context.close()
        except PlaywrightError as e:
            logger.warning("Error closing unused context", error=str(e))

    def mark_page_active(self, page_id: str) -> None:
        entry = self._entries.get(page_id)
        if entry:
            entry.active = True
            entry.last_used = time.monotonic()

    def mark_page_inactive(self, page_id: str) -> None:
        entry = self._entries.get(page_id)
        if entry:
            entry.active = False
            entry.last_used = time.monotonic()

    async def close_page(self, page_id: str) -> None:
        entry = self._entries.pop(page_id, None)
        if entry is None:
            return
        self._closed += 1
        try:
            await entry.context.close()
        except PlaywrightError as e:
            logger.warning("Error closing page", page_id=page_id, error=str(e))

    async def reap_idle(self) -> int:
        now = time.monotonic()
        idle = [
            page_id
            for page_id, entry in self._entries.items()
            if not entry.active and now - entry.last_used > self.config.max_idle_seconds
        ]
        for page_id in idle:
            await self.close_page(page_id)
        if idle:
            logger.info("Reaped idle pages", count=len(idle))
        return len(idle)

    async def _reap_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.reap_interval)
            try:
                await self.reap_idle()
            except Exception as e:
                logger.error("Idle page sweep failed", error=str(e))

    def stats(self) -> Dict[str, Any]:
        return {
            "browser_connected": bool(self._browser and self._browser.is_connected()),
            "created": self._created,
            "closed": self._closed,
            "open_pages": len(self._entries),
            "active_pages": sum(1 for entry in self._entries.values() if entry.active),
            "max_concurrent_page_creations": self.config.max_concurrent_page_creations,
        }

    async def close(self) -> None:
        """Close every page, the browser and the Playwright driver."""
        self._closing = True
        if self._reaper is not None:
            self._reaper.cancel()
            await asyncio.gather(self._reaper, return_exceptions=True)
            self._reaper = None

        await asyncio.gather(*(self.close_page(page_id) for page_id in list(self._entries)), return_exceptions=True)

        if self._browser is not None:
            try:
                await self._browser.close()
            except PlaywrightError as e:
                logger.warning("Error closing browser", error=str(e))
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
        logger.info("Page pool closed")
