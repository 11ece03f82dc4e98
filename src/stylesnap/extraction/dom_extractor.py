"""
DOM extraction across the main frame, same-origin child frames and shadow roots.

The in-page script returns every visible node matched by the semantic
selectors (shadow roots included). Python applies the meaningful-element
predicate, builds records, feeds palettes and emits color occurrences.
A single element budget is shared by all frames of one extraction.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlparse

import structlog

from ..browser.scripts import COLLECT_CANDIDATES_JS
from ..config import ExtractionLimits
from ..errors import is_context_destroyed
from ..models import ColorOccurrence, ElementAttributes, ElementStyles, Rect, StyleElementRecord
from ..protocols import ColorKind
from .colors import first_color, is_visible_color, normalize_color
from .palette import ZERO_LENGTHS, PaletteAccumulator, normalize_value

logger = structlog.get_logger(__name__)

INTERACTIVE_TAGS = frozenset({"button", "a", "input", "select", "textarea"})
INHERITING_ORIGINS = ("", "about:blank", "about:srcdoc")


@dataclass
class FrameExtraction:
    """Everything one rendering context contributed."""

    frame_url: str
    title: str
    is_main: bool
    elements: List[StyleElementRecord] = field(default_factory=list)
    palette: PaletteAccumulator = field(default_factory=PaletteAccumulator)
    color_occurrences: List[ColorOccurrence] = field(default_factory=list)


class ElementBudget:
    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.used = 0

    @property
    def exhausted(self) -> bool:
        return self.used >= self.limit

    def take(self) -> None:
        self.used += 1


def origin_of(url: str) -> Optional[Tuple[str, str, Optional[int]]]:
    if url in INHERITING_ORIGINS or url.startswith("about:"):
        return None
    parsed = urlparse(url)
    port = parsed.port
    if port is None:
        port = {"http": 80, "https": 443}.get(parsed.scheme)
    return parsed.scheme, (parsed.hostname or "").lower(), port


def is_same_origin(frame_url: str, main_url: str) -> bool:
    """about:blank and srcdoc frames inherit the parent's origin."""
    frame_origin = origin_of(frame_url)
    if frame_origin is None:
        return True
    return frame_origin == origin_of(main_url)


def is_meaningful(tag: str, text: str, rect: Rect, styles: ElementStyles, limits: ExtractionLimits) -> bool:
    has_text = bool(text)
    has_background = is_visible_color(styles.background_color)
    has_border = normalize_value(styles.border_width) not in ZERO_LENGTHS and styles.border_style not in ("", "none")
    is_large = rect.area > limits.min_element_area
    return has_text or has_background or has_border or is_large or tag == "img" or tag in INTERACTIVE_TAGS


def build_record(candidate: Mapping[str, Any], styles: ElementStyles, frame_url: str) -> StyleElementRecord:
    tag = str(candidate.get("tag") or "div")
    class_name = str(candidate.get("className") or "")
    first_class = class_name.split()[0] if class_name.split() else ""
    raw_rect: Dict[str, Any] = candidate.get("rect") or {}
    raw_attributes: Dict[str, Any] = candidate.get("attributes") or {}
    return StyleElementRecord(
        id=str(candidate["id"]),
        name=f".{first_class}" if first_class else tag,
        type=tag,
        text=str(candidate.get("text") or ""),
        class_name=class_name,
        rect=Rect(
            x=float(raw_rect.get("x", 0)),
            y=float(raw_rect.get("y", 0)),
            width=float(raw_rect.get("width", 0)),
            height=float(raw_rect.get("height", 0)),
        ),
        styles=styles,
        attributes=ElementAttributes(
            href=str(raw_attributes.get("href") or ""),
            alt=str(raw_attributes.get("alt") or ""),
            src=str(raw_attributes.get("src") or ""),
            role=str(raw_attributes.get("role") or ""),
        ),
        selector=str(candidate.get("selector") or tag),
        frame_url=frame_url,
    )


def color_occurrences(record: StyleElementRecord) -> List[ColorOccurrence]:
    occurrences = []
    for kind, raw, normalized in (
        (ColorKind.TEXT, record.styles.color, normalize_color(record.styles.color)),
        (ColorKind.BACKGROUND, record.styles.background_color, normalize_color(record.styles.background_color)),
        (ColorKind.BORDER, record.styles.border_color, first_color(record.styles.border_color)),
    ):
        if normalized is None:
            continue
        occurrences.append(
            ColorOccurrence(
                hex=normalized,
                raw=raw,
                kind=kind,
                element_id=record.id,
                selector=record.selector,
            )
        )
    return occurrences


class DomExtractor:
    def __init__(self, limits: ExtractionLimits) -> None:
        self.limits = limits

    def _script_args(self, frame_index: int) -> Dict[str, Any]:
        return {
            "frameIndex": frame_index,
            "maxNodes": self.limits.max_scanned_nodes,
            "selectors": self.limits.semantic_selectors,
            "minSize": self.limits.min_element_size,
            "maxText": self.limits.max_text_length,
        }

    async def extract(self, page: Any) -> List[FrameExtraction]:
        """
        Extract the main frame, then every same-origin child frame.

        A main-frame failure is fatal, except a destroyed execution context
        (the page navigated under us), which is retried once after a delay.
        Child-frame failures are logged and skipped.
        """
        budget = ElementBudget(self.limits.max_elements)
        try:
            main = await self.extract_frame(page.main_frame, 0, budget, is_main=True)
        except Exception as e:
            if not is_context_destroyed(e):
                raise
            logger.info("Page navigated during extraction, retrying", delay_s=self.limits.context_retry_delay)
            await asyncio.sleep(self.limits.context_retry_delay)
            budget = ElementBudget(self.limits.max_elements)
            main = await self.extract_frame(page.main_frame, 0, budget, is_main=True)

        results = [main]
        main_frame = page.main_frame
        for index, frame in enumerate(page.frames):
            if frame is main_frame:
                continue
            if budget.exhausted:
                logger.debug("Element budget exhausted, skipping remaining frames", limit=budget.limit)
                break
            if not is_same_origin(frame.url, main_frame.url):
                logger.debug("Skipping cross-origin frame", frame_url=frame.url)
                continue
            try:
                results.append(await self.extract_frame(frame, index + 1, budget, is_main=False))
            except Exception as e:
                logger.warning("Frame extraction failed", frame_url=frame.url, error=str(e))

        logger.info(
            "DOM extraction finished",
            frames=len(results),
            elements=sum(len(r.elements) for r in results),
        )
        return results

    async def extract_frame(self, frame: Any, frame_index: int, budget: ElementBudget, *, is_main: bool) -> FrameExtraction:
        raw = await frame.evaluate(COLLECT_CANDIDATES_JS, self._script_args(frame_index))
        frame_url = str(raw.get("url") or frame.url)
        result = FrameExtraction(frame_url=frame_url, title=str(raw.get("title") or "").strip(), is_main=is_main)

        for candidate in raw.get("candidates") or []:
            if budget.exhausted:
                break
            styles = ElementStyles.from_computed(candidate.get("styles") or {})
            result.palette.add_styles(styles)
            record = build_record(candidate, styles, frame_url)
            if not is_meaningful(record.type, record.text, record.rect, styles, self.limits):
                continue
            result.elements.append(record)
            result.color_occurrences.extend(color_occurrences(record))
            budget.take()
        return result
