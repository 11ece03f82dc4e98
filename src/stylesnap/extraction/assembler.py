"""Merges per-frame results into one bounded ``StyleSnapshot``."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Sequence

from ..config import ExtractionLimits
from ..models import ColorOccurrence, Screenshot, SnapshotMetadata, StyleElementRecord, StyleSnapshot
from .dom_extractor import FrameExtraction
from .palette import PaletteAccumulator


class SnapshotAssembler:
    def __init__(self, limits: ExtractionLimits) -> None:
        self.limits = limits

    def assemble(
        self,
        url: str,
        frames: Sequence[FrameExtraction],
        *,
        screenshot: Optional[Screenshot] = None,
        duration_ms: int = 0,
    ) -> StyleSnapshot:
        elements: List[StyleElementRecord] = []
        palette = PaletteAccumulator.bounded(self.limits)
        title = ""
        for frame in frames:
            room = self.limits.max_elements - len(elements)
            if room > 0:
                elements.extend(frame.elements[:room])
            palette.merge(frame.palette)
            if not title and frame.title:
                title = frame.title

        return StyleSnapshot(
            url=url,
            elements=elements,
            color_palette=palette.colors.values(),
            typography=palette.typography(),
            spacing=palette.spacing.values(),
            border_radius=palette.border_radius.values(),
            metadata=SnapshotMetadata(
                title=title,
                url=url,
                element_count=len(elements),
                extractor_version=self.limits.extractor_version,
                frame_count=len(frames),
            ),
            screenshot=screenshot,
            duration_ms=duration_ms,
            extracted_at=datetime.now(timezone.utc),
        )


def collect_occurrences(frames: Sequence[FrameExtraction], snapshot: StyleSnapshot) -> List[ColorOccurrence]:
    """Occurrences whose element made it into the snapshot."""
    kept = {element.id for element in snapshot.elements}
    return [occ for frame in frames for occ in frame.color_occurrences if occ.element_id in kept]
