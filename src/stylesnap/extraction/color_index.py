"""In-memory color usage index."""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import Dict, List, Set

from ..models import ColorOccurrence
from ..protocols import ColorKind


class InMemoryColorUsageIndex:
    """
    Keeps reported occurrences grouped by extraction so a report can
    cross-reference a palette color back to the elements that use it.

    Only the most recent ``max_extractions`` extractions are retained; older
    ones are evicted as new ones arrive.
    """

    def __init__(self, max_extractions: int = 100) -> None:
        if max_extractions < 1:
            raise ValueError("max_extractions must be at least 1")
        self.max_extractions = max_extractions
        self._lock = threading.Lock()
        self._by_extraction: "OrderedDict[str, List[ColorOccurrence]]" = OrderedDict()

    def record(self, occurrence: ColorOccurrence) -> None:
        with self._lock:
            key = occurrence.extraction_id
            if key not in self._by_extraction:
                self._by_extraction[key] = []
                while len(self._by_extraction) > self.max_extractions:
                    self._by_extraction.popitem(last=False)
            self._by_extraction[key].append(occurrence)

    def _occurrences(self) -> List[ColorOccurrence]:
        return [occ for occurrences in self._by_extraction.values() for occ in occurrences]

    def extractions(self) -> List[str]:
        with self._lock:
            return list(self._by_extraction)

    def discard(self, extraction_id: str) -> bool:
        with self._lock:
            return self._by_extraction.pop(extraction_id, None) is not None

    def colors(self) -> List[str]:
        with self._lock:
            return list(dict.fromkeys(occ.hex for occ in self._occurrences()))

    def usage(self, hex_value: str, extraction_id: str | None = None) -> List[ColorOccurrence]:
        hex_value = hex_value.lower()
        with self._lock:
            if extraction_id is not None:
                pool = self._by_extraction.get(extraction_id, [])
            else:
                pool = self._occurrences()
            return [occ for occ in pool if occ.hex == hex_value]

    def element_ids(
        self, hex_value: str, kind: ColorKind | None = None, extraction_id: str | None = None
    ) -> Set[str]:
        return {
            occ.element_id
            for occ in self.usage(hex_value, extraction_id)
            if kind is None or occ.kind is kind
        }

    def summary(self) -> Dict[str, Dict[str, int]]:
        """Occurrence counts per color, split by kind."""
        counts: Dict[str, Dict[str, int]] = {}
        with self._lock:
            for occ in self._occurrences():
                per_kind = counts.setdefault(occ.hex, {kind.value: 0 for kind in ColorKind})
                per_kind[occ.kind.value] += 1
        return counts

    def clear(self) -> None:
        with self._lock:
            self._by_extraction.clear()

    def __len__(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._by_extraction.values())
