"""DOM extraction, palette aggregation and snapshot assembly."""

from .assembler import SnapshotAssembler, collect_occurrences
from .color_index import InMemoryColorUsageIndex
from .colors import normalize_color
from .dom_extractor import DomExtractor, FrameExtraction, is_same_origin
from .palette import OrderedValueSet, PaletteAccumulator

__all__ = [
    "DomExtractor",
    "FrameExtraction",
    "InMemoryColorUsageIndex",
    "OrderedValueSet",
    "PaletteAccumulator",
    "SnapshotAssembler",
    "collect_occurrences",
    "is_same_origin",
    "normalize_color",
]
