"""
Per-extraction palette accumulators.

Values are kept in first-seen order and deduplicated by their normalized
string form. A fresh accumulator is created for every frame of every
extraction; nothing here is shared between concurrent extractions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional

from ..config import ExtractionLimits
from ..models import ElementStyles, Typography
from .colors import first_color, normalize_color

ZERO_LENGTHS = frozenset({"", "0", "0px", "0px 0px", "0px 0px 0px", "0px 0px 0px 0px"})


def normalize_value(value: Optional[str]) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split())


def primary_font_family(value: Optional[str]) -> str:
    family = normalize_value(value).split(",")[0].strip()
    return family.strip("\"'")


class OrderedValueSet:
    """Insertion-ordered set of normalized strings with an optional cap."""

    def __init__(self, cap: Optional[int] = None, values: Iterable[str] = ()) -> None:
        self.cap = cap
        self._values: Dict[str, None] = {}
        self.extend(values)

    def add(self, value: Optional[str]) -> bool:
        normalized = normalize_value(value)
        if not normalized or normalized in self._values:
            return False
        if self.cap is not None and len(self._values) >= self.cap:
            return False
        self._values[normalized] = None
        return True

    def extend(self, values: Iterable[str]) -> None:
        for value in values:
            self.add(value)

    def values(self) -> List[str]:
        return list(self._values)

    def __contains__(self, value: object) -> bool:
        return value in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)


@dataclass
class PaletteAccumulator:
    colors: OrderedValueSet = field(default_factory=OrderedValueSet)
    font_families: OrderedValueSet = field(default_factory=OrderedValueSet)
    font_sizes: OrderedValueSet = field(default_factory=OrderedValueSet)
    font_weights: OrderedValueSet = field(default_factory=OrderedValueSet)
    line_heights: OrderedValueSet = field(default_factory=OrderedValueSet)
    letter_spacings: OrderedValueSet = field(default_factory=OrderedValueSet)
    spacing: OrderedValueSet = field(default_factory=OrderedValueSet)
    border_radius: OrderedValueSet = field(default_factory=OrderedValueSet)

    @classmethod
    def bounded(cls, limits: ExtractionLimits) -> PaletteAccumulator:
        return cls(
            colors=OrderedValueSet(limits.max_colors),
            font_families=OrderedValueSet(limits.max_font_families),
            font_sizes=OrderedValueSet(limits.max_font_sizes),
            font_weights=OrderedValueSet(limits.max_font_weights),
            line_heights=OrderedValueSet(limits.max_line_heights),
            letter_spacings=OrderedValueSet(limits.max_letter_spacings),
            spacing=OrderedValueSet(limits.max_spacing),
            border_radius=OrderedValueSet(limits.max_border_radius),
        )

    def add_styles(self, styles: ElementStyles) -> None:
        self.colors.add(normalize_color(styles.color))
        self.colors.add(normalize_color(styles.background_color))
        for border in (styles.border_color, styles.border_top_color, styles.border_bottom_color):
            self.colors.add(first_color(border))

        self.font_families.add(primary_font_family(styles.font_family))
        self.font_sizes.add(styles.font_size)
        self.font_weights.add(styles.font_weight)
        if styles.line_height != "normal":
            self.line_heights.add(styles.line_height)
        if styles.letter_spacing != "normal":
            self.letter_spacings.add(styles.letter_spacing)

        for value in (
            styles.padding,
            styles.margin,
            styles.padding_top,
            styles.padding_right,
            styles.padding_bottom,
            styles.padding_left,
            styles.margin_top,
            styles.margin_right,
            styles.margin_bottom,
            styles.margin_left,
        ):
            if normalize_value(value) not in ZERO_LENGTHS:
                self.spacing.add(value)

        for value in (
            styles.border_radius,
            styles.border_top_left_radius,
            styles.border_top_right_radius,
            styles.border_bottom_left_radius,
            styles.border_bottom_right_radius,
        ):
            if normalize_value(value) not in ZERO_LENGTHS:
                self.border_radius.add(value)

    def merge(self, other: PaletteAccumulator) -> None:
        self.colors.extend(other.colors)
        self.font_families.extend(other.font_families)
        self.font_sizes.extend(other.font_sizes)
        self.font_weights.extend(other.font_weights)
        self.line_heights.extend(other.line_heights)
        self.letter_spacings.extend(other.letter_spacings)
        self.spacing.extend(other.spacing)
        self.border_radius.extend(other.border_radius)

    def typography(self) -> Typography:
        return Typography(
            font_families=self.font_families.values(),
            font_sizes=self.font_sizes.values(),
            font_weights=self.font_weights.values(),
            line_heights=self.line_heights.values(),
            letter_spacings=self.letter_spacings.values(),
        )
