"""
Tests for color normalization and palette accumulation.
"""

import pytest
from stylesnap.config import ExtractionLimits
from stylesnap.extraction.colors import first_color, normalize_color, parse_rgb
from stylesnap.extraction.palette import OrderedValueSet, PaletteAccumulator, primary_font_family
from stylesnap.models import ElementStyles


class TestColorNormalization:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("rgb(255, 0, 0)", "#ff0000"),
            ("rgba(37, 99, 235, 0.5)", "#2563eb80"),
            ("rgb(37 99 235 / 50%)", "#2563eb80"),
            ("rgba(37, 99, 235, 1)", "#2563eb"),
            ("#FFF", "#ffffff"),
            ("#2563EB", "#2563eb"),
            ("#2563eb80", "#2563eb80"),
            ("#2563ebff", "#2563eb"),
            ("#0008", "#00000088"),
            ("Red", "#ff0000"),
            ("  white ", "#ffffff"),
        ],
    )
    def test_values_reduce_to_lowercase_hex(self, value, expected):
        assert normalize_color(value) == expected

    @pytest.mark.parametrize(
        "value",
        ["transparent", "rgba(0, 0, 0, 0)", "#00000000", "currentcolor", "", None, "not-a-color", "rgb(a, b, c)"],
    )
    def test_invisible_or_unparseable_values_are_dropped(self, value):
        assert normalize_color(value) is None

    def test_parse_rgb_clamps_channels(self):
        assert parse_rgb("rgb(300, -5, 100%)") == (255, 0, 255, 1.0)

    def test_first_color_of_multi_value_border(self):
        assert first_color("rgb(0, 0, 0) rgb(255, 255, 255)") == "#000000"
        assert first_color("transparent rgb(255, 0, 0)") == "#ff0000"
        assert first_color("") is None


class TestOrderedValueSet:
    def test_deduplicates_by_normalized_string(self):
        values = OrderedValueSet()
        assert values.add("8px  16px")
        assert not values.add("8px 16px")
        assert not values.add("")
        assert values.values() == ["8px 16px"]

    def test_cap_keeps_first_seen(self):
        values = OrderedValueSet(cap=2, values=["a", "b", "c"])
        assert values.values() == ["a", "b"]
        assert "c" not in values


class TestPaletteAccumulator:
    def test_equivalent_colors_collapse_to_one_entry(self):
        palette = PaletteAccumulator()
        palette.add_styles(ElementStyles(color="rgb(255, 0, 0)", background_color="#FF0000"))
        palette.add_styles(ElementStyles(color="red", background_color="rgba(0, 0, 0, 0)"))
        assert palette.colors.values() == ["#ff0000"]

    def test_translucent_color_stays_distinct_from_opaque(self):
        palette = PaletteAccumulator()
        palette.add_styles(ElementStyles(color="rgb(0, 0, 0)", background_color="rgba(0, 0, 0, 0.5)"))
        palette.add_styles(ElementStyles(color="#000", background_color="#00000080"))
        assert palette.colors.values() == ["#000000", "#00000080"]

    def test_zero_spacing_and_normal_typography_are_skipped(self):
        palette = PaletteAccumulator()
        palette.add_styles(
            ElementStyles(
                font_family='"Inter", system-ui, sans-serif',
                font_size="16px",
                font_weight="400",
                line_height="normal",
                letter_spacing="normal",
                padding="0px",
                margin="0px 0px 0px 0px",
                border_radius="0px",
            )
        )
        palette.add_styles(ElementStyles(line_height="24px", letter_spacing="0.5px", padding="8px", border_radius="6px"))

        typography = palette.typography()
        assert typography.font_families == ["Inter"]
        assert typography.font_sizes == ["16px"]
        assert typography.line_heights == ["24px"]
        assert typography.letter_spacings == ["0.5px"]
        assert palette.spacing.values() == ["8px"]
        assert palette.border_radius.values() == ["6px"]

    def test_bounded_accumulator_respects_limits(self):
        limits = ExtractionLimits(max_colors=2)
        palette = PaletteAccumulator.bounded(limits)
        for value in ("#111111", "#222222", "#333333"):
            palette.add_styles(ElementStyles(color=value))
        assert palette.colors.values() == ["#111111", "#222222"]

    def test_merge_preserves_first_seen_order(self):
        first = PaletteAccumulator()
        first.add_styles(ElementStyles(color="#111111"))
        second = PaletteAccumulator()
        second.add_styles(ElementStyles(color="#222222", background_color="#111111"))

        merged = PaletteAccumulator()
        merged.merge(first)
        merged.merge(second)
        assert merged.colors.values() == ["#111111", "#222222"]

    def test_primary_font_family_strips_quotes(self):
        assert primary_font_family("'Helvetica Neue', Arial") == "Helvetica Neue"
        assert primary_font_family(None) == ""
