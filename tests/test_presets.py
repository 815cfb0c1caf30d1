"""Tests for quality presets and the fallback chain."""

import pytest

from protocolpdf.modules.render.presets import (
    PRESETS,
    fallback_order,
    normalize_quality,
    resolve_preset,
)


class TestFallbackOrder:
    """Tier ordering."""

    @pytest.mark.parametrize("requested", ["high", "normal", "economy", None, "", "ultra", "  HIGH "])
    def test_chain_always_ends_with_cheap_tiers(self, requested) -> None:
        order = fallback_order(requested)

        assert "normal" in order
        assert "economy" in order
        assert len(order) == len(set(order))

    def test_high_tries_every_tier(self) -> None:
        assert fallback_order("high") == ["high", "normal", "economy"]

    def test_economy_still_retries_normal(self) -> None:
        assert fallback_order("economy") == ["economy", "normal"]

    def test_normal(self) -> None:
        assert fallback_order("normal") == ["normal", "economy"]

    def test_unknown_starts_at_normal(self) -> None:
        assert fallback_order("ultra") == ["normal", "economy"]
        assert fallback_order(None) == ["normal", "economy"]

    def test_low_is_economy(self) -> None:
        assert fallback_order("low") == ["economy", "normal"]


class TestResolvePreset:
    """Name to preset mapping."""

    def test_unknown_name_resolves_to_normal(self) -> None:
        assert resolve_preset("definitely-not-a-tier") == PRESETS["normal"]
        assert resolve_preset(None) == PRESETS["normal"]

    def test_names_are_case_and_space_insensitive(self) -> None:
        assert resolve_preset(" High ").name == "high"
        assert normalize_quality("ECONOMY") == "economy"

    def test_cost_decreases_by_tier(self) -> None:
        high, normal, economy = PRESETS["high"], PRESETS["normal"], PRESETS["economy"]

        assert high.viewport_scale > normal.viewport_scale > economy.viewport_scale
        assert high.image_max_edge_px > normal.image_max_edge_px > economy.image_max_edge_px
        assert high.image_quality > normal.image_quality > economy.image_quality
        assert high.render_settle_delay_ms > normal.render_settle_delay_ms > economy.render_settle_delay_ms

    def test_high_preset_values(self) -> None:
        high = PRESETS["high"]

        assert high.image_max_edge_px == 1800
        assert high.image_quality == pytest.approx(0.9)
        assert high.fallback_pdf_scale < high.pdf_scale
