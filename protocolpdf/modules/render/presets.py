"""
Quality presets and the tier fallback chain.

A preset bundles everything that trades fidelity for speed and output size:
the device scale the page is rasterized at, the PDF scale, how long to let
layout settle and how hard embedded photos are recompressed.
"""

from dataclasses import dataclass

HIGH = "high"
NORMAL = "normal"
ECONOMY = "economy"

# Accepted spellings that map onto a canonical tier
_ALIASES = {"low": ECONOMY}


@dataclass(frozen=True)
class QualityPreset:
    """Concrete rendering parameters for one quality tier."""
    name: str
    viewport_scale: float
    pdf_scale: float
    fallback_pdf_scale: float
    render_settle_delay_ms: int
    image_max_edge_px: int
    image_quality: float


PRESETS: dict[str, QualityPreset] = {
    HIGH: QualityPreset(
        name=HIGH,
        viewport_scale=1.35,
        pdf_scale=1.0,
        fallback_pdf_scale=0.94,
        render_settle_delay_ms=1000,
        image_max_edge_px=1800,
        image_quality=0.9,
    ),
    NORMAL: QualityPreset(
        name=NORMAL,
        viewport_scale=1.2,
        pdf_scale=1.0,
        fallback_pdf_scale=0.9,
        render_settle_delay_ms=800,
        image_max_edge_px=1500,
        image_quality=0.84,
    ),
    ECONOMY: QualityPreset(
        name=ECONOMY,
        viewport_scale=1.0,
        pdf_scale=0.92,
        fallback_pdf_scale=0.84,
        render_settle_delay_ms=500,
        image_max_edge_px=1200,
        image_quality=0.76,
    ),
}


def normalize_quality(name: str | None) -> str:
    """Map free-form input onto a tier name. Anything unknown becomes normal."""
    normalized = str(name or NORMAL).strip().lower()
    normalized = _ALIASES.get(normalized, normalized)
    return normalized if normalized in PRESETS else NORMAL


def resolve_preset(name: str | None) -> QualityPreset:
    """Return the preset for a tier name. Never raises."""
    return PRESETS[normalize_quality(name)]


def fallback_order(requested: str | None) -> list[str]:
    """
    Tiers to try, in order, for a requested quality.

    Always ends with the cheap tiers so a degraded PDF is attempted before
    giving up:

        fallback_order("high")    -> ["high", "normal", "economy"]
        fallback_order("economy") -> ["economy", "normal"]
    """
    order: list[str] = []
    for tier in (normalize_quality(requested), NORMAL, ECONOMY):
        if tier not in order:
            order.append(tier)
    return order
