"""PDF export with a fixed-format fallback."""

import asyncio
from typing import Any

from playwright.async_api import Page

from protocolpdf.shared.errors import ExportFailure
from protocolpdf.shared.logging import get_logger

from .presets import QualityPreset

logger = get_logger(__name__)


def build_pdf_options(preset: QualityPreset) -> list[dict[str, Any]]:
    """
    Parameter sets to try, in order.

    CSS-driven pagination fails on some content-height edge cases; the second
    set prints on plain A4 with a small inset instead.
    """
    return [
        {
            "format": "A4",
            "print_background": True,
            "prefer_css_page_size": True,
            "scale": preset.pdf_scale,
            "margin": {"top": "0mm", "right": "0mm", "bottom": "0mm", "left": "0mm"},
        },
        {
            "format": "A4",
            "print_background": True,
            "prefer_css_page_size": False,
            "scale": preset.fallback_pdf_scale,
            "margin": {"top": "6mm", "right": "6mm", "bottom": "6mm", "left": "6mm"},
        },
    ]


class PdfExporter:
    """Export a ready page to PDF bytes."""

    def __init__(self, timeout_ms: int = 120_000) -> None:
        self.timeout_ms = timeout_ms

    async def export(self, page: Page, preset: QualityPreset) -> bytes:
        last_error: Exception | None = None
        for index, options in enumerate(build_pdf_options(preset)):
            try:
                pdf = await asyncio.wait_for(
                    page.pdf(**options),
                    timeout=self.timeout_ms / 1000,
                )
            except asyncio.TimeoutError:
                last_error = TimeoutError(f"page.pdf exceeded {self.timeout_ms} ms")
                logger.warning(f"PDF export option set {index} timed out")
                continue
            except Exception as e:
                last_error = e
                logger.warning(f"PDF export option set {index} failed: {e}")
                continue

            logger.info(f"Generated PDF with option set {index}: {len(pdf)} bytes")
            return bytes(pdf)

        raise ExportFailure(
            f"PDF export failed: {last_error or 'no option set succeeded'}"
        ) from last_error
