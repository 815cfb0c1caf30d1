"""
In-page image recompression.

Photos arrive from phones at full sensor resolution. Before the page is
printed every raster photo/signature is redrawn on a canvas at the preset's
maximum edge and re-encoded as JPEG, which bounds both PDF size and the
renderer's memory. Nothing in here may fail an attempt: an image that cannot
be recompressed is printed as is.
"""

import asyncio
from typing import Any

from playwright.async_api import Page

from protocolpdf.shared.errors import ImageWaitTimeout
from protocolpdf.shared.logging import get_logger

from .presets import QualityPreset
from .target import ReadinessContract

logger = get_logger(__name__)


PRINT_STYLES = """
.pdf-page { box-shadow: none !important; }
.pdf-photo-card img { background: #ffffff !important; }
"""

OPTIMIZE_IMAGES_JS = """
async ({ selectors, untouched, maxEdge, quality, loadTimeoutMs }) => {
    const stats = { total: 0, optimized: 0, skipped: 0, failed: 0 };
    const seen = new Set();
    const images = Array.from(document.querySelectorAll(selectors.join(", "))).filter((img) => {
        if (!(img instanceof HTMLImageElement) || seen.has(img)) return false;
        seen.add(img);
        return true;
    });
    stats.total = images.length;

    // Resolves on load, error or expiry so one stuck image never blocks the batch
    const waitForLoad = (img) => new Promise((resolve) => {
        if (img.complete) {
            resolve();
            return;
        }
        const done = () => resolve();
        img.addEventListener("load", done, { once: true });
        img.addEventListener("error", done, { once: true });
        setTimeout(done, loadTimeoutMs);
    });

    for (const img of images) {
        const src = String(img.currentSrc || img.src || "");
        const isBrandAsset = untouched.some((marker) => src.includes(marker));
        const isVector = src.includes("image/svg+xml") || src.endsWith(".svg");
        if (isBrandAsset || isVector) {
            stats.skipped += 1;
            continue;
        }

        await waitForLoad(img);
        if (!img.naturalWidth || !img.naturalHeight) {
            stats.skipped += 1;
            continue;
        }

        const ratio = Math.min(1, maxEdge / Math.max(img.naturalWidth, img.naturalHeight));
        if (ratio >= 0.999) {
            stats.skipped += 1;
            continue;
        }

        const width = Math.max(1, Math.round(img.naturalWidth * ratio));
        const height = Math.max(1, Math.round(img.naturalHeight * ratio));
        const canvas = document.createElement("canvas");
        canvas.width = width;
        canvas.height = height;
        try {
            const ctx = canvas.getContext("2d", { alpha: false });
            if (!ctx) {
                stats.failed += 1;
                continue;
            }
            ctx.fillStyle = "#ffffff";
            ctx.fillRect(0, 0, width, height);
            ctx.drawImage(img, 0, 0, width, height);
            const blob = await new Promise((resolve) => canvas.toBlob(resolve, "image/jpeg", quality));
            if (!blob) {
                stats.failed += 1;
                continue;
            }
            const objectUrl = URL.createObjectURL(blob);
            img.src = objectUrl;
            await waitForLoad(img);
            URL.revokeObjectURL(objectUrl);
            stats.optimized += 1;
        } catch (err) {
            // tainted canvas or decode error: keep the original
            stats.failed += 1;
        } finally {
            canvas.width = 1;
            canvas.height = 1;
        }
    }
    return stats;
}
"""


class ImageOptimizer:
    """Downsample and recompress raster images inside a ready page."""

    def __init__(
        self,
        contract: ReadinessContract,
        image_load_timeout_ms: int = 1_500,
        timeout_ms: int = 90_000,
    ) -> None:
        self.contract = contract
        self.image_load_timeout_ms = image_load_timeout_ms
        self.timeout_ms = timeout_ms

    async def optimize(self, page: Page, preset: QualityPreset) -> dict[str, Any] | None:
        """
        Run the recompression pass. Returns per-image stats, or None when the
        pass did not complete. Never raises.
        """
        try:
            await page.add_style_tag(content=PRINT_STYLES)
        except Exception as e:
            logger.debug(f"Print style injection failed: {e}")

        try:
            stats = await self._run(page, preset)
        except ImageWaitTimeout as e:
            logger.warning(f"Image optimization abandoned: {e}")
            return None
        except Exception as e:
            logger.warning(f"Image optimization failed, printing originals: {e}")
            return None

        logger.info(
            f"Images optimized for '{preset.name}': {stats.get('optimized', 0)}/"
            f"{stats.get('total', 0)} recompressed, {stats.get('skipped', 0)} skipped, "
            f"{stats.get('failed', 0)} failed"
        )
        return stats

    async def _run(self, page: Page, preset: QualityPreset) -> dict[str, Any]:
        args = {
            "selectors": list(self.contract.optimize_selectors),
            "untouched": list(self.contract.untouched_asset_markers),
            "maxEdge": preset.image_max_edge_px,
            "quality": preset.image_quality,
            "loadTimeoutMs": self.image_load_timeout_ms,
        }
        try:
            result = await asyncio.wait_for(
                page.evaluate(OPTIMIZE_IMAGES_JS, args),
                timeout=self.timeout_ms / 1000,
            )
        except asyncio.TimeoutError as e:
            raise ImageWaitTimeout(
                f"Image optimization exceeded {self.timeout_ms} ms"
            ) from e
        return result or {}
