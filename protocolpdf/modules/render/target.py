"""
What gets rendered and how we know it is ready.

The printable page owns its own data fetching and layout. The renderer only
relies on the contract below: a marker element, a loading text that must
disappear, and a set of images that must be fully loaded.
"""

from dataclasses import dataclass
from urllib.parse import quote

DEFAULT_PRINT_URL_TEMPLATE = "{site_url}/protocol-pdf?checklistId={checklist_id}"


def normalize_site_url(site_url: str) -> str:
    return str(site_url).rstrip("/")


@dataclass(frozen=True)
class RenderTarget:
    site_url: str
    url_template: str = DEFAULT_PRINT_URL_TEMPLATE

    def url_for(self, checklist_id: str) -> str:
        return self.url_template.format(
            site_url=normalize_site_url(self.site_url),
            checklist_id=quote(str(checklist_id), safe=""),
        )


@dataclass(frozen=True)
class ReadinessContract:
    marker_selector: str = ".pdf-page"
    loading_text: str = "Protokoll wird geladen"
    photo_selector: str = ".pdf-page img"
    optimize_selectors: tuple[str, ...] = (
        ".pdf-photo-card img",
        ".pdf-signature-box img",
        ".pdf-page img",
    )
    # Brand and vector assets that are never recompressed
    untouched_asset_markers: tuple[str, ...] = ("/logo.", "/vehicle-sketch.svg")


@dataclass(frozen=True)
class RenderTimeouts:
    """Upper bounds, in milliseconds, for every wait in a render attempt."""
    navigation_ms: int = 120_000
    ready_ms: int = 120_000
    images_ms: int = 180_000
    image_load_ms: int = 1_500
    decode_ms: int = 10_000
    optimize_ms: int = 90_000
    export_ms: int = 120_000
    close_ms: int = 10_000


@dataclass(frozen=True)
class BrowserOptions:
    viewport_width: int = 1440
    viewport_height: int = 2200
    sandbox: bool = True
    args: tuple[str, ...] = ("--disable-gpu", "--disable-dev-shm-usage")
    ignore_https_errors: bool = True
