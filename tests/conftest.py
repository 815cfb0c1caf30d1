"""
Shared fixtures.

The render layer is exercised against an in-memory stand-in for Playwright:
FakePlaywright -> FakeBrowser -> FakeContext -> FakePage. FakePage answers
the session's in-page scripts the way the printable page would, driven by
plain attributes (content_ready, images, body_text, ...).
"""

import asyncio
import dataclasses
import re
from typing import Any, Callable

import pytest
from fastapi.testclient import TestClient
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from protocolpdf.app import build_app
from protocolpdf.config import Settings, init_settings, reset_settings
from protocolpdf.modules.render import optimizer, session
from protocolpdf.modules.render.presets import PRESETS


# =============================================================================
# FAKE PLAYWRIGHT
# =============================================================================

class FakeResponse:
    def __init__(self, status: int = 200) -> None:
        self.status = status


class FakeRequest:
    def __init__(self, url: str, headers: dict[str, str] | None = None) -> None:
        self.url = url
        self.headers = headers or {}


class FakeRoute:
    def __init__(self, request: FakeRequest) -> None:
        self.request = request
        self.continued_with: dict[str, str] | None = None

    async def continue_(self, headers: dict[str, str] | None = None) -> None:
        self.continued_with = headers


def make_image(src: str, width: int, height: int, gated: bool = True, **extra: Any) -> dict[str, Any]:
    """
    One <img>. `gated` images match the readiness photo selector; a 0x0 image
    is one that failed to load.
    """
    return {"src": src, "width": width, "height": height, "quality": None, "gated": gated, **extra}


class FakePage:
    """Printable protocol page as seen through the session's scripts."""

    def __init__(self) -> None:
        self.content_ready = True
        self.body_text = "Fahrzeugprotokoll Abholung Kennzeichen B-AV 123"
        self.images: list[dict[str, Any]] = []
        self.page_count = 3
        self.status = 200

        self.goto_error: Exception | None = None
        self.decode_error: Exception | None = None
        self.optimize_error: Exception | None = None
        self.optimize_delay: float = 0
        # One entry per page.pdf call: None succeeds, an exception is raised,
        # a number is a delay in seconds before succeeding
        self.pdf_plan: list[Any] = []

        self.routes: list[tuple[Callable[[str], bool], Any]] = []
        self.visited: list[str] = []
        self.goto_kwargs: dict[str, Any] = {}
        self.waits: list[tuple[str, int]] = []
        self.styles: list[str] = []
        self.media: str | None = None
        self.pdf_calls: list[dict[str, Any]] = []

    async def route(self, matcher: Callable[[str], bool], handler: Any) -> None:
        self.routes.append((matcher, handler))

    async def goto(self, url: str, **kwargs: Any) -> FakeResponse:
        self.visited.append(url)
        self.goto_kwargs = kwargs
        if self.goto_error:
            raise self.goto_error
        return FakeResponse(self.status)

    async def wait_for_function(self, expression: str, arg: Any = None, timeout: int | None = None) -> None:
        if expression == session.CONTENT_READY_JS:
            self.waits.append(("content", timeout))
            ready = self.content_ready and arg["loadingText"] not in self.body_text
        else:
            self.waits.append(("photos", timeout))
            ready = all(img["width"] > 0 and img["height"] > 0 for img in self.images if img["gated"])
        if not ready:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")

    async def evaluate(self, expression: str, arg: Any = None) -> Any:
        if expression == session.PAGE_TEXT_JS:
            return re.sub(r"\s+", " ", self.body_text).strip()[:arg]
        if expression == session.DECODE_IMAGES_JS:
            if self.decode_error:
                raise self.decode_error
            return len(self.images)
        if expression == optimizer.OPTIMIZE_IMAGES_JS:
            if self.optimize_delay:
                await asyncio.sleep(self.optimize_delay)
            if self.optimize_error:
                raise self.optimize_error
            return self._optimize(arg)
        raise AssertionError(f"unexpected script: {expression[:40]}")

    def _optimize(self, args: dict[str, Any]) -> dict[str, int]:
        """Python rendition of the in-page recompression pass."""
        stats = {"total": len(self.images), "optimized": 0, "skipped": 0, "failed": 0}
        for img in self.images:
            src = img["src"]
            if any(marker in src for marker in args["untouched"]) or src.endswith(".svg"):
                stats["skipped"] += 1
                continue
            if not img["width"] or not img["height"]:
                stats["skipped"] += 1
                continue
            ratio = min(1, args["maxEdge"] / max(img["width"], img["height"]))
            if ratio >= 0.999:
                stats["skipped"] += 1
                continue
            if img.get("tainted"):
                stats["failed"] += 1
                continue
            img["width"] = max(1, round(img["width"] * ratio))
            img["height"] = max(1, round(img["height"] * ratio))
            img["quality"] = args["quality"]
            stats["optimized"] += 1
        return stats

    async def add_style_tag(self, content: str) -> None:
        self.styles.append(content)

    async def emulate_media(self, media: str) -> None:
        self.media = media

    async def pdf(self, **options: Any) -> bytes:
        self.pdf_calls.append(options)
        step = self.pdf_plan[len(self.pdf_calls) - 1] if len(self.pdf_calls) <= len(self.pdf_plan) else None
        if isinstance(step, Exception):
            raise step
        if isinstance(step, (int, float)):
            await asyncio.sleep(step)
        photos = sum(1 for img in self.images if "/photos/" in img["src"])
        return f"%PDF-1.7 pages={self.page_count} photos={photos} scale={options['scale']}".encode()


class FakeContext:
    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.closed = False
        self.close_error: Exception | None = None

    async def new_page(self) -> FakePage:
        return self.page

    async def close(self) -> None:
        self.closed = True
        if self.close_error:
            raise self.close_error


class FakeBrowser:
    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.contexts: list[FakeContext] = []
        self.context_kwargs: dict[str, Any] = {}
        self.closed = False
        self.close_error: Exception | None = None

    async def new_context(self, **kwargs: Any) -> FakeContext:
        self.context_kwargs = kwargs
        context = FakeContext(self.page)
        self.contexts.append(context)
        return context

    async def close(self) -> None:
        self.closed = True
        if self.close_error:
            raise self.close_error


class FakeChromium:
    def __init__(self, owner: "FakePlaywright") -> None:
        self.owner = owner

    async def launch(self, **kwargs: Any) -> FakeBrowser:
        self.owner.launch_kwargs = kwargs
        if self.owner.launch_error:
            raise self.owner.launch_error
        browser = FakeBrowser(self.owner.page_for_launch())
        browser.close_error = self.owner.browser_close_error
        self.owner.browsers.append(browser)
        self.owner.peak_open = max(self.owner.peak_open, self.owner.open_browsers())
        return browser


class FakePlaywright:
    """
    Stands in for `async_playwright`. Calling the instance mimics
    `async_playwright()`, `.start()` returns the driver.
    """

    def __init__(self) -> None:
        self.pages: list[FakePage] = [FakePage()]
        self.chromium = FakeChromium(self)
        self.browsers: list[FakeBrowser] = []
        self.launch_kwargs: dict[str, Any] = {}
        self.launch_error: Exception | None = None
        self.browser_close_error: Exception | None = None
        self.peak_open = 0
        self.starts = 0
        self.stops = 0

    @property
    def page(self) -> FakePage:
        return self.pages[0]

    def page_for_launch(self) -> FakePage:
        # Successive launches get successive pages; the last one is reused
        index = min(len(self.browsers), len(self.pages) - 1)
        return self.pages[index]

    def open_browsers(self) -> int:
        return sum(1 for browser in self.browsers if not browser.closed)

    def __call__(self) -> "FakePlaywright":
        return self

    async def start(self) -> "FakePlaywright":
        self.starts += 1
        return self

    async def stop(self) -> None:
        self.stops += 1


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def fake_playwright() -> FakePlaywright:
    return FakePlaywright()


@pytest.fixture
def instant_presets() -> dict:
    """Real presets without the settle delay."""
    return {
        name: dataclasses.replace(preset, render_settle_delay_ms=0)
        for name, preset in PRESETS.items()
    }


@pytest.fixture
def protocol_photos() -> list[dict[str, Any]]:
    """Checklist c1: 4 pickup + 2 dropoff photos, a signature, logo and sketch."""
    return [
        make_image("https://app.example.com/photos/pickup-front.jpg", 4032, 3024),
        make_image("https://app.example.com/photos/pickup-back.jpg", 4032, 3024),
        make_image("https://app.example.com/photos/pickup-left.jpg", 3024, 4032),
        make_image("https://app.example.com/photos/pickup-right.jpg", 4000, 2250),
        make_image("https://app.example.com/photos/dropoff-front.jpg", 4032, 3024),
        make_image("https://app.example.com/photos/dropoff-odometer.jpg", 1600, 1200),
        make_image("blob:https://app.example.com/signature-1", 900, 300),
        make_image("https://app.example.com/logo.png", 2400, 800),
        make_image("https://app.example.com/vehicle-sketch.svg", 1200, 800),
    ]


@pytest.fixture
def settings() -> Settings:
    reset_settings()
    configured = init_settings(Settings(
        public_site_url="https://app.example.com/",
        data_api_url=None,
    ))
    yield configured
    reset_settings()


@pytest.fixture
def app(settings: Settings):
    return build_app(settings)


@pytest.fixture
def client(app) -> TestClient:
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
