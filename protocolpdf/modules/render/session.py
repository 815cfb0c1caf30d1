"""
One render attempt against the application's printable page.

A session owns exactly one Chromium process. It launches it, injects the
caller's credential into the page's data requests, waits for the page to
finish building itself, recompresses photos, switches to print media and
exports. Whatever happens, the browser is closed before `run()` returns.
"""

import asyncio
from enum import Enum
from typing import Any, Callable

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page, Route
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from protocolpdf.shared.errors import (
    LaunchFailure,
    NavigationFailure,
    RenderFailure,
    RenderTimeout,
)
from protocolpdf.shared.logging import get_logger

from .auth import AuthInjectionPolicy
from .exporter import PdfExporter
from .optimizer import ImageOptimizer
from .presets import QualityPreset
from .schemas import RenderAttemptResult
from .target import BrowserOptions, ReadinessContract, RenderTarget, RenderTimeouts

logger = get_logger(__name__)

PAGE_TEXT_SNIPPET_CHARS = 240


class SessionState(str, Enum):
    LAUNCHING = "launching"
    AUTH_INJECTED = "auth_injected"
    NAVIGATED = "navigated"
    WAITING_READY = "waiting_ready"
    IMAGES_OPTIMIZED = "images_optimized"
    PRINT_MODE = "print_mode"
    EXPORTED = "exported"
    FAILED = "failed"
    CLOSED = "closed"


# =============================================================================
# IN-PAGE PREDICATES
# =============================================================================

CONTENT_READY_JS = """
({ marker, loadingText }) => {
    const hasContent = !!document.querySelector(marker);
    const text = String((document.body && document.body.innerText) || "");
    return hasContent && !text.includes(loadingText);
}
"""

PHOTOS_READY_JS = """
(selector) => {
    const images = Array.from(document.querySelectorAll(selector));
    return images.every((img) => img.complete && img.naturalWidth > 0 && img.naturalHeight > 0);
}
"""

DECODE_IMAGES_JS = """
async ({ selector, timeoutMs }) => {
    const images = Array.from(document.querySelectorAll(selector));
    await Promise.all(images.map((img) => {
        if (typeof img.decode !== "function") return null;
        const expiry = new Promise((resolve) => setTimeout(resolve, timeoutMs));
        return Promise.race([img.decode().catch(() => null), expiry]);
    }));
    return images.length;
}
"""

PAGE_TEXT_JS = """
(limit) => String((document.body && document.body.innerText) || "").replace(/\\s+/g, " ").trim().slice(0, limit)
"""


class BrowserRenderSession:
    """Render one checklist at one quality tier."""

    def __init__(
        self,
        target: RenderTarget,
        checklist_id: str,
        preset: QualityPreset,
        auth_policy: AuthInjectionPolicy | None = None,
        contract: ReadinessContract | None = None,
        timeouts: RenderTimeouts | None = None,
        browser_options: BrowserOptions | None = None,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self.target = target
        self.checklist_id = checklist_id
        self.preset = preset
        self.auth_policy = auth_policy or AuthInjectionPolicy()
        self.contract = contract or ReadinessContract()
        self.timeouts = timeouts or RenderTimeouts()
        self.browser_options = browser_options or BrowserOptions()
        self._playwright_factory = playwright_factory

        self.optimizer = ImageOptimizer(
            self.contract,
            image_load_timeout_ms=self.timeouts.image_load_ms,
            timeout_ms=self.timeouts.optimize_ms,
        )
        self.exporter = PdfExporter(timeout_ms=self.timeouts.export_ms)

        self.state: SessionState | None = None
        self.transitions: list[SessionState] = []
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None

    @property
    def url(self) -> str:
        return self.target.url_for(self.checklist_id)

    async def run(self) -> RenderAttemptResult:
        """Run the attempt. Never raises for render problems; always closes the browser."""
        quality = self.preset.name
        try:
            pdf = await self._render()
        except RenderFailure as e:
            self._transition(SessionState.FAILED)
            logger.warning(f"Render attempt '{quality}' for {self.checklist_id} failed: {e.message}")
            result = RenderAttemptResult.failed(quality, e.message, code=e.code)
        except Exception as e:
            self._transition(SessionState.FAILED)
            logger.exception(f"Render attempt '{quality}' for {self.checklist_id} crashed")
            result = RenderAttemptResult.failed(quality, str(e) or type(e).__name__)
        else:
            result = RenderAttemptResult.ok(quality, pdf)
        finally:
            await self._close()
            self._transition(SessionState.CLOSED)
        return result

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    async def _render(self) -> bytes:
        self._transition(SessionState.LAUNCHING)
        page = await self._launch()

        await self._inject_auth(page)
        self._transition(SessionState.AUTH_INJECTED)

        await self._navigate(page)
        self._transition(SessionState.NAVIGATED)

        self._transition(SessionState.WAITING_READY)
        await self._wait_until_ready(page)
        await self._decode_images(page)

        await self.optimizer.optimize(page, self.preset)
        self._transition(SessionState.IMAGES_OPTIMIZED)

        await asyncio.sleep(self.preset.render_settle_delay_ms / 1000)

        await page.emulate_media(media="print")
        self._transition(SessionState.PRINT_MODE)

        pdf = await self.exporter.export(page, self.preset)
        self._transition(SessionState.EXPORTED)
        return pdf

    async def _launch(self) -> Page:
        options = self.browser_options
        try:
            self._playwright = await self._playwright_factory().start()
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                chromium_sandbox=options.sandbox,
                args=list(options.args),
            )
            self._context = await self._browser.new_context(
                viewport={"width": options.viewport_width, "height": options.viewport_height},
                device_scale_factor=self.preset.viewport_scale,
                ignore_https_errors=options.ignore_https_errors,
            )
            return await self._context.new_page()
        except Exception as e:
            raise LaunchFailure(f"Browser launch failed: {e}") from e

    async def _inject_auth(self, page: Page) -> None:
        policy = self.auth_policy
        if policy.empty:
            return

        async def attach_credentials(route: Route) -> None:
            request = route.request
            await route.continue_(headers=policy.apply(request.url, request.headers))

        await page.route(policy.matches, attach_credentials)

    async def _navigate(self, page: Page) -> None:
        url = self.url
        try:
            response = await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self.timeouts.navigation_ms,
            )
        except Exception as e:
            raise NavigationFailure(f"Navigation to print page failed: {e}") from e
        if response is not None and response.status >= 400:
            raise NavigationFailure(f"Print page answered HTTP {response.status}")

    async def _wait_until_ready(self, page: Page) -> None:
        contract = self.contract
        try:
            await page.wait_for_function(
                CONTENT_READY_JS,
                arg={"marker": contract.marker_selector, "loadingText": contract.loading_text},
                timeout=self.timeouts.ready_ms,
            )
        except PlaywrightTimeoutError as e:
            raise await self._timeout(page, "content", self.timeouts.ready_ms) from e

        # Blank photo tiles must not make it into the PDF
        try:
            await page.wait_for_function(
                PHOTOS_READY_JS,
                arg=contract.photo_selector,
                timeout=self.timeouts.images_ms,
            )
        except PlaywrightTimeoutError as e:
            raise await self._timeout(page, "photos", self.timeouts.images_ms) from e

    async def _decode_images(self, page: Page) -> None:
        """Best-effort decode barrier."""
        try:
            await asyncio.wait_for(
                page.evaluate(
                    DECODE_IMAGES_JS,
                    {"selector": self.contract.photo_selector, "timeoutMs": self.timeouts.decode_ms},
                ),
                timeout=self.timeouts.decode_ms / 1000 + 5,
            )
        except (asyncio.TimeoutError, PlaywrightError) as e:
            logger.debug(f"Image decode barrier incomplete: {e}")

    async def _timeout(self, page: Page, what: str, bound_ms: int) -> RenderTimeout:
        snippet = await self._page_text(page)
        return RenderTimeout(
            f"Render timeout waiting for {what} after {bound_ms} ms. Page: {snippet or 'empty'}",
            page_text=snippet,
        )

    async def _page_text(self, page: Page) -> str:
        try:
            text = await asyncio.wait_for(
                page.evaluate(PAGE_TEXT_JS, PAGE_TEXT_SNIPPET_CHARS), timeout=5
            )
        except (asyncio.TimeoutError, PlaywrightError) as e:
            logger.debug(f"Could not read page text: {e}")
            return ""
        return str(text or "")

    # -------------------------------------------------------------------------
    # Cleanup
    # -------------------------------------------------------------------------

    async def _close(self) -> None:
        """Release the browser. Errors are logged and dropped so they never mask the outcome."""
        timeout = self.timeouts.close_ms / 1000
        for name, resource in (("context", self._context), ("browser", self._browser)):
            if resource is None:
                continue
            try:
                await asyncio.wait_for(resource.close(), timeout=timeout)
            except Exception as e:
                logger.debug(f"Ignoring {name} close error: {e}")

        if self._playwright is not None:
            try:
                await asyncio.wait_for(self._playwright.stop(), timeout=timeout)
            except Exception as e:
                logger.debug(f"Ignoring playwright stop error: {e}")

        self._context = None
        self._browser = None
        self._playwright = None

    def _transition(self, state: SessionState) -> None:
        self.state = state
        self.transitions.append(state)
        logger.debug(f"Session {self.checklist_id}/{self.preset.name} -> {state.value}")
