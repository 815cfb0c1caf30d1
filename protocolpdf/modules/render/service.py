"""Render service - protocol page to PDF with quality fallback."""

import re
from collections.abc import Mapping
from typing import Any, Callable

from playwright.async_api import async_playwright

from protocolpdf.shared.errors import AggregateFailure
from protocolpdf.shared.logging import get_logger

from .auth import AuthInjectionPolicy
from .presets import PRESETS, QualityPreset, fallback_order
from .schemas import PdfAttachment, RenderAttemptResult, RenderOutcome, RenderRequest
from .session import BrowserRenderSession
from .target import BrowserOptions, ReadinessContract, RenderTarget, RenderTimeouts

logger = get_logger(__name__)

DEFAULT_DATA_PROXY_PATHS = ("/api/supabase-rest", "/api/supabase-auth")

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class RenderService:
    """
    Coordinates render attempts for one protocol.

    Tiers are tried strictly one after another, one attempt each, so a request
    never holds more than one browser and worst-case latency stays at
    (number of tiers x per-attempt bound).
    """

    def __init__(
        self,
        contract: ReadinessContract | None = None,
        timeouts: RenderTimeouts | None = None,
        browser_options: BrowserOptions | None = None,
        data_proxy_paths: tuple[str, ...] | list[str] = DEFAULT_DATA_PROXY_PATHS,
        presets: Mapping[str, QualityPreset] = PRESETS,
        playwright_factory: Callable[[], Any] = async_playwright,
    ) -> None:
        self.contract = contract or ReadinessContract()
        self.timeouts = timeouts or RenderTimeouts()
        self.browser_options = browser_options or BrowserOptions()
        self.data_proxy_paths = tuple(data_proxy_paths)
        self.presets = presets
        self._playwright_factory = playwright_factory

    async def render(self, request: RenderRequest) -> RenderOutcome:
        """
        Render a protocol PDF.

        Returns the first successful tier's PDF. Raises AggregateFailure when
        every tier failed.
        """
        tiers = fallback_order(request.desired_quality or "normal")
        target = RenderTarget(site_url=request.site_url, url_template=request.print_url_template)
        policy = AuthInjectionPolicy.for_bearer(
            request.site_url, request.caller_credential, self.data_proxy_paths
        )

        logger.info(f"Rendering protocol {request.checklist_id}, tiers: {' -> '.join(tiers)}")

        failures: list[str] = []
        for tier in tiers:
            result = await self.attempt(request.checklist_id, tier, target, policy)
            if result.success and result.pdf is not None:
                logger.info(
                    f"Protocol {request.checklist_id} rendered at '{tier}': {len(result.pdf)} bytes"
                )
                return RenderOutcome(pdf=result.pdf, quality_used=tier, attempts=failures)
            failures.append(f"{tier}: {result.reason or 'unknown'}")

        logger.error(f"Protocol {request.checklist_id} could not be rendered: {failures}")
        raise AggregateFailure(failures)

    async def attempt(
        self,
        checklist_id: str,
        tier: str,
        target: RenderTarget,
        policy: AuthInjectionPolicy,
    ) -> RenderAttemptResult:
        """Run a single tier attempt in its own browser."""
        session = self.create_session(checklist_id, tier, target, policy)
        return await session.run()

    def create_session(
        self,
        checklist_id: str,
        tier: str,
        target: RenderTarget,
        policy: AuthInjectionPolicy,
    ) -> BrowserRenderSession:
        preset = self.presets[tier]
        return BrowserRenderSession(
            target=target,
            checklist_id=checklist_id,
            preset=preset,
            auth_policy=policy,
            contract=self.contract,
            timeouts=self.timeouts,
            browser_options=self.browser_options,
            playwright_factory=self._playwright_factory,
        )


def safe_file_id(value: str) -> str:
    """Replace everything outside [A-Za-z0-9._-] so the id is filename-safe."""
    return _UNSAFE_FILENAME_CHARS.sub("_", str(value))


def build_pdf_filename(file_id: str, prefix: str = "protokoll") -> str:
    return f"{prefix}-{safe_file_id(file_id)}.pdf"


def build_attachment(outcome: RenderOutcome, file_id: str, prefix: str = "protokoll") -> PdfAttachment:
    """Package a rendered PDF for delivery as a download or email attachment."""
    return PdfAttachment(filename=build_pdf_filename(file_id, prefix), content=outcome.pdf)
