"""Render module routes."""

import asyncio
import base64
from typing import Callable

from fastapi import APIRouter, Depends, Header, Request, Response

from protocolpdf.config import Settings, get_settings
from protocolpdf.modules.checklists import ChecklistClient, ChecklistClientError, ChecklistRecord
from protocolpdf.shared.errors import AuthenticationError, NotFoundError, UpstreamError
from protocolpdf.shared.logging import get_logger

from .schemas import ProtocolPdfAttachmentResponse, ProtocolPdfRequest, RenderRequest
from .service import RenderService, build_attachment
from .target import BrowserOptions, ReadinessContract, RenderTimeouts, normalize_site_url

logger = get_logger(__name__)
router = APIRouter(prefix="/protocols", tags=["protocols"])

ChecklistLookup = Callable[[str, str], ChecklistRecord | None]


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_service() -> RenderService:
    """Build the coordinator from settings."""
    settings = get_settings()
    return RenderService(
        contract=ReadinessContract(
            marker_selector=settings.ready_marker_selector,
            loading_text=settings.loading_text,
            photo_selector=settings.photo_selector,
            optimize_selectors=tuple(settings.optimize_selectors),
            untouched_asset_markers=tuple(settings.untouched_asset_markers),
        ),
        timeouts=RenderTimeouts(
            navigation_ms=settings.navigation_timeout_ms,
            ready_ms=settings.ready_timeout_ms,
            images_ms=settings.images_timeout_ms,
            image_load_ms=settings.image_load_timeout_ms,
            decode_ms=settings.decode_timeout_ms,
            optimize_ms=settings.optimize_timeout_ms,
            export_ms=settings.export_timeout_ms,
            close_ms=settings.close_timeout_ms,
        ),
        browser_options=BrowserOptions(
            viewport_width=settings.viewport_width,
            viewport_height=settings.viewport_height,
            sandbox=settings.browser_sandbox,
            args=tuple(settings.browser_args),
            ignore_https_errors=settings.ignore_https_errors,
        ),
        data_proxy_paths=settings.data_proxy_paths,
    )


def get_checklist_lookup() -> ChecklistLookup:
    """
    Checklist lookup bound to the configured data proxy.

    Without a data proxy URL the checklist is assumed to exist and the PDF is
    named after the checklist id.
    """
    settings = get_settings()

    def lookup(checklist_id: str, token: str) -> ChecklistRecord | None:
        if not settings.data_api_url:
            return ChecklistRecord(id=checklist_id)
        return ChecklistClient(settings.data_api_url, token=token).fetch_checklist(checklist_id)

    return lookup


def resolve_public_site_url(request: Request, settings: Settings) -> str:
    """Configured public URL, else the URL the caller reached us on."""
    if settings.public_site_url:
        return normalize_site_url(settings.public_site_url)
    proto = request.headers.get("x-forwarded-proto", "https").split(",")[0].strip() or "https"
    host = request.headers.get("x-forwarded-host") or request.headers.get("host") or "localhost"
    return f"{proto}://{normalize_site_url(host.split(',')[0].strip())}"


def extract_bearer_token(authorization: str | None) -> str:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Bearer token required")
    return token.strip()


# =============================================================================
# ROUTES
# =============================================================================

@router.post("/pdf", response_model=None)
async def export_protocol_pdf(
    body: ProtocolPdfRequest,
    request: Request,
    authorization: str | None = Header(default=None),
    service: RenderService = Depends(get_service),
    lookup: ChecklistLookup = Depends(get_checklist_lookup),
) -> Response | ProtocolPdfAttachmentResponse:
    """
    Export a protocol as PDF.

    `delivery=download` returns the PDF itself; `delivery=attachment` returns
    it base64-encoded with its filename for the mail feature.
    """
    settings = get_settings()
    token = extract_bearer_token(authorization)

    try:
        record = await asyncio.to_thread(lookup, body.checklist_id, token)
    except ChecklistClientError as e:
        raise UpstreamError(f"Checklist lookup failed: {e}", {"status_code": e.status_code}) from e
    if record is None:
        raise NotFoundError(f"Protocol not found: {body.checklist_id}")

    outcome = await service.render(RenderRequest(
        checklist_id=record.id,
        caller_credential=token,
        site_url=resolve_public_site_url(request, settings),
        desired_quality=body.quality or settings.default_quality,
        print_url_template=settings.print_url_template,
    ))
    attachment = build_attachment(outcome, record.file_id, prefix=settings.pdf_filename_prefix)

    if body.delivery == "attachment":
        return ProtocolPdfAttachmentResponse(
            filename=attachment.filename,
            content_type=attachment.content_type,
            content_base64=base64.b64encode(attachment.content).decode("ascii"),
            size_bytes=outcome.size_bytes,
            quality_used=outcome.quality_used,
        )

    return Response(
        content=attachment.content,
        media_type=attachment.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{attachment.filename}"',
            "X-Protocol-Quality": outcome.quality_used,
        },
    )
