"""Render module schemas."""

from typing import Literal

from pydantic import BaseModel, Field

from .target import DEFAULT_PRINT_URL_TEMPLATE

Quality = Literal["high", "normal", "economy"]
Delivery = Literal["download", "attachment"]


# =============================================================================
# INTERNAL REQUEST / RESULTS
# =============================================================================

class RenderRequest(BaseModel):
    """One protocol render, as handed to the coordinator."""

    checklist_id: str = Field(..., min_length=1)
    caller_credential: str | None = Field(
        default=None, description="Bearer token attached to the page's data requests"
    )
    site_url: str = Field(..., description="Public base URL of the application")
    # Free text on purpose: unknown names fall back to 'normal'
    desired_quality: str | None = None
    print_url_template: str = DEFAULT_PRINT_URL_TEMPLATE


class RenderAttemptResult(BaseModel):
    """Outcome of a single tier attempt."""

    success: bool
    quality: str
    pdf: bytes | None = None
    reason: str | None = None
    code: str | None = None

    @classmethod
    def ok(cls, quality: str, pdf: bytes) -> "RenderAttemptResult":
        return cls(success=True, quality=quality, pdf=pdf)

    @classmethod
    def failed(cls, quality: str, reason: str, code: str | None = None) -> "RenderAttemptResult":
        return cls(success=False, quality=quality, reason=reason, code=code)


class RenderOutcome(BaseModel):
    """Successful render: the PDF plus the tier that produced it."""

    pdf: bytes
    quality_used: Quality
    # "{tier}: {reason}" for every tier that failed before the successful one
    attempts: list[str] = Field(default_factory=list)

    @property
    def size_bytes(self) -> int:
        return len(self.pdf)


class PdfAttachment(BaseModel):
    filename: str
    content: bytes
    content_type: str = "application/pdf"


# =============================================================================
# HTTP
# =============================================================================

class ProtocolPdfRequest(BaseModel):
    """Request to export a protocol as PDF."""

    checklist_id: str = Field(..., min_length=1, description="Checklist (protocol) ID")
    quality: str | None = Field(
        default=None, description="Preferred quality: high, normal or economy"
    )
    delivery: Delivery = Field(
        default="download",
        description="'download' streams the PDF, 'attachment' returns it for email",
    )


class ProtocolPdfAttachmentResponse(BaseModel):
    """PDF packaged for the mail feature (bytes as base64)."""

    filename: str
    content_type: str
    content_base64: str
    size_bytes: int
    quality_used: Quality
