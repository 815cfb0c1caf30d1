"""
Error types.

All errors raised by the service derive from ProtocolPdfError so the app can
turn them into a consistent JSON body. Render failures are tier-level: the
coordinator catches them and moves on to the next quality tier. Only
AggregateFailure reaches the caller.
"""

from typing import Any


class ProtocolPdfError(Exception):
    """Base error with an error code and HTTP status."""

    code = "internal_error"
    http_status = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class NotFoundError(ProtocolPdfError):
    code = "not_found"
    http_status = 404


class AuthenticationError(ProtocolPdfError):
    code = "unauthenticated"
    http_status = 401


class UpstreamError(ProtocolPdfError):
    """The application's data proxy could not be reached or answered badly."""
    code = "upstream_error"
    http_status = 502


# =============================================================================
# RENDER FAILURES
# =============================================================================

class RenderFailure(ProtocolPdfError):
    """A single render attempt failed. Aborts the current tier only."""
    code = "render_failed"


class LaunchFailure(RenderFailure):
    code = "launch_failed"


class NavigationFailure(RenderFailure):
    code = "navigation_failed"


class RenderTimeout(RenderFailure):
    """The printable page never became ready within its bound."""

    code = "render_timeout"

    def __init__(self, message: str, page_text: str = "") -> None:
        super().__init__(message, {"page_text": page_text})
        self.page_text = page_text


class ImageWaitTimeout(RenderFailure):
    """Image optimization ran out of time. Tolerated, never aborts an attempt."""
    code = "image_wait_timeout"


class ExportFailure(RenderFailure):
    code = "export_failed"


class AggregateFailure(ProtocolPdfError):
    """Every quality tier failed."""

    code = "render_exhausted"

    def __init__(self, failures: list[str]) -> None:
        joined = " | ".join(failures) or "unknown"
        super().__init__(
            f"Protocol PDF could not be rendered: {joined}",
            {
                "failures": list(failures),
                "last_reason": failures[-1] if failures else None,
            },
        )
        self.failures = list(failures)
