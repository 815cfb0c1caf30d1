"""Render module - protocol page to PDF through headless Chromium."""

from .router import router
from .schemas import RenderOutcome, RenderRequest
from .service import RenderService

__all__ = ["router", "RenderService", "RenderRequest", "RenderOutcome"]
