"""Health routes."""

from importlib import metadata

from fastapi import APIRouter

from protocolpdf import __version__

router = APIRouter()


def _playwright_version() -> str | None:
    try:
        return metadata.version("playwright")
    except metadata.PackageNotFoundError:
        return None


@router.get("/health")
async def health() -> dict[str, str | None]:
    """Liveness plus the installed Playwright version."""
    return {
        "status": "ok",
        "version": __version__,
        "playwright_version": _playwright_version(),
    }
