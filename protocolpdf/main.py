"""
ProtocolPDF entrypoint.

Serves the app with uvicorn behind the application's reverse proxy, using
the service's own log format instead of uvicorn's logging config.
"""

import uvicorn

from protocolpdf import __version__
from protocolpdf.app import build_app
from protocolpdf.config import get_settings
from protocolpdf.shared.logging import get_logger, setup_logging

logger = get_logger(__name__)


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info(f"ProtocolPDF {__version__} on {settings.host}:{settings.port}")

    uvicorn.run(
        build_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,
        # X-Forwarded-* feed the site URL when no public URL is configured
        proxy_headers=True,
        forwarded_allow_ips=settings.forwarded_allow_ips,
    )


if __name__ == "__main__":
    main()
