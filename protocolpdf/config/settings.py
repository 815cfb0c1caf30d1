"""
Application settings loaded from environment variables.

Only the HTTP layer reads these. The render modules receive explicit
RenderTarget / ReadinessContract / RenderTimeouts objects instead.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """ProtocolPDF configuration (env prefix PROTOCOLPDF_)."""

    model_config = SettingsConfigDict(
        env_prefix="PROTOCOLPDF_",
        env_file=".env",
        extra="ignore",
    )

    # Server
    host: str = "127.0.0.1"
    port: int = 8110
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    forwarded_allow_ips: str = "127.0.0.1"

    # Application being rendered
    public_site_url: str | None = None
    data_api_url: str | None = None
    data_proxy_paths: list[str] = Field(
        default_factory=lambda: ["/api/supabase-rest", "/api/supabase-auth"]
    )
    print_url_template: str = "{site_url}/protocol-pdf?checklistId={checklist_id}"

    # Browser
    viewport_width: int = 1440
    viewport_height: int = 2200
    browser_sandbox: bool = True
    browser_args: list[str] = Field(
        default_factory=lambda: ["--disable-gpu", "--disable-dev-shm-usage"]
    )
    ignore_https_errors: bool = True

    # Bounds (milliseconds)
    navigation_timeout_ms: int = 120_000
    ready_timeout_ms: int = 120_000
    images_timeout_ms: int = 180_000
    image_load_timeout_ms: int = 1_500
    decode_timeout_ms: int = 10_000
    optimize_timeout_ms: int = 90_000
    export_timeout_ms: int = 120_000
    close_timeout_ms: int = 10_000

    # Readiness contract of the printable page
    ready_marker_selector: str = ".pdf-page"
    loading_text: str = "Protokoll wird geladen"
    photo_selector: str = ".pdf-page img"
    optimize_selectors: list[str] = Field(
        default_factory=lambda: [
            ".pdf-photo-card img",
            ".pdf-signature-box img",
            ".pdf-page img",
        ]
    )
    untouched_asset_markers: list[str] = Field(
        default_factory=lambda: ["/logo.", "/vehicle-sketch.svg"]
    )

    # Output
    default_quality: str = "normal"
    pdf_filename_prefix: str = "protokoll"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, creating them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def init_settings(settings: Settings) -> Settings:
    """Install explicit settings (tests, embedding)."""
    global _settings
    _settings = settings
    return settings


def reset_settings() -> None:
    global _settings
    _settings = None
