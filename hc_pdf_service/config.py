"""
PDF Service Configuration Module

Centralized configuration management with Pydantic validation.
All environment variables are validated at startup to catch misconfigurations early.
"""

import logging
from functools import lru_cache
from typing import List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from . import __version__
from .errors import ConfigFailure

_LOG_LEVELS = {"debug", "info", "warning", "error", "critical"}


class PdfServiceSettings(BaseSettings):
    """
    Render service configuration with validation.

    All settings can be overridden via environment variables.
    Validation happens at startup to fail fast on misconfiguration.
    """

    # === Server ===
    server_address: str = Field(default="0.0.0.0", description="Bind address")
    server_port: int = Field(default=8080, ge=1, le=65535, description="Bind port")
    log_level: str = Field(default="info", description="Logging level name")
    body_limit: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Maximum request body size in bytes"
    )
    build_version: Optional[str] = Field(
        default=__version__,
        description="Value of the X-Build-Version header on /hc"
    )

    # === Security ===
    bearer_auth_secret_key: Optional[str] = Field(
        default=None,
        description="Bearer token required on every route when set"
    )

    # === PDF Presets ===
    preset_pdf_options_file_path: Optional[str] = Field(
        default=None,
        description="JSON preset file; built-in presets are used when unset"
    )
    default_preset_pdf_options_name: str = Field(
        default="DEFAULT",
        description="Preset applied when pdf_option is absent"
    )
    default_pdf_option_format: str = Field(default="A4")
    default_pdf_option_landscape: bool = Field(default=False)
    default_pdf_option_margin: str = Field(default="10mm")
    default_pdf_option_print_background: bool = Field(default=True)

    # === Page Pool ===
    pages_num: int = Field(
        default=3,
        ge=1,
        le=100,
        description="Number of pooled browser pages (1-100)"
    )
    page_acquire_timeout_milliseconds: int = Field(
        default=30000,
        ge=0,
        description="How long a request waits for an idle page"
    )
    page_timeout_milliseconds: int = Field(
        default=90000,
        ge=1000,
        description="Default navigation/action timeout for pooled pages"
    )
    ready_wait_timeout_milliseconds: int = Field(
        default=30000,
        ge=0,
        description="Bound of the data-pdf-ready marker wait"
    )
    screenshot_settle_milliseconds: int = Field(
        default=500,
        ge=0,
        description="Delay before cookie dismissal and capture"
    )
    user_agent: Optional[str] = Field(default=None)
    accept_language: Optional[str] = Field(default=None)
    emulate_media_type_screen_enabled: bool = Field(default=False)
    default_viewport_width: int = Field(default=800, ge=1)
    default_viewport_height: int = Field(default=600, ge=1)

    # === Browser ===
    browser_launch_args: str = Field(
        default="--no-sandbox,--disable-setuid-sandbox,--disable-gpu,--disable-dev-shm-usage",
        description="Comma-separated Chromium command line arguments"
    )
    headless: bool = Field(default=True)

    # === Feature flags ===
    cookie_forwarding_enabled: bool = Field(
        default=True,
        description="Forward inbound Cookie headers to the page on GET /"
    )
    wait_for_ready_enabled: bool = Field(
        default=True,
        description="Honour the wait_for_ready query parameter on GET /"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a known level name."""
        v_lower = v.lower()
        if v_lower not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(_LOG_LEVELS))}")
        return v_lower

    @field_validator("bearer_auth_secret_key", "preset_pdf_options_file_path", "user_agent", "accept_language")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        """Treat empty environment values as unset."""
        if v is not None and not v.strip():
            return None
        return v

    @property
    def browser_launch_args_list(self) -> List[str]:
        """Parse browser launch args into a list."""
        return [arg.strip() for arg in self.browser_launch_args.split(",") if arg.strip()]

    @property
    def auth_required(self) -> bool:
        """Check if bearer authentication is enabled."""
        return self.bearer_auth_secret_key is not None

    @property
    def default_viewport(self) -> dict:
        return {"width": self.default_viewport_width, "height": self.default_viewport_height}

    class Config:
        env_prefix = ""  # No prefix, use exact env var names
        case_sensitive = False  # PAGES_NUM = pages_num


@lru_cache()
def get_settings() -> PdfServiceSettings:
    """
    Get cached settings instance.

    Settings are loaded once and cached for performance.
    Raises ConfigFailure when the environment holds invalid values.
    """
    try:
        return PdfServiceSettings()
    except ValidationError as e:
        raise ConfigFailure(f"Configuration validation failed: {e}") from e


def validate_config_on_startup(settings: PdfServiceSettings) -> None:
    """
    Log the effective configuration at application startup.

    Secrets are redacted.
    """
    logger = logging.getLogger(__name__)

    logger.info(f"Configuration loaded: pages_num={settings.pages_num}")
    logger.info(f"  page_timeout={settings.page_timeout_milliseconds}ms")
    logger.info(f"  page_acquire_timeout={settings.page_acquire_timeout_milliseconds}ms")
    logger.info(f"  preset_file={settings.preset_pdf_options_file_path or '<built-in>'}")
    logger.info(f"  default_preset={settings.default_preset_pdf_options_name}")
    logger.info(f"  browser_launch_args={settings.browser_launch_args_list}")
    logger.info(f"  viewport={settings.default_viewport}")
    logger.info(f"  auth_required={settings.auth_required}")
    logger.debug(f"  user_agent={settings.user_agent}, accept_language={settings.accept_language}")
