"""
Configuration Management with Pydantic v2 Settings.

Environment variables (and an optional ``.env`` file) are loaded and
validated when ``Settings`` is instantiated, so a bad reasoning-service URL
or an out-of-range timer is reported at startup instead of in the middle of
an exchange.
"""

from typing import Optional
from pathlib import Path
from urllib.parse import urlparse
import warnings

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.exceptions import ConfigurationError


DEFAULT_SYSTEM_INSTRUCTION = (
    "Answer the question on the attached HTML page. If there is a request to "
    "click on the page, return the HTML field name to click surrounded by <>"
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Fields can be given either by their environment name (``HTTP_TIMEOUT``)
    or by attribute name (``http_timeout``), which keeps test setup short.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore"  # Ignore unknown env vars
    )

    # ===== Reasoning Service =====
    reasoning_service_url: str = Field(
        ...,  # Required field
        alias="REASONING_SERVICE_URL",
        description="HTTPS endpoint that answers {userPrompt, pageHtml, ...} with {answer}"
    )

    @field_validator("reasoning_service_url")
    @classmethod
    def validate_service_url(cls, v: str) -> str:
        """Require HTTPS except for local development endpoints."""
        v = v.strip()
        local = "localhost" in v or "127.0.0.1" in v
        if not v.startswith("https://") and not local:
            raise ValueError(f"REASONING_SERVICE_URL must use HTTPS. Got: {v}")

        parsed = urlparse(v)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"Invalid REASONING_SERVICE_URL format: {v}")

        return v

    system_instruction: str = Field(
        default=DEFAULT_SYSTEM_INSTRUCTION,
        min_length=1,
        alias="SYSTEM_INSTRUCTION",
        description="Fixed instruction sent as constantPrompt with every request"
    )

    # ===== Network Configuration =====
    proxy_url: Optional[str] = Field(
        default=None,
        alias="PROXY_URL",
        description="HTTP proxy URL for reasoning-service requests"
    )

    http_timeout: float = Field(
        default=120.0,
        alias="HTTP_TIMEOUT",
        description="HTTP request timeout in seconds"
    )

    @field_validator("http_timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        """Validate timeout is reasonable."""
        if v > 300:
            warnings.warn(
                f"HTTP_TIMEOUT is very high: {v}s\n"
                "Recommended for cloud functions: 60-120 seconds"
            )

        if v < 1:
            raise ValueError("HTTP_TIMEOUT too low (min 1s)")

        return v

    # ===== Exchange Timing =====
    settle_interval: float = Field(
        default=1.2,
        ge=0.0,
        le=30.0,
        alias="SNAPSHOT_SETTLE_INTERVAL",
        description="Seconds to wait for asynchronous rendering before a snapshot"
    )

    dwell_seconds: float = Field(
        default=2.0,
        ge=0.0,
        alias="AUTO_CLOSE_DWELL",
        description="Minimum seconds a narrated answer stays open before auto-close"
    )

    narration_timeout: float = Field(
        default=120.0,
        gt=0.0,
        alias="NARRATION_TIMEOUT",
        description="Upper bound in seconds on waiting for narration to finish"
    )

    narration_words_per_minute: int = Field(
        default=160,
        ge=40,
        le=600,
        alias="NARRATION_WPM",
        description="Speech rate of the TTS engine, in words per minute"
    )

    # ===== Snapshot Archive =====
    archive_snapshots: bool = Field(
        default=True,
        alias="ARCHIVE_SNAPSHOTS",
        description="Write captured snapshot markup to snapshot_dir for diagnostics"
    )

    snapshot_dir: Path = Field(
        default=Path("./snapshots"),
        alias="SNAPSHOT_DIR",
        description="Directory for archived snapshot markup"
    )

    # ===== Browser Configuration =====
    headless: bool = Field(
        default=False,
        alias="HEADLESS",
        description="Run browser in headless mode"
    )

    user_data_dir: Optional[Path] = Field(
        default=None,
        alias="USER_DATA_DIR",
        description="Persistent browser profile directory (cookies, saved logins)"
    )

    page_load_timeout: int = Field(
        default=60000,
        ge=5000,
        alias="PAGE_LOAD_TIMEOUT",
        description="Page load timeout in milliseconds"
    )

    action_timeout: int = Field(
        default=20000,
        ge=1000,
        alias="ACTION_TIMEOUT",
        description="Script evaluation timeout in milliseconds"
    )

    # ===== Debugging =====
    debug_mode: bool = Field(
        default=False,
        alias="DEBUG_MODE",
        description="Enable debug logging"
    )


def load_settings(**overrides) -> Settings:
    """
    Load and validate settings from environment.

    Args:
        **overrides: Field values that take precedence over the environment

    Returns:
        Validated Settings instance

    Raises:
        ConfigurationError: If required settings are missing or invalid
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration: {e.error_count()} error(s)",
            context={"errors": [err["msg"] for err in e.errors()]}
        ) from e
