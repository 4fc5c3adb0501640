"""
Settings
========

Environment driven configuration for ROPA Guardian.  Every value has a
sensible default so the application runs locally without any variables
set; deployments override them through the process environment or a
``.env`` file.
"""

from __future__ import annotations

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ADVISORY_URL = "https://silip.sanchez.ph/api"


class Settings(BaseSettings):
    """Runtime settings for the risk engine, the advisory client and the web app.

    Attributes:
        ai_enabled: ``AI_ENABLED``; false keeps risk scoring rule-based.
        advisory_url: ``ADVISORY_API_URL``; base URL of the advisory service.
        consult_timeout: ``ADVISORY_CONSULT_TIMEOUT``; seconds for a direct consult.
        analysis_timeout: ``ADVISORY_ANALYSIS_TIMEOUT``; seconds for a risk analysis.
        breach_notification_hours: ``BREACH_NOTIFICATION_HOURS``; default NPC window.
        secret_key: ``FLASK_SECRET_KEY``.
        log_level: ``LOG_LEVEL``.
    """

    ai_enabled: bool = Field(default=True, alias="AI_ENABLED")
    advisory_url: str = Field(default=DEFAULT_ADVISORY_URL, alias="ADVISORY_API_URL")
    consult_timeout: float = Field(default=12.0, gt=0, alias="ADVISORY_CONSULT_TIMEOUT")
    analysis_timeout: float = Field(default=10.0, gt=0, alias="ADVISORY_ANALYSIS_TIMEOUT")
    breach_notification_hours: int = Field(default=72, gt=0, alias="BREACH_NOTIFICATION_HOURS")
    secret_key: str = Field(default="dev-key-change-in-production", alias="FLASK_SECRET_KEY")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    @field_validator("advisory_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid LOG_LEVEL. Valid: {sorted(valid_levels)}")
        return v_upper


def load_settings() -> Settings:
    """Read ``Settings`` from the process environment.

    Raises:
        pydantic.ValidationError: a variable is set to a value of the wrong type.
    """
    return Settings()
