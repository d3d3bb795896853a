"""Application configuration via pydantic-settings.

All secrets are loaded from environment variables (.env / .env.local files).
Settings are organized into logical groups and composed into a single Settings object,
resolved once at import time and passed into the services that need it.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_FILES = (".env", ".env.local")


class HubSpotSettings(BaseSettings):
    """HubSpot CRM and Forms API credentials."""

    model_config = SettingsConfigDict(env_file=_ENV_FILES, extra="ignore", frozen=True)

    hubspot_api_key: str = Field(default="", description="Private app access token")
    hubspot_portal_id: str = Field(default="", description="Portal ID for the Forms API")
    hubspot_form_guid: str = Field(default="", description="Form GUID for the Forms API")
    hubspot_base_url: str = Field(default="https://api.hubapi.com", description="CRM API base URL")
    hubspot_forms_url: str = Field(
        default="https://api.hsforms.com/submissions/v3/integration/submit",
        description="Forms API submission URL prefix",
    )
    hubspot_max_retries: int = Field(default=3, description="Transport-level retries per request")
    hubspot_timeout: float = Field(default=10.0, description="Request timeout in seconds")

    @property
    def is_configured(self) -> bool:
        """True when a real (non-placeholder) access token is present."""
        key = self.hubspot_api_key.strip()
        return bool(key) and not key.startswith("your_private")

    @property
    def forms_configured(self) -> bool:
        return bool(self.hubspot_portal_id and self.hubspot_form_guid)


class StorageSettings(BaseSettings):
    """Local directories for uploaded files and CRM fallback backups."""

    model_config = SettingsConfigDict(env_file=_ENV_FILES, extra="ignore", frozen=True)

    uploads_dir: Path = Field(default=Path("uploads"), description="Per-quote upload directories")
    backups_dir: Path = Field(default=Path("uploads/backups"), description="CRM fallback JSON backups")


class NotificationSettings(BaseSettings):
    """Quote notification email (SMTP)."""

    model_config = SettingsConfigDict(env_file=_ENV_FILES, extra="ignore", frozen=True)

    notification_email: str = Field(default="", description="Recipient of new-quote notifications")
    smtp_host: str = Field(default="localhost")
    smtp_port: int = Field(default=587)
    smtp_username: str = Field(default="")
    smtp_password: str = Field(default="")
    smtp_use_tls: bool = Field(default=True)
    smtp_from: str = Field(default="quotes@canadianmetalfab.com")


class FormSettings(BaseSettings):
    """Client-side quote wizard behaviour."""

    model_config = SettingsConfigDict(env_file=_ENV_FILES, extra="ignore", frozen=True)

    form_storage_key: str = Field(default="cmf-quote-form", description="Durable storage key for the wizard")
    form_storage_version: int = Field(default=1)
    upload_simulation_delay: float = Field(default=1.5, description="Seconds before a file is marked uploaded")
    reset_delay: float = Field(default=10.0, description="Grace delay before the wizard resets after submit")
    api_base_url: str = Field(default="http://localhost:8000", description="Where the wizard posts quotes")
    submit_path: str = Field(default="/api/submit-quote")


class Settings(BaseSettings):
    """Root settings composing all sub-settings.

    Usage:
        settings = Settings()
        settings.hubspot.hubspot_api_key
        settings.storage.uploads_dir
        settings.forms.form_storage_key
    """

    model_config = SettingsConfigDict(env_file=_ENV_FILES, extra="ignore", frozen=True)

    # Environment
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    expose_error_details: bool = Field(
        default=False,
        description="Include tracebacks in 500 responses (ignored in production)",
    )
    site_url: str = Field(default="https://canadianmetalfab.com")

    # Composed settings (loaded from same env files)
    hubspot: HubSpotSettings = Field(default_factory=HubSpotSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    forms: FormSettings = Field(default_factory=FormSettings)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            msg = f"Invalid log level: {v}. Must be one of {valid}"
            raise ValueError(msg)
        return upper

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def show_error_details(self) -> bool:
        return self.expose_error_details and not self.is_production


# Module-level singleton; import this wherever settings are needed.
settings = Settings()
