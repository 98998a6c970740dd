"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the token manager and the
maintenance scripts share one configuration surface. Each OAuth integration
reports whether it is configured once at startup instead of re-reading the
environment on every request.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, ClassVar, Literal, Optional

import os

from pydantic import AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file without extra deps."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        cleaned = value.strip().strip('"').strip("'")
        os.environ[key] = cleaned


_load_env_file()


def _split_csv(value: str | tuple[str, ...] | list[str]) -> tuple[str, ...]:
    if isinstance(value, tuple):
        return value
    if isinstance(value, list):
        return tuple(value)
    return tuple(item.strip() for item in value.split(",") if item.strip())


class _Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class OAuthIntegrationSettings(_Settings):
    """Fields shared by every OAuth-protected integration."""

    client_id: Optional[str] = None
    client_secret: Optional[str] = None
    redirect_uri: Optional[AnyHttpUrl] = None
    scopes: Annotated[tuple[str, ...], NoDecode] = ()

    _required: ClassVar[tuple[str, ...]] = ("client_id", "client_secret")

    @field_validator("scopes", mode="before")
    @classmethod
    def split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        return _split_csv(value)

    def missing_keys(self) -> list[str]:
        """Return the names of required fields that are empty."""
        missing = []
        for name in self._required:
            value = getattr(self, name)
            if value is None or not str(value).strip():
                missing.append(name)
        return missing

    @property
    def is_configured(self) -> bool:
        return not self.missing_keys()


class HubSpotSettings(OAuthIntegrationSettings):
    """OAuth app credentials for the HubSpot CRM."""

    client_id: Optional[str] = Field(None, validation_alias="HUBSPOT_CLIENT_ID")
    client_secret: Optional[str] = Field(None, validation_alias="HUBSPOT_CLIENT_SECRET")
    redirect_uri: Optional[AnyHttpUrl] = Field(
        "http://localhost:5000/api/auth/crm/callback",
        validation_alias="HUBSPOT_REDIRECT_URI",
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (
            "oauth",
            "crm.objects.contacts.read",
            "crm.objects.contacts.write",
        ),
        validation_alias="HUBSPOT_SCOPES",
    )
    api_base_url: HttpUrl = Field(
        "https://api.hubapi.com", validation_alias="HUBSPOT_API_BASE_URL"
    )


class MicrosoftSettings(OAuthIntegrationSettings):
    """Azure AD app registration used for Outlook calendar access."""

    client_id: Optional[str] = Field(None, validation_alias="MS_CLIENT_ID")
    client_secret: Optional[str] = Field(None, validation_alias="MS_CLIENT_SECRET")
    tenant_id: Optional[str] = Field(None, validation_alias="MS_TENANT_ID")
    redirect_uri: Optional[AnyHttpUrl] = Field(
        "http://localhost:5000/api/auth/calendar/callback",
        validation_alias="MS_REDIRECT_URI",
    )
    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (
            "Calendars.ReadWrite",
            "offline_access",
            "openid",
            "profile",
            "User.Read",
        ),
        validation_alias="MS_SCOPES",
    )
    event_timezone: str = Field(
        "Eastern Standard Time", validation_alias="MS_EVENT_TIMEZONE"
    )

    _required: ClassVar[tuple[str, ...]] = ("client_id", "client_secret", "tenant_id")


class RecaptchaSettings(_Settings):
    """Server-side secret for reCAPTCHA verification."""

    secret_key: Optional[str] = Field(None, validation_alias="RECAPTCHA_SECRET_KEY")
    verify_url: HttpUrl = Field(
        "https://www.google.com/recaptcha/api/siteverify",
        validation_alias="RECAPTCHA_VERIFY_URL",
    )


class StorageSettings(_Settings):
    """Where credentials and bookings are persisted."""

    backend: Literal["sqlite", "dynamodb"] = Field(
        "sqlite", validation_alias="STORAGE_BACKEND"
    )
    database_path: str = Field(
        "data/registration.db", validation_alias="DATABASE_PATH"
    )
    dynamodb_table_name: Optional[str] = Field(
        None, validation_alias="DYNAMODB_TABLE_NAME"
    )
    region_name: str = Field("us-east-1", validation_alias="AWS_REGION")


class TokenSettings(_Settings):
    """Access-token lifecycle tuning."""

    safety_margin_seconds: int = Field(
        60, ge=0, validation_alias="TOKEN_SAFETY_MARGIN_SECONDS"
    )
    refresh_timeout_seconds: float = Field(
        10.0, gt=0, validation_alias="TOKEN_REFRESH_TIMEOUT_SECONDS"
    )


class SecuritySettings(_Settings):
    """Security-related configuration."""

    token_encryption_secret: Optional[str] = Field(
        None,
        validation_alias="TOKEN_ENCRYPTION_SECRET",
        description=(
            "Secret used to derive the symmetric key for encrypting stored tokens."
        ),
    )


class AppSettings(_Settings):
    """Root settings object for the FastAPI application."""

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias="FRONTEND_BASE_URL",
        description="Optional URL for redirecting operators after connecting an integration.",
    )
    cors_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        ("http://localhost:3000",), validation_alias="CORS_ORIGINS"
    )
    state_ttl_seconds: int = Field(900, validation_alias="OAUTH_STATE_TTL")
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    tokens: TokenSettings = Field(default_factory=TokenSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    hubspot: HubSpotSettings = Field(default_factory=HubSpotSettings)
    microsoft: MicrosoftSettings = Field(default_factory=MicrosoftSettings)
    recaptcha: RecaptchaSettings = Field(default_factory=RecaptchaSettings)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_origins(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing origins as a comma-separated string."""
        return _split_csv(value)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "HubSpotSettings",
    "MicrosoftSettings",
    "OAuthIntegrationSettings",
    "RecaptchaSettings",
    "SecuritySettings",
    "StorageSettings",
    "TokenSettings",
    "get_settings",
]
