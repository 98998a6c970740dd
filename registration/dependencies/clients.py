"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from registration.clients import (
    DynamoDBClient,
    HubSpotClient,
    OAuthClient,
    OAuthStateEncoder,
    OutlookCalendarClient,
    RecaptchaClient,
    RecordCredentialStore,
    SQLiteStore,
)
from registration.clients.credential_store import RecordStore
from registration.clients.oauth import hubspot_provider, microsoft_provider
from registration.core.config import AppSettings, get_settings
from registration.dependencies.config import integration_settings
from registration.services import (
    CALENDAR,
    CRM,
    BookingStore,
    Integration,
    RegistrationService,
    TokenCipherService,
    TokenManager,
)

logger = logging.getLogger(__name__)


@lru_cache()
def _settings() -> AppSettings:
    """Internal helper to cache settings for client factories."""
    return get_settings()


def _encryption_secret(settings: AppSettings) -> str:
    secret = settings.security.token_encryption_secret
    if secret:
        return secret
    if settings.environment == "production":
        raise RuntimeError("TOKEN_ENCRYPTION_SECRET must be set in production.")
    logger.warning("TOKEN_ENCRYPTION_SECRET is not set; using the HubSpot client secret.")
    return settings.hubspot.client_secret or "local-development-secret"


@lru_cache()
def get_record_store() -> RecordStore:
    """Provide the key-value store holding credential records."""
    settings = _settings()
    if settings.storage.backend == "dynamodb":
        return DynamoDBClient(settings.storage)
    return SQLiteStore(settings.storage.database_path)


@lru_cache()
def get_token_cipher_service() -> TokenCipherService:
    """Provide symmetric encryption helper for token storage."""
    return TokenCipherService(secret=_encryption_secret(_settings()))


@lru_cache()
def get_oauth_state_encoder() -> OAuthStateEncoder:
    """Provide an OAuth state encoder keyed by the token encryption secret."""
    return OAuthStateEncoder(secret_key=_encryption_secret(_settings()))


def build_integrations(settings: AppSettings) -> dict[str, Integration]:
    """Register every integration whose settings are complete."""
    timeout = settings.tokens.refresh_timeout_seconds
    provider_factories = {CRM: hubspot_provider, CALENDAR: microsoft_provider}
    integrations: dict[str, Integration] = {}
    for system, oauth_settings in integration_settings(settings).items():
        missing = oauth_settings.missing_keys()
        if missing:
            logger.warning("%s integration disabled; missing settings: %s", system, ", ".join(missing))
            continue
        integrations[system] = Integration(
            store=RecordCredentialStore(
                get_record_store(), get_token_cipher_service(), system=system
            ),
            oauth_client=OAuthClient(
                provider_factories[system](oauth_settings), timeout=timeout
            ),
        )
        logger.info("%s integration configured", system)
    return integrations


@lru_cache()
def get_token_manager() -> TokenManager:
    """Provide the process-wide token manager."""
    settings = _settings()
    return TokenManager(
        build_integrations(settings),
        safety_margin_seconds=settings.tokens.safety_margin_seconds,
    )


@lru_cache()
def get_booking_store() -> BookingStore:
    """Provide shared SQLite booking store."""
    return BookingStore(_settings().storage.database_path)


@lru_cache()
def get_recaptcha_client() -> RecaptchaClient:
    return RecaptchaClient(_settings().recaptcha)


@lru_cache()
def get_hubspot_client() -> HubSpotClient:
    """Provide CRM client authenticated through the token manager."""
    settings = _settings()
    return HubSpotClient(
        get_token_manager(), system=CRM, base_url=str(settings.hubspot.api_base_url)
    )


@lru_cache()
def get_calendar_client() -> OutlookCalendarClient:
    """Provide Outlook calendar client authenticated through the token manager."""
    settings = _settings()
    return OutlookCalendarClient(
        get_token_manager(),
        system=CALENDAR,
        time_zone=settings.microsoft.event_timezone,
    )


def get_registration_service() -> RegistrationService:
    """Build the registration workflow from shared clients."""
    token_manager = get_token_manager()
    calendar = get_calendar_client() if token_manager.is_configured(CALENDAR) else None
    return RegistrationService(
        recaptcha=get_recaptcha_client(),
        crm=get_hubspot_client(),
        bookings=get_booking_store(),
        calendar=calendar,
    )


__all__ = [
    "build_integrations",
    "get_booking_store",
    "get_calendar_client",
    "get_hubspot_client",
    "get_oauth_state_encoder",
    "get_recaptcha_client",
    "get_record_store",
    "get_registration_service",
    "get_token_cipher_service",
    "get_token_manager",
]
