"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_booking_store,
    get_calendar_client,
    get_hubspot_client,
    get_oauth_state_encoder,
    get_recaptcha_client,
    get_record_store,
    get_registration_service,
    get_token_cipher_service,
    get_token_manager,
)
from .config import SettingsDependency, get_app_settings, integration_settings

__all__ = [
    "SettingsDependency",
    "get_app_settings",
    "get_booking_store",
    "get_calendar_client",
    "get_hubspot_client",
    "get_oauth_state_encoder",
    "get_recaptcha_client",
    "get_record_store",
    "get_registration_service",
    "get_token_cipher_service",
    "get_token_manager",
    "integration_settings",
]
