"""Service layer exports."""

from .booking_store import Booking, BookingStore
from .registration import InvalidCaptchaError, RegistrationService
from .token_cipher import TokenCipherService, TokenDecryptionError
from .token_manager import (
    CALENDAR,
    CRM,
    Integration,
    IntegrationNotConfiguredError,
    NotAuthorizedError,
    RefreshFailedError,
    TokenManager,
)

__all__ = [
    "Booking",
    "BookingStore",
    "CALENDAR",
    "CRM",
    "Integration",
    "IntegrationNotConfiguredError",
    "InvalidCaptchaError",
    "NotAuthorizedError",
    "RefreshFailedError",
    "RegistrationService",
    "TokenCipherService",
    "TokenDecryptionError",
    "TokenManager",
]
