"""Public schema exports."""

from .auth import IntegrationStatus, OAuthCallbackPayload
from .registration import (
    AvailabilityRequest,
    AvailabilityResponse,
    CalendarTestRequest,
    CalendarTestResponse,
    RegistrationRequest,
    RegistrationResult,
)

__all__ = [
    "AvailabilityRequest",
    "AvailabilityResponse",
    "CalendarTestRequest",
    "CalendarTestResponse",
    "IntegrationStatus",
    "OAuthCallbackPayload",
    "RegistrationRequest",
    "RegistrationResult",
]
