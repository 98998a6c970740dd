"""
Registration form workflow: captcha, CRM upsert, bookings and calendar events.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from registration.clients.errors import StoreUnavailableError
from registration.clients.hubspot import HubSpotClient
from registration.clients.outlook import CalendarError, OutlookCalendarClient
from registration.clients.recaptcha import RecaptchaClient
from registration.schemas import RegistrationRequest, RegistrationResult
from registration.services.booking_store import BookingStore
from registration.services.token_manager import (
    IntegrationNotConfiguredError,
    NotAuthorizedError,
    RefreshFailedError,
)

logger = logging.getLogger(__name__)

_ISO_FORMAT = "%Y-%m-%d"
_BOOKING_FORMAT = "%m/%d/%Y"


class InvalidCaptchaError(Exception):
    """Raised when the submitted reCAPTCHA token is not confirmed."""


def parse_class_date(value: str) -> datetime:
    """Parse a form date given as YYYY-MM-DD or MM/DD/YYYY."""
    for fmt in (_ISO_FORMAT, _BOOKING_FORMAT):
        try:
            return datetime.strptime(value.strip(), fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise ValueError(f"Unrecognised class date {value!r}; expected YYYY-MM-DD.")


def to_crm_date(value: str) -> int:
    """CRM date properties are epoch milliseconds at UTC midnight."""
    return int(parse_class_date(value).timestamp() * 1000)


def to_booking_date(value: str) -> str:
    return parse_class_date(value).strftime(_BOOKING_FORMAT)


def build_contact_properties(request: RegistrationRequest) -> Dict[str, Any]:
    dates = [
        to_crm_date(value) if value else None
        for value in (request.class_date, request.class_date2, request.class_date3)
    ]
    properties = {
        "firstname": request.first_name,
        "lastname": request.last_name,
        "email": request.email,
        "your_company_name": request.company,
        "phone": request.phone_number,
        "program_session": request.time,
        "program_time_2": request.time2,
        "program_time_3": request.time3,
        "intro_to_ai_program_date": dates[0],
        "intro_to_ai_date_2": dates[1],
        "intro_to_ai_date_3": dates[2],
    }
    # Omitted answers must not blank out values already on the contact.
    return {key: value for key, value in properties.items() if value is not None}


class RegistrationService:
    """Process one registration form submission end to end."""

    def __init__(
        self,
        *,
        recaptcha: RecaptchaClient,
        crm: HubSpotClient,
        bookings: BookingStore,
        calendar: Optional[OutlookCalendarClient] = None,
    ) -> None:
        self._recaptcha = recaptcha
        self._crm = crm
        self._bookings = bookings
        self._calendar = calendar

    async def register(self, request: RegistrationRequest) -> RegistrationResult:
        if not await self._recaptcha.verify(request.recaptcha_token):
            raise InvalidCaptchaError("Invalid reCAPTCHA token")
        logger.info("reCAPTCHA validation passed")

        properties = build_contact_properties(request)
        contact = await self._crm.upsert_contact(request.email, properties)
        contact_id = str(contact.get("id")) if contact.get("id") else None

        sessions = [(date, slot) for date, slot in request.sessions() if date and slot]
        for date, slot in sessions:
            self._bookings.add(email=request.email, date=to_booking_date(date), time_slot=slot)
        logger.info("Saved %d booking(s) for contact %s", len(sessions), contact_id)

        created = 0
        if self._calendar is not None and sessions:
            results = await asyncio.gather(
                *(
                    self._maybe_create_event(request, date_iso=date, time_label=slot)
                    for date, slot in sessions
                )
            )
            created = sum(1 for event in results if event is not None)

        return RegistrationResult(
            message="Contact processed in HubSpot and bookings saved.",
            contact_id=contact_id,
            bookings=len(sessions),
            calendar_events=created,
        )

    async def _maybe_create_event(
        self, request: RegistrationRequest, *, date_iso: str, time_label: str
    ) -> Optional[Dict[str, Any]]:
        """Create one calendar event; failures are logged and never raised."""
        try:
            return await self._calendar.create_event(
                company=request.company,
                student_name=request.student_name,
                student_email=request.email,
                date_iso=parse_class_date(date_iso).strftime(_ISO_FORMAT),
                time_label=time_label,
            )
        except (
            CalendarError,
            IntegrationNotConfiguredError,
            NotAuthorizedError,
            RefreshFailedError,
            StoreUnavailableError,
            ValueError,
        ) as exc:
            logger.warning(
                "Skipping calendar event for %s %s: %s", date_iso, time_label, exc
            )
            return None


__all__ = [
    "InvalidCaptchaError",
    "RegistrationService",
    "build_contact_properties",
    "parse_class_date",
    "to_booking_date",
    "to_crm_date",
]
