"""Request and response schemas for the registration form endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class _FormModel(BaseModel):
    # The form posts camelCase keys.
    model_config = ConfigDict(populate_by_name=True)


class RegistrationRequest(_FormModel):
    """Payload posted by the class registration form."""

    first_name: Optional[str] = Field(None, alias="firstName")
    last_name: Optional[str] = Field(None, alias="lastName")
    email: str = Field(..., min_length=3)
    company: Optional[str] = Field(None, alias="yourCompany")
    phone_number: Optional[str] = Field(None, alias="phoneNumber")
    time: Optional[str] = None
    time2: Optional[str] = None
    time3: Optional[str] = None
    class_date: Optional[str] = Field(
        None, alias="classDate", description="Preferred class date (YYYY-MM-DD)."
    )
    class_date2: Optional[str] = Field(None, alias="classDate2")
    class_date3: Optional[str] = Field(None, alias="classDate3")
    recaptcha_token: Optional[str] = Field(None, alias="recaptchaToken")

    @property
    def student_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    def sessions(self) -> list[tuple[Optional[str], Optional[str]]]:
        """The three (date, time) choices in form order."""
        return [
            (self.class_date, self.time),
            (self.class_date2, self.time2),
            (self.class_date3, self.time3),
        ]


class RegistrationResult(BaseModel):
    message: str
    contact_id: Optional[str] = None
    bookings: int = 0
    calendar_events: int = 0


class AvailabilityRequest(_FormModel):
    class_date: str = Field(..., alias="classDate")
    time: str


class AvailabilityResponse(BaseModel):
    available: bool
    date: Optional[str] = None
    time: Optional[str] = None
    message: Optional[str] = None


class CalendarTestRequest(_FormModel):
    """Body for creating a single calendar event without the form."""

    date_iso: Optional[str] = Field(None, alias="dateISO")
    time_label: Optional[str] = Field(None, alias="timeLabel")
    company: Optional[str] = None
    email: Optional[str] = None


class CalendarTestResponse(BaseModel):
    ok: bool
    event: Dict[str, Any]


__all__ = [
    "AvailabilityRequest",
    "AvailabilityResponse",
    "CalendarTestRequest",
    "CalendarTestResponse",
    "RegistrationRequest",
    "RegistrationResult",
]
