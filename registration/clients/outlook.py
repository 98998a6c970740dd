"""Microsoft Graph (Outlook) calendar client."""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from registration.clients.oauth import AccessTokenProvider

logger = logging.getLogger(__name__)

# Class time labels offered on the form, as Eastern start/end times.
SLOT_MAP: Dict[str, tuple[str, str]] = {
    "9am-12pm EST/8am-11pm CST": ("09:00", "12:00"),
    "2pm-5pm EST/1pm-4pm CST": ("14:00", "17:00"),
    "10am-1pm EST/9am-12pm CST": ("10:00", "13:00"),
}


class CalendarError(Exception):
    """Raised when Graph rejects or fails an event creation."""


class OutlookCalendarClient:
    """Create events in the connected Outlook calendar."""

    EVENTS_URL = "https://graph.microsoft.com/v1.0/me/events"

    def __init__(
        self,
        token_provider: AccessTokenProvider,
        *,
        system: str = "calendar",
        time_zone: str = "Eastern Standard Time",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._tokens = token_provider
        self._system = system
        self._time_zone = time_zone
        self._timeout = timeout
        self._transport = transport

    def build_event(
        self,
        *,
        company: str | None,
        student_name: str | None,
        student_email: str | None,
        date_iso: str,
        time_label: str,
    ) -> Dict[str, Any]:
        """Build the Graph event body for one booked class slot."""
        if time_label not in SLOT_MAP:
            raise ValueError(f'Unknown time label "{time_label}"')
        start, end = SLOT_MAP[time_label]

        lines = [
            f"Company: {company or 'N/A'}",
            f"Name: {student_name}" if student_name else None,
            f"Email: {student_email}" if student_email else None,
            f"Date: {date_iso}",
            f"Time: {time_label}",
        ]
        return {
            "subject": f"Intro to AI Class – {company or 'Company'}",
            "body": {
                "contentType": "Text",
                "content": "\n".join(line for line in lines if line),
            },
            "start": {"dateTime": f"{date_iso}T{start}:00", "timeZone": self._time_zone},
            "end": {"dateTime": f"{date_iso}T{end}:00", "timeZone": self._time_zone},
        }

    async def create_event(
        self,
        *,
        company: str | None,
        student_name: str | None,
        student_email: str | None,
        date_iso: str,
        time_label: str,
    ) -> Dict[str, Any]:
        event = self.build_event(
            company=company,
            student_name=student_name,
            student_email=student_email,
            date_iso=date_iso,
            time_label=time_label,
        )
        access_token = await self._tokens.get_valid_access_token(self._system)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self.EVENTS_URL,
                    json=event,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise CalendarError(f"Could not reach Microsoft Graph: {exc}") from exc

        if not response.is_success:
            raise CalendarError(
                f"Graph event creation failed with {response.status_code}: {response.text}"
            )
        created = response.json()
        logger.info(
            "Created Outlook event %s starting %s",
            created.get("id"),
            (created.get("start") or {}).get("dateTime"),
        )
        return created


__all__ = ["CalendarError", "OutlookCalendarClient", "SLOT_MAP"]
