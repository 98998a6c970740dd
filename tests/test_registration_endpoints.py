from __future__ import annotations

import httpx
import pytest

from registration.clients.hubspot import HubSpotClient
from registration.clients.oauth import OAuthTokenExchangeError
from registration.clients.outlook import CalendarError
from registration.main import app
from registration.models.credentials import CredentialRecord
from registration.services.booking_store import BookingStore
from registration.services.registration import RegistrationService
from registration.services.token_manager import CRM, Integration, TokenManager

SLOT = "9am-12pm EST/8am-11pm CST"
FORM = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "email": "ada@example.com",
    "yourCompany": "Analytical Engines",
    "classDate": "2025-03-14",
    "time": SLOT,
    "recaptchaToken": "captcha-token",
}


class DummyRecaptcha:
    def __init__(self, result: bool = True) -> None:
        self.result = result

    async def verify(self, token):
        return self.result


class MemoryCredentialStore:
    def __init__(self, record=None) -> None:
        self.record = record

    def load(self):
        return self.record

    def save(self, record) -> None:
        self.record = record


class UnusedOAuthClient:
    async def refresh_token(self, refresh_token):  # pragma: no cover
        raise AssertionError("no refresh expected")


class RejectingOAuthClient:
    async def refresh_token(self, refresh_token):
        raise OAuthTokenExchangeError("invalid_grant")


class DummyCalendar:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error

    async def create_event(self, **kwargs):
        if self.error:
            raise self.error
        return {"id": "evt-1", "subject": "Intro to AI Class"}


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


def _hubspot_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("/search"):
        return httpx.Response(200, json={"results": []})
    return httpx.Response(201, json={"id": "777"})


@pytest.fixture()
def bookings(tmp_path) -> BookingStore:
    return BookingStore(str(tmp_path / "bookings.db"))


@pytest.fixture()
def registration_overrides(bookings):
    from registration import dependencies

    state = {
        "record": None,
        "recaptcha": DummyRecaptcha(),
        "oauth_client": UnusedOAuthClient(),
        "hubspot": _hubspot_handler,
    }

    def build_service() -> RegistrationService:
        manager = TokenManager(
            {
                CRM: Integration(
                    store=MemoryCredentialStore(state["record"]),
                    oauth_client=state["oauth_client"],
                )
            }
        )
        crm = HubSpotClient(
            manager,
            base_url="https://hubspot.test",
            transport=httpx.MockTransport(state["hubspot"]),
        )
        return RegistrationService(recaptcha=state["recaptcha"], crm=crm, bookings=bookings)

    app.dependency_overrides.update(
        {
            dependencies.get_registration_service: build_service,
            dependencies.get_booking_store: lambda: bookings,
        }
    )

    yield state

    app.dependency_overrides.clear()


def _valid_record() -> CredentialRecord:
    return CredentialRecord(
        system=CRM, access_token="A1", refresh_token="R1", expires_at=4_102_444_800_000
    )


@pytest.mark.anyio
async def test_health():
    async with _client() as client:
        response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.anyio
async def test_registration_books_the_slot(registration_overrides, bookings):
    registration_overrides["record"] = _valid_record()
    async with _client() as client:
        response = await client.post("/api/intro-to-ai-payment", json=FORM)
        availability = await client.post(
            "/api/check-availability", json={"classDate": "2025-03-14", "time": SLOT}
        )
        booked = await client.get("/api/booked-dates")

    assert response.status_code == 200
    assert response.json()["contact_id"] == "777"
    assert response.json()["bookings"] == 1
    assert availability.json()["available"] is False
    assert booked.json() == {"03/14/2025": [SLOT]}


@pytest.mark.anyio
async def test_registration_with_invalid_captcha(registration_overrides, bookings):
    registration_overrides["record"] = _valid_record()
    registration_overrides["recaptcha"] = DummyRecaptcha(result=False)
    async with _client() as client:
        response = await client.post("/api/intro-to-ai-payment", json=FORM)

    assert response.status_code == 400
    assert response.json() == {"message": "Invalid reCAPTCHA token"}
    assert bookings.booked_dates() == {}


@pytest.mark.anyio
async def test_registration_before_crm_is_connected(registration_overrides, bookings):
    async with _client() as client:
        response = await client.post("/api/intro-to-ai-payment", json=FORM)

    assert response.status_code == 503
    assert "initial setup" in response.json()["detail"]
    assert bookings.booked_dates() == {}


@pytest.mark.anyio
async def test_registration_when_crm_refresh_fails(registration_overrides, bookings):
    registration_overrides["record"] = CredentialRecord(
        system=CRM, access_token="A1", refresh_token="R1", expires_at=0
    )
    registration_overrides["oauth_client"] = RejectingOAuthClient()
    async with _client() as client:
        response = await client.post("/api/intro-to-ai-payment", json=FORM)

    assert response.status_code == 503
    assert "temporarily unavailable" in response.json()["detail"]
    assert bookings.booked_dates() == {}


@pytest.mark.anyio
async def test_registration_when_crm_rejects_contact(registration_overrides, bookings):
    registration_overrides["record"] = _valid_record()

    def failing_hubspot(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/search"):
            return httpx.Response(200, json={"results": []})
        return httpx.Response(400, json={"message": "Property values were not valid"})

    registration_overrides["hubspot"] = failing_hubspot
    async with _client() as client:
        response = await client.post("/api/intro-to-ai-payment", json=FORM)

    assert response.status_code == 502
    detail = response.json()["detail"]
    assert detail["message"] == "Error processing contact data"
    assert detail["error"] == {"message": "Property values were not valid"}
    assert bookings.booked_dates() == {}


@pytest.mark.anyio
async def test_open_slot_is_available(registration_overrides):
    async with _client() as client:
        response = await client.post(
            "/api/check-availability", json={"classDate": "03/20/2025", "time": SLOT}
        )

    assert response.status_code == 200
    assert response.json()["available"] is True


@pytest.mark.anyio
async def test_test_outlook_requires_date_and_label():
    from registration import dependencies

    app.dependency_overrides[dependencies.get_calendar_client] = lambda: DummyCalendar()
    try:
        async with _client() as client:
            missing = await client.post("/api/test-outlook", json={"timeLabel": SLOT})
            created = await client.post(
                "/api/test-outlook", json={"dateISO": "2025-03-14", "timeLabel": SLOT}
            )
    finally:
        app.dependency_overrides.clear()

    assert missing.status_code == 400
    assert missing.json() == {"ok": False, "error": "dateISO and timeLabel are required"}
    assert created.status_code == 200
    assert created.json()["event"]["id"] == "evt-1"


@pytest.mark.anyio
async def test_test_outlook_graph_failure():
    from registration import dependencies

    app.dependency_overrides[dependencies.get_calendar_client] = lambda: DummyCalendar(
        error=CalendarError("Graph event creation failed with 403")
    )
    try:
        async with _client() as client:
            response = await client.post(
                "/api/test-outlook", json={"dateISO": "2025-03-14", "timeLabel": SLOT}
            )
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 502
    assert response.json()["ok"] is False
