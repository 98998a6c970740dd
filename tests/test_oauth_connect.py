from __future__ import annotations

import copy
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from registration.clients.oauth import OAuthStateEncoder, OAuthTokenExchangeError
from registration.main import app
from registration.models.credentials import TokenGrant
from registration.services.token_manager import CRM, Integration, TokenManager


class MemoryCredentialStore:
    def __init__(self) -> None:
        self.record = None

    def load(self):
        return self.record

    def save(self, record) -> None:
        self.record = record


class DummyOAuthClient:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.codes: list[str] = []

    def build_authorization_url(self, state: str) -> str:
        return f"https://oauth.example.com/authorize?state={state}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        self.codes.append(code)
        if self.fail:
            raise OAuthTokenExchangeError("invalid_grant")
        return TokenGrant(access_token="A0", refresh_token="R0", expires_in=1800)

    async def refresh_token(self, refresh_token: str) -> TokenGrant:  # pragma: no cover
        raise AssertionError("refresh is not expected during connect")


@pytest.fixture()
def connect_overrides():
    from registration import dependencies
    from registration.core.config import get_settings

    store = MemoryCredentialStore()
    oauth_client = DummyOAuthClient()
    manager = TokenManager({CRM: Integration(store=store, oauth_client=oauth_client)})
    encoder = OAuthStateEncoder(secret_key="state-secret")
    settings = copy.deepcopy(get_settings())
    settings.frontend_base_url = None

    app.dependency_overrides.update(
        {
            dependencies.get_token_manager: lambda: manager,
            dependencies.get_oauth_state_encoder: lambda: encoder,
            dependencies.get_app_settings: lambda: settings,
        }
    )

    yield store, oauth_client, encoder, settings

    app.dependency_overrides.clear()


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")


def _state(encoder: OAuthStateEncoder, system: str = CRM, *, age: timedelta = timedelta()) -> str:
    return encoder.encode(
        {
            "nonce": "n-1",
            "system": system,
            "redirect_to": "https://frontend.example/done",
            "issued_at": (datetime.now(timezone.utc) - age).isoformat(),
        }
    )


@pytest.mark.anyio
async def test_authorize_returns_signed_state(connect_overrides):
    _, _, encoder, _ = connect_overrides
    async with _client() as client:
        response = await client.get("/api/auth/crm/authorize")

    assert response.status_code == 200
    data = response.json()
    state = parse_qs(urlparse(data["authorization_url"]).query)["state"][0]
    assert state == data["state"]
    assert encoder.decode(state)["system"] == CRM


@pytest.mark.anyio
async def test_authorize_unconfigured_integration_is_unavailable(connect_overrides):
    async with _client() as client:
        response = await client.get("/api/auth/calendar/authorize")

    assert response.status_code == 503
    assert "not configured" in response.json()["detail"]


@pytest.mark.anyio
async def test_authorize_unknown_integration_is_not_found(connect_overrides):
    async with _client() as client:
        response = await client.get("/api/auth/erp/authorize")

    assert response.status_code == 404


@pytest.mark.anyio
async def test_callback_stores_first_credential(connect_overrides):
    store, oauth_client, encoder, _ = connect_overrides
    async with _client() as client:
        response = await client.post(
            "/api/auth/crm/callback",
            json={"code": "auth-code", "state": _state(encoder)},
        )

    assert response.status_code == 200
    assert response.json() == {
        "status": "connected",
        "system": "crm",
        "redirect_to": "https://frontend.example/done",
    }
    assert oauth_client.codes == ["auth-code"]
    assert store.record.access_token == "A0"
    assert store.record.refresh_token == "R0"


@pytest.mark.anyio
async def test_get_callback_redirects_browsers(connect_overrides):
    _, _, encoder, _ = connect_overrides
    async with _client() as client:
        response = await client.get(
            "/api/auth/crm/callback",
            params={"code": "auth-code", "state": _state(encoder)},
            headers={"accept": "text/html"},
        )

    assert response.status_code == 307
    assert response.headers["location"] == "https://frontend.example/done"


@pytest.mark.anyio
async def test_callback_rejects_state_for_other_system(connect_overrides):
    store, _, encoder, _ = connect_overrides
    async with _client() as client:
        response = await client.post(
            "/api/auth/crm/callback",
            json={"code": "auth-code", "state": _state(encoder, system="calendar")},
        )

    assert response.status_code == 400
    assert store.record is None


@pytest.mark.anyio
async def test_callback_rejects_expired_state(connect_overrides):
    store, _, encoder, settings = connect_overrides
    async with _client() as client:
        response = await client.post(
            "/api/auth/crm/callback",
            json={
                "code": "auth-code",
                "state": _state(encoder, age=timedelta(seconds=settings.state_ttl_seconds + 60)),
            },
        )

    assert response.status_code == 400
    assert store.record is None


@pytest.mark.anyio
async def test_callback_exchange_failure_is_bad_request(connect_overrides):
    store, oauth_client, encoder, _ = connect_overrides
    oauth_client.fail = True
    async with _client() as client:
        response = await client.post(
            "/api/auth/crm/callback",
            json={"code": "bad-code", "state": _state(encoder)},
        )

    assert response.status_code == 400
    assert store.record is None


@pytest.mark.anyio
async def test_integrations_report_connection_state(connect_overrides):
    _, _, encoder, _ = connect_overrides
    async with _client() as client:
        before = await client.get("/api/integrations")
        await client.post(
            "/api/auth/crm/callback", json={"code": "auth-code", "state": _state(encoder)}
        )
        after = await client.get("/api/integrations")

    statuses_before = {item["system"]: item for item in before.json()}
    statuses_after = {item["system"]: item for item in after.json()}
    assert statuses_before["crm"]["configured"] is True
    assert statuses_before["crm"]["connected"] is False
    assert statuses_after["crm"]["connected"] is True
    assert statuses_after["calendar"]["configured"] is False
    assert "client_id" in statuses_after["calendar"]["missing_settings"]
