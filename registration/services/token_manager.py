"""
Access-token lifecycle for the CRM and calendar integrations.

Each external system has exactly one persisted credential. Callers ask for a
valid access token right before every outbound request; the manager returns
the cached token while it is outside the safety margin and otherwise performs
a single refresh exchange, persists the result, and only then hands out the new
token. At most one refresh per system is in flight; concurrent requests that
observe the same expired token await its outcome, including its failure.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, Dict, Mapping

from registration.clients.oauth import OAuthClient, OAuthTokenExchangeError
from registration.models.credentials import CredentialRecord, TokenGrant

if TYPE_CHECKING:  # pragma: no cover - type hints only
    from registration.clients.credential_store import CredentialStore

logger = logging.getLogger(__name__)

CRM = "crm"
CALENDAR = "calendar"


class IntegrationNotConfiguredError(Exception):
    """Raised for a system whose OAuth app settings were missing at startup."""

    def __init__(self, system: str) -> None:
        super().__init__(f"Integration {system!r} is not configured.")
        self.system = system


class NotAuthorizedError(Exception):
    """Raised when no credential has been stored for a system yet."""

    def __init__(self, system: str) -> None:
        super().__init__(
            f"Integration {system!r} has not been connected; complete the authorization flow first."
        )
        self.system = system


class RefreshFailedError(Exception):
    """Raised when the refresh exchange fails; the stored credential is untouched."""

    def __init__(self, system: str, reason: str) -> None:
        super().__init__(f"Failed to refresh access token for {system!r}: {reason}")
        self.system = system


@dataclass(frozen=True)
class Integration:
    """Credential store and authorization server of one external system."""

    store: CredentialStore
    oauth_client: OAuthClient


def _now_ms() -> int:
    return int(time.time() * 1000)


class TokenManager:
    """Hand out valid access tokens, refreshing them on demand."""

    def __init__(
        self,
        integrations: Mapping[str, Integration],
        *,
        safety_margin_seconds: int = 60,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self._integrations = dict(integrations)
        self._margin_ms = safety_margin_seconds * 1000
        self._clock = clock
        self._inflight: Dict[str, asyncio.Future[CredentialRecord]] = {}

    @property
    def systems(self) -> tuple[str, ...]:
        return tuple(self._integrations)

    def is_configured(self, system: str) -> bool:
        return system in self._integrations

    def oauth_client(self, system: str) -> OAuthClient:
        return self._integration(system).oauth_client

    def is_connected(self, system: str) -> bool:
        """True when a credential record exists for ``system``."""
        return self._integration(system).store.load() is not None

    async def get_valid_access_token(self, system: str) -> str:
        """Return a usable access token for ``system``, refreshing if required."""
        integration = self._integration(system)

        record = self._load(system, integration)
        if record.is_usable(now_ms=self._clock(), margin_ms=self._margin_ms):
            return record.access_token

        pending = self._inflight.get(system)
        if pending is None:
            pending = asyncio.ensure_future(self._refresh_if_stale(system, integration))
            self._inflight[system] = pending
            pending.add_done_callback(lambda task: self._finish_refresh(system, task))
        # Waiters share the outcome, success or RefreshFailedError, of one exchange.
        refreshed = await asyncio.shield(pending)
        return refreshed.access_token

    def store_authorization(self, system: str, grant: TokenGrant) -> CredentialRecord:
        """Persist the credential produced by an authorization-code exchange."""
        integration = self._integration(system)
        if not grant.refresh_token:
            raise ValueError("An initial authorization must include a refresh token.")
        record = self._build_record(
            system,
            grant,
            issued_at_ms=self._clock(),
            refresh_token=grant.refresh_token,
        )
        integration.store.save(record)
        logger.info("Stored new %s credential expiring at %s", system, record.expires_at)
        return record

    def _integration(self, system: str) -> Integration:
        try:
            return self._integrations[system]
        except KeyError:
            raise IntegrationNotConfiguredError(system) from None

    @staticmethod
    def _load(system: str, integration: Integration) -> CredentialRecord:
        record = integration.store.load()
        if record is None:
            raise NotAuthorizedError(system)
        return record

    async def _refresh_if_stale(self, system: str, integration: Integration) -> CredentialRecord:
        # A refresh that finished after the caller's first load may already be stored.
        record = self._load(system, integration)
        if record.is_usable(now_ms=self._clock(), margin_ms=self._margin_ms):
            return record
        return await self._refresh(system, integration, record)

    def _finish_refresh(self, system: str, task: asyncio.Future) -> None:
        if self._inflight.get(system) is task:
            del self._inflight[system]
        if not task.cancelled():
            # Marks the error retrieved when every waiter was cancelled.
            task.exception()

    async def _refresh(
        self, system: str, integration: Integration, record: CredentialRecord
    ) -> CredentialRecord:
        logger.info("Refreshing %s access token (expired at %s)", system, record.expires_at)
        issued_at_ms = self._clock()
        try:
            grant = await integration.oauth_client.refresh_token(record.refresh_token)
        except OAuthTokenExchangeError as exc:
            logger.error("Refresh for %s failed: %s", system, exc)
            raise RefreshFailedError(system, str(exc)) from exc

        refreshed = self._build_record(
            system,
            grant,
            issued_at_ms=issued_at_ms,
            refresh_token=grant.refresh_token or record.refresh_token,
        )
        integration.store.save(refreshed)
        logger.info("Refreshed %s access token; new expiry %s", system, refreshed.expires_at)
        return refreshed

    @staticmethod
    def _build_record(
        system: str, grant: TokenGrant, *, issued_at_ms: int, refresh_token: str
    ) -> CredentialRecord:
        return CredentialRecord(
            system=system,
            access_token=grant.access_token,
            refresh_token=refresh_token,
            expires_at=issued_at_ms + grant.expires_in * 1000,
            updated_at=datetime.now(timezone.utc),
        )


__all__ = [
    "CALENDAR",
    "CRM",
    "Integration",
    "IntegrationNotConfiguredError",
    "NotAuthorizedError",
    "RefreshFailedError",
    "TokenManager",
]
