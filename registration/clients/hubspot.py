"""HubSpot CRM contacts API wrapper."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from registration.clients.oauth import AccessTokenProvider

logger = logging.getLogger(__name__)


class HubSpotError(Exception):
    """Raised when the CRM API responds with a non-success status."""

    def __init__(self, message: str, *, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class HubSpotClient:
    """Search and upsert contacts, authenticating with the CRM credential."""

    CONTACTS_PATH = "/crm/v3/objects/contacts"

    def __init__(
        self,
        token_provider: AccessTokenProvider,
        *,
        system: str = "crm",
        base_url: str = "https://api.hubapi.com",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._tokens = token_provider
        self._system = system
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    async def upsert_contact(self, email: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        """Update the contact with ``email`` or create it when none exists."""
        body = {"properties": properties}
        try:
            async with self._client() as client:
                contact_id = await self._find_contact_id(client, email)
                if contact_id:
                    logger.info("Updating HubSpot contact %s", contact_id)
                    response = await client.patch(
                        f"{self.CONTACTS_PATH}/{contact_id}",
                        json=body,
                        headers=await self._auth_headers(),
                    )
                else:
                    logger.info("Creating HubSpot contact")
                    response = await client.post(
                        self.CONTACTS_PATH, json=body, headers=await self._auth_headers()
                    )
        except httpx.HTTPError as exc:
            raise HubSpotError(f"Could not reach HubSpot: {exc}") from exc
        self._raise_for_status(response, "upsert contact")
        return response.json()

    async def _auth_headers(self) -> Dict[str, str]:
        """Fetch a token for exactly one outbound request."""
        access_token = await self._tokens.get_valid_access_token(self._system)
        return {"Authorization": f"Bearer {access_token}"}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Content-Type": "application/json"},
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _find_contact_id(self, client: httpx.AsyncClient, email: str) -> Optional[str]:
        response = await client.post(
            f"{self.CONTACTS_PATH}/search",
            headers=await self._auth_headers(),
            json={
                "filterGroups": [
                    {"filters": [{"propertyName": "email", "operator": "EQ", "value": email}]}
                ],
                "properties": ["email"],
            },
        )
        self._raise_for_status(response, "search contacts")
        results = response.json().get("results") or []
        return str(results[0]["id"]) if results else None

    @staticmethod
    def _raise_for_status(response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        try:
            body: Any = response.json()
        except ValueError:
            body = response.text
        logger.error("HubSpot %s failed with %s: %s", action, response.status_code, body)
        raise HubSpotError(
            f"HubSpot {action} failed with status {response.status_code}.",
            status_code=response.status_code,
            body=body,
        )


__all__ = ["HubSpotClient", "HubSpotError"]
