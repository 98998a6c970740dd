"""
OAuth 2.0 authorization-server utilities.

These helpers build consent URLs, sign the ``state`` round-trip and talk to a
provider's token endpoint for both the authorization-code and refresh-token
grants. HubSpot and Microsoft identity are configured through
:class:`OAuthProvider` descriptors so one client implementation serves both.
"""

from __future__ import annotations

import base64
import hmac
import json
import logging
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Dict, Protocol
from urllib.parse import urlencode

import httpx
from fastapi import HTTPException, status
from pydantic import ValidationError

from registration.core.config import HubSpotSettings, MicrosoftSettings
from registration.models.credentials import TokenGrant

logger = logging.getLogger(__name__)


class OAuthStateEncoder:
    """Encode and decode OAuth state values to guard against tampering."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key.encode("utf-8")

    def encode(self, payload: Dict[str, Any]) -> str:
        serialized = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        signature = hmac.new(self._secret_key, serialized.encode("utf-8"), sha256).digest()
        return base64.urlsafe_b64encode(signature + serialized.encode("utf-8")).decode("utf-8")

    def decode(self, token: str) -> Dict[str, Any]:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8"))
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Malformed OAuth state.",
            ) from exc
        signature, serialized = decoded[:32], decoded[32:]
        expected_signature = hmac.new(self._secret_key, serialized, sha256).digest()
        if not hmac.compare_digest(signature, expected_signature):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Invalid OAuth state signature.",
            )
        return json.loads(serialized)


class AccessTokenProvider(Protocol):
    """Anything that can hand out a bearer token for a named system."""

    async def get_valid_access_token(self, system: str) -> str: ...


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint fails or returns an unusable payload."""


@dataclass(frozen=True)
class OAuthProvider:
    """Endpoints and app credentials of one authorization server."""

    name: str
    authorize_url: str
    token_url: str
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: tuple[str, ...]
    scope_separator: str = " "
    # Microsoft identity scopes each refreshed token by the request's scope parameter.
    send_scope_on_refresh: bool = False


def hubspot_provider(settings: HubSpotSettings) -> OAuthProvider:
    return OAuthProvider(
        name="hubspot",
        authorize_url="https://app.hubspot.com/oauth/authorize",
        token_url="https://api.hubapi.com/oauth/v1/token",
        client_id=settings.client_id or "",
        client_secret=settings.client_secret or "",
        redirect_uri=str(settings.redirect_uri or ""),
        scopes=settings.scopes,
    )


def microsoft_provider(settings: MicrosoftSettings) -> OAuthProvider:
    authority = f"https://login.microsoftonline.com/{settings.tenant_id}/oauth2/v2.0"
    return OAuthProvider(
        name="microsoft",
        authorize_url=f"{authority}/authorize",
        token_url=f"{authority}/token",
        client_id=settings.client_id or "",
        client_secret=settings.client_secret or "",
        redirect_uri=str(settings.redirect_uri or ""),
        scopes=settings.scopes,
        send_scope_on_refresh=True,
    )


class OAuthClient:
    """Build authorization URLs and call the provider's token endpoint."""

    def __init__(
        self,
        provider: OAuthProvider,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._provider = provider
        self._timeout = timeout
        self._transport = transport

    @property
    def provider(self) -> OAuthProvider:
        return self._provider

    def build_authorization_url(self, state: str) -> str:
        """Construct the provider consent URL."""
        params = {
            "client_id": self._provider.client_id,
            "redirect_uri": self._provider.redirect_uri,
            "response_type": "code",
            "scope": self._provider.scope_separator.join(self._provider.scopes),
            "state": state,
        }
        return f"{self._provider.authorize_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """Exchange an authorization code for the initial token pair."""
        grant = await self._request_token(
            {
                "grant_type": "authorization_code",
                "client_id": self._provider.client_id,
                "client_secret": self._provider.client_secret,
                "redirect_uri": self._provider.redirect_uri,
                "code": code,
            }
        )
        if not grant.refresh_token:
            raise OAuthTokenExchangeError(
                f"{self._provider.name} did not return a refresh token; offline access is required."
            )
        return grant

    async def refresh_token(self, refresh_token: str) -> TokenGrant:
        """Mint a new access token from a stored refresh token."""
        payload = {
            "grant_type": "refresh_token",
            "client_id": self._provider.client_id,
            "client_secret": self._provider.client_secret,
            "refresh_token": refresh_token,
        }
        if self._provider.send_scope_on_refresh:
            payload["scope"] = self._provider.scope_separator.join(self._provider.scopes)
        return await self._request_token(payload)

    async def _request_token(self, payload: Dict[str, str]) -> TokenGrant:
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(self._provider.token_url, data=payload)
        except httpx.TimeoutException as exc:
            raise OAuthTokenExchangeError(
                f"Timed out after {self._timeout}s calling the {self._provider.name} token endpoint."
            ) from exc
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(
                f"Could not reach the {self._provider.name} token endpoint: {exc}"
            ) from exc

        if not response.is_success:
            logger.warning(
                "%s token endpoint returned %s for grant %s",
                self._provider.name,
                response.status_code,
                payload["grant_type"],
            )
            raise OAuthTokenExchangeError(
                f"{self._provider.name} token endpoint returned {response.status_code}: {response.text}"
            )

        try:
            return TokenGrant.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise OAuthTokenExchangeError(
                f"Incomplete token payload returned from {self._provider.name}."
            ) from exc


__all__ = [
    "AccessTokenProvider",
    "OAuthClient",
    "OAuthProvider",
    "OAuthStateEncoder",
    "OAuthTokenExchangeError",
    "hubspot_provider",
    "microsoft_provider",
]
