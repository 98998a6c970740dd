"""Schemas related to OAuth flows."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field


class OAuthCallbackPayload(BaseModel):
    """Payload sent to complete the OAuth callback exchange."""

    code: str = Field(..., description="Authorization code returned by the provider.")
    state: str = Field(..., description="Opaque state token issued when starting OAuth.")


class IntegrationStatus(BaseModel):
    """Whether an integration is configured and has a stored credential."""

    system: str
    configured: bool
    connected: bool
    missing_settings: list[str] = Field(default_factory=list)
    error: Optional[str] = None


__all__ = ["IntegrationStatus", "OAuthCallbackPayload"]
