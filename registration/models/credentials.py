"""
Domain models for OAuth credential persistence.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class CredentialRecord(BaseModel):
    """The single stored access/refresh token pair for one external system."""

    system: str = Field(..., description="External system key, e.g. 'crm' or 'calendar'.")
    access_token: str
    refresh_token: str
    expires_at: int = Field(..., description="Expiry as epoch milliseconds.")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def is_usable(self, *, now_ms: int, margin_ms: int) -> bool:
        """True while the access token stays valid beyond the safety margin."""
        return self.expires_at - margin_ms > now_ms


class TokenGrant(BaseModel):
    """Tokens returned by an authorization server's token endpoint."""

    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    expires_in: int = Field(..., gt=0, description="Declared lifetime in seconds.")


__all__ = ["CredentialRecord", "TokenGrant"]
