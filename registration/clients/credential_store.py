"""
Durable storage for the one OAuth credential record of each external system.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol

from registration.clients.errors import StoreUnavailableError
from registration.models.credentials import CredentialRecord
from registration.services.token_cipher import TokenCipherService, TokenDecryptionError


class RecordStore(Protocol):
    """Key-value backend shared by :class:`SQLiteStore` and :class:`DynamoDBClient`."""

    def get_item(
        self, *, partition_key: str, sort_key: str
    ) -> Optional[Dict[str, Any]]: ...

    def put_item(self, item: Dict[str, Any]) -> None: ...


class CredentialStore(Protocol):
    """Load/save contract the token manager depends on."""

    def load(self) -> Optional[CredentialRecord]: ...

    def save(self, record: CredentialRecord) -> None: ...


class RecordCredentialStore:
    """Persist one encrypted credential item per system in a record store."""

    SORT_KEY = "oauth#credential"

    def __init__(
        self,
        record_store: RecordStore,
        cipher: TokenCipherService,
        *,
        system: str,
    ) -> None:
        self._records = record_store
        self._cipher = cipher
        self._system = system

    @property
    def partition_key(self) -> str:
        return f"integration#{self._system}"

    def load(self) -> Optional[CredentialRecord]:
        """Return the stored credential, or ``None`` when never authorized."""
        item = self._records.get_item(
            partition_key=self.partition_key, sort_key=self.SORT_KEY
        )
        if not item:
            return None

        try:
            access_token = self._cipher.decrypt(item["access_token_encrypted"])
            refresh_token = self._cipher.decrypt(item["refresh_token_encrypted"])
            expires_at = int(item["expires_at"])
        except (KeyError, TypeError, ValueError, TokenDecryptionError) as exc:
            raise StoreUnavailableError(
                f"Stored credential for {self._system!r} is unreadable."
            ) from exc

        updated_at = item.get("updated_at")
        return CredentialRecord(
            system=self._system,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
            updated_at=datetime.fromisoformat(updated_at)
            if updated_at
            else datetime.now(timezone.utc),
        )

    def save(self, record: CredentialRecord) -> None:
        """Replace the stored credential with ``record`` in a single put."""
        if record.system != self._system:
            raise ValueError(
                f"Credential for {record.system!r} cannot be saved in the {self._system!r} store."
            )
        self._records.put_item(
            {
                "pk": self.partition_key,
                "sk": self.SORT_KEY,
                "system": self._system,
                "access_token_encrypted": self._cipher.encrypt(record.access_token),
                "refresh_token_encrypted": self._cipher.encrypt(record.refresh_token),
                "expires_at": record.expires_at,
                "updated_at": record.updated_at.isoformat(),
            }
        )


__all__ = ["CredentialStore", "RecordCredentialStore", "RecordStore"]
