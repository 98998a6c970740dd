"""
DynamoDB-backed record storage, interchangeable with :class:`SQLiteStore`.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from registration.clients.errors import StoreUnavailableError
from registration.core.config import StorageSettings


class DynamoDBClient:
    """Single-item get/put against a table keyed by ``pk`` and ``sk``."""

    def __init__(self, settings: StorageSettings, table: Any | None = None) -> None:
        if table is None:
            if not settings.dynamodb_table_name:
                raise ValueError("DYNAMODB_TABLE_NAME is required for the dynamodb backend.")
            resource = boto3.resource("dynamodb", region_name=settings.region_name)
            table = resource.Table(settings.dynamodb_table_name)
        self._table = table

    def put_item(self, item: Dict[str, Any]) -> None:
        """Replace the item with the same key; DynamoDB puts are atomic."""
        if not item.get("pk") or not item.get("sk"):
            raise ValueError("Item must include 'pk' and 'sk' keys")
        try:
            self._table.put_item(Item=item)
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailableError(
                f"Failed to write record {item['pk']}/{item['sk']}."
            ) from exc

    def get_item(
        self, *, partition_key: str, sort_key: str
    ) -> Optional[Dict[str, Any]]:
        try:
            response = self._table.get_item(Key={"pk": partition_key, "sk": sort_key})
        except (BotoCoreError, ClientError) as exc:
            raise StoreUnavailableError(
                f"Failed to read record {partition_key}/{sort_key}."
            ) from exc
        return response.get("Item")


__all__ = ["DynamoDBClient"]
