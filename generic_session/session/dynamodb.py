"""DynamoDB session backend for production deployments."""

from __future__ import annotations

import json
import time
from typing import Any

import aioboto3


class DynamoDBSessionBackend:
    """Session backend using AWS DynamoDB.

    Table schema:
        Partition key: session_id (S)
        Attributes: data (S, JSON-encoded), updated_at (N), ttl (N, optional)

    Enable TTL on the `ttl` attribute for automatic cleanup. DynamoDB only
    deletes expired items eventually, so `get` also checks `ttl` itself.
    Records saved without a max age carry no `ttl` and never expire.
    """

    def __init__(
        self,
        table_name: str = "sessions",
        endpoint_url: str = "",
        region_name: str = "us-west-2",
    ) -> None:
        self._table_name = table_name
        self._session = aioboto3.Session()
        self._endpoint_url = endpoint_url or None
        self._region_name = region_name

    def _resource(self):
        return self._session.resource(
            "dynamodb",
            endpoint_url=self._endpoint_url,
            region_name=self._region_name,
        )

    async def get(self, key: str) -> dict[str, Any] | None:
        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self._table_name)
            response = await table.get_item(Key={"session_id": key})

        item = response.get("Item")
        if item is None:
            return None

        ttl = item.get("ttl")
        if ttl is not None and time.time() >= float(ttl):
            await self.destroy(key)
            return None

        return json.loads(item["data"])

    async def set(self, key: str, record: dict[str, Any], max_age: int | None) -> None:
        now = time.time()
        item: dict[str, Any] = {
            "session_id": key,
            "data": json.dumps(record),
            "updated_at": int(now),
        }
        if max_age is not None:
            item["ttl"] = int(now + max_age)

        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self._table_name)
            await table.put_item(Item=item)

    async def destroy(self, key: str) -> None:
        async with self._resource() as dynamodb:
            table = await dynamodb.Table(self._table_name)
            await table.delete_item(Key={"session_id": key})
