"""Store de documents adossé à Redis (redis.asyncio).

Chaque collection est un hash `{prefix}:{collection}` dont les champs sont les
clés naturelles jointes par `|` et les valeurs des documents JSON. La liste des
champs de la clé naturelle est mémorisée dans `{prefix}:{collection}:_key` pour
servir les lectures par clé complète sans parcourir le hash.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any

import redis.asyncio as aioredis
import structlog
from redis.exceptions import RedisError, WatchError

from astrofriends.domain.errors import MalformedResponse, RemoteUnavailable
from astrofriends.infra.store.base import DocumentStore, Record, matches, natural_key

log = structlog.get_logger(__name__)

_MAX_WATCH_RETRIES = 5


class RedisDocumentStore(DocumentStore):
    backend_name = "redis"

    def __init__(
        self,
        url: str | None = None,
        prefix: str = "astrofriends",
        timeout_s: float = 15.0,
        client: aioredis.Redis | None = None,
    ) -> None:
        if client is None:
            if not url:
                raise ValueError("REDIS_URL is required for the redis store")
            client = aioredis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=timeout_s,
                socket_timeout=timeout_s,
                retry_on_timeout=True,
            )
        self.client = client
        self.prefix = prefix

    def _hash(self, collection: str) -> str:
        return f"{self.prefix}:{collection}"

    @staticmethod
    def _decode(raw: str | bytes) -> Record:
        try:
            doc = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise MalformedResponse("redis_invalid_document") from exc
        if not isinstance(doc, dict):
            raise MalformedResponse("redis_invalid_document")
        return doc

    async def get(self, collection: str, filters: Mapping[str, Any]) -> list[Record]:
        name = self._hash(collection)
        try:
            key_fields = await self.client.get(f"{name}:_key")
            if key_fields and set(key_fields.split(",")) == set(filters):
                field = "|".join(str(filters[k]) for k in key_fields.split(","))
                raw = await self.client.hget(name, field)
                return [self._decode(raw)] if raw else []
            values = await self.client.hvals(name)
        except RedisError as exc:
            raise RemoteUnavailable(f"redis_error: {exc}") from exc
        docs = [self._decode(raw) for raw in values]
        return [d for d in docs if matches(d, filters)]

    async def upsert(
        self, collection: str, record: Record, conflict_key: Sequence[str]
    ) -> Record:
        name = self._hash(collection)
        field = "|".join(natural_key(record, conflict_key))
        try:
            for _attempt in range(_MAX_WATCH_RETRIES):
                async with self.client.pipeline(transaction=True) as pipe:
                    try:
                        await pipe.watch(name)
                        raw = await pipe.hget(name, field)
                        merged = {**(self._decode(raw) if raw else {}), **record}
                        pipe.multi()
                        pipe.hset(name, field, json.dumps(merged))
                        pipe.set(f"{name}:_key", ",".join(conflict_key))
                        await pipe.execute()
                        return merged
                    except WatchError:
                        log.debug("redis_upsert_conflict", collection=collection)
                        continue
        except RedisError as exc:
            raise RemoteUnavailable(f"redis_error: {exc}") from exc
        raise RemoteUnavailable("redis_upsert_contention")

    async def aclose(self) -> None:
        await self.client.aclose()
