"""Store de documents en mémoire (utilisé pour dev/tests).

Stocke les enregistrements dans un dict local, non persistant.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from typing import Any

from astrofriends.infra.store.base import DocumentStore, Record, matches, natural_key


class InMemoryDocumentStore(DocumentStore):
    backend_name = "memory"

    def __init__(self) -> None:
        self._db: dict[str, dict[tuple[str, ...], Record]] = {}
        self._lock = asyncio.Lock()

    async def get(self, collection: str, filters: Mapping[str, Any]) -> list[Record]:
        rows = self._db.get(collection, {})
        return [dict(r) for r in rows.values() if matches(r, filters)]

    async def upsert(
        self, collection: str, record: Record, conflict_key: Sequence[str]
    ) -> Record:
        key = natural_key(record, conflict_key)
        async with self._lock:
            rows = self._db.setdefault(collection, {})
            merged = {**rows.get(key, {}), **record}
            rows[key] = merged
        return dict(merged)

    def count(self, collection: str) -> int:
        """Nombre d'enregistrements d'une collection."""
        return len(self._db.get(collection, {}))
