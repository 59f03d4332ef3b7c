"""Cache en processus à durée de vie courte, borné à la semaine courante."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from astrofriends.domain.weeks import Clock, utc_now, week_key


@dataclass
class _Entry:
    value: Any
    inserted_at: datetime
    week: str


class WeeklyTTLCache:
    """Map clé → valeur; une entrée expire après `ttl_days` ou au changement de semaine."""

    def __init__(self, ttl_days: int = 7, clock: Clock = utc_now) -> None:
        self.ttl = timedelta(days=ttl_days)
        self.clock = clock
        self._entries: dict[Any, _Entry] = {}

    def get(self, key: Any) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        now = self.clock()
        if now - entry.inserted_at >= self.ttl or week_key(now) != entry.week:
            self._entries.pop(key, None)
            return None
        return entry.value

    def set(self, key: Any, value: Any) -> None:
        now = self.clock()
        self._entries[key] = _Entry(value=value, inserted_at=now, week=week_key(now))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
