"""Clés de semaine canoniques et horloge injectable."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Horloge par défaut (UTC, timezone-aware)."""
    return datetime.now(UTC)


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def week_start(value: date | datetime) -> date:
    """Lundi de la semaine ISO contenant `value`."""
    day = _as_date(value)
    return day - timedelta(days=day.weekday())


def week_key(value: date | datetime) -> str:
    """Clé naturelle `YYYY-MM-DD` du lundi de la semaine ISO."""
    return week_start(value).isoformat()


def iso_week_number(value: date | datetime) -> int:
    return _as_date(value).isocalendar()[1]
