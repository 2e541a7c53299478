# bmw_saver/schedule/timeutil.py
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Iterator
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..config.errors import InvalidTimeFormat, InvalidTimeZone
from ..types import DayKey


def resolve_zone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise InvalidTimeZone(f"unknown time zone {name!r}") from e


def ensure_aware(dt: datetime) -> datetime:
    """Наивное время считаем UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def parse_hhmm(value: str) -> time:
    try:
        return datetime.strptime(value, "%H:%M").time()
    except (TypeError, ValueError) as e:
        raise InvalidTimeFormat(f"invalid time {value!r}, expected HH:MM") from e


def day_key(d: date) -> DayKey:
    return DayKey(d.strftime("%Y-%m-%d"))


def start_of_day(d: date, zone: tzinfo) -> datetime:
    return datetime.combine(d, time(0, 0), tzinfo=zone)


def days_touched(start: datetime, end: datetime, zone: tzinfo) -> Iterator[DayKey]:
    """
    Все календарные дни (в зоне zone), которые задевает интервал [start, end).

    end исключающий: событие до 00:00 следующего дня в него не попадает.
    """
    first = start.astimezone(zone).date()
    last = (end - timedelta(microseconds=1)).astimezone(zone).date()
    current = first
    while current <= last:
        yield day_key(current)
        current += timedelta(days=1)
