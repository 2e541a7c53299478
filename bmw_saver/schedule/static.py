# bmw_saver/schedule/static.py
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from .base import WorkTimeProvider
from .timeutil import ensure_aware, parse_hhmm, resolve_zone

_WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

# Пн-Пт
DEFAULT_WORK_DAYS = frozenset(range(5))


class StaticProvider(WorkTimeProvider):
    """
    Фиксированное окно HH:MM-HH:MM в заданной зоне по заданным дням недели.

    Обе границы исключающие: ровно в start_time или end_time - не рабочее время.
    """

    def __init__(
        self,
        start_time: str,
        end_time: str,
        time_zone: str,
        work_days: Optional[Iterable[int]] = None,
    ):
        self.start_time = start_time
        self.end_time = end_time
        self.time_zone = time_zone
        self.work_days = frozenset(work_days) if work_days is not None else DEFAULT_WORK_DAYS

    def is_work_time(self, now: datetime) -> bool:
        zone = resolve_zone(self.time_zone)
        local_now = ensure_aware(now).astimezone(zone)

        if local_now.weekday() not in self.work_days:
            return False

        start = parse_hhmm(self.start_time)
        end = parse_hhmm(self.end_time)
        start_dt = local_now.replace(hour=start.hour, minute=start.minute, second=0, microsecond=0)
        end_dt = local_now.replace(hour=end.hour, minute=end.minute, second=0, microsecond=0)

        return start_dt < local_now < end_dt

    def __repr__(self) -> str:
        days = [_WEEKDAY_NAMES[d] for d in sorted(self.work_days)]
        return (
            f"StaticProvider(start_time={self.start_time}, end_time={self.end_time}, "
            f"time_zone={self.time_zone}, work_days={days})"
        )
