# bmw_saver/schedule/calendar.py
from __future__ import annotations

import logging
import threading
from abc import abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timedelta, tzinfo
from typing import Dict, Iterable, List, Optional

from ..types import DayKey
from ..utils.rwlock import RWLock
from .base import WorkTimeProvider
from .timeutil import day_key, days_touched, ensure_aware, start_of_day

log = logging.getLogger(__name__)


class CalendarSyncError(RuntimeError):
    """Не удалось скачать или разобрать календарь."""


@dataclass(frozen=True)
class CalendarEvent:
    start: datetime
    end: datetime  # исключающая граница
    label: str

    def contains(self, now: datetime) -> bool:
        return self.start <= now < self.end


def to_instant(value, zone: tzinfo) -> datetime:
    """
    date -> полночь в zone; наивный datetime -> "плавающее" время в zone;
    aware datetime остаётся как есть.
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=zone)
        return value
    if isinstance(value, date):
        return start_of_day(value, zone)
    raise TypeError(f"unsupported calendar time value: {value!r}")


def build_day_index(events: Iterable[CalendarEvent], zone: tzinfo) -> Dict[DayKey, List[CalendarEvent]]:
    """Раскладываем события по всем дням, которые они задевают."""
    index: Dict[DayKey, List[CalendarEvent]] = {}
    for ev in events:
        if ev.end <= ev.start:
            log.warning(f"Skipping calendar event {ev.label!r}: end {ev.end} is not after start {ev.start}")
            continue
        for key in days_touched(ev.start, ev.end, zone):
            index.setdefault(key, []).append(ev)
    return index


def one_day_after(start: datetime) -> datetime:
    return start + timedelta(days=1)


class RemoteCalendarProvider(WorkTimeProvider):
    """
    Общая часть календарных провайдеров (Google / ICS).

    - при создании один синхронный sync, потом фоновый поток раз в sync_interval;
    - кеш событий разложен по дням (YYYY-MM-DD в зоне провайдера);
    - кеш защищён RWLock: lookup берёт read, sync подменяет словарь целиком под write;
    - keep_cache_on_failure: при неудачном обновлении оставить старый кеш
      (Google) или очистить его до следующей попытки (ICS).
    """

    keep_cache_on_failure: bool = True
    name: str = "calendar"

    def __init__(self, zone: tzinfo, sync_interval: float, start_background: bool = True):
        self.zone = zone
        self.sync_interval = sync_interval
        self._events: Dict[DayKey, List[CalendarEvent]] = {}
        self._lock = RWLock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.last_sync: Optional[datetime] = None

        # первичная синхронизация обязана пройти
        self._sync_or_raise()

        if start_background:
            self._thread = threading.Thread(
                target=self._background_sync, name=f"{self.name}-sync", daemon=True
            )
            self._thread.start()

    # --- переопределяется в вариантах ---

    @abstractmethod
    def fetch_events(self) -> List[CalendarEvent]:
        """Скачать и разобрать календарь. Ошибки -> CalendarSyncError."""

    @abstractmethod
    def verdict(self, matching: List[CalendarEvent]) -> Optional[bool]:
        """
        Решение по событиям, содержащим момент времени (в порядке кеша).
        None - события ничего не говорят, по умолчанию рабочее время.
        """

    # --- синхронизация ---

    def _sync_or_raise(self) -> None:
        events = self.fetch_events()
        self._replace(events)

    def _replace(self, events: List[CalendarEvent]) -> None:
        index = build_day_index(events, self.zone)
        with self._lock.write():
            self._events = index
            self.last_sync = ensure_aware(datetime.now(self.zone))
        log.info(f"{self.name} events synced successfully: events_count={len(events)} days={len(index)}")

    def sync(self) -> bool:
        try:
            self._sync_or_raise()
            return True
        except CalendarSyncError as e:
            log.error(f"Failed to sync {self.name} events: {e}")
            if not self.keep_cache_on_failure:
                with self._lock.write():
                    self._events = {}
            return False

    def _background_sync(self) -> None:
        while not self._stop.wait(self.sync_interval):
            try:
                self.sync()
            except Exception:
                # поток обновления не должен умирать: следующая попытка через sync_interval
                log.exception(f"Unexpected error while syncing {self.name} events")

    def close(self) -> None:
        self._stop.set()

    # --- lookup ---

    def is_work_time(self, now: datetime) -> bool:
        now = ensure_aware(now)
        key = day_key(now.astimezone(self.zone).date())
        with self._lock.read():
            events = self._events.get(key)
            if not events:
                # нет данных календаря на этот день - не повод считать день выходным
                return True
            matching = [ev for ev in events if ev.contains(now)]
        if not matching:
            return True
        result = self.verdict(matching)
        return True if result is None else result

    @property
    def cached_days(self) -> int:
        with self._lock.read():
            return len(self._events)
