# bmw_saver/schedule/ics_calendar.py
from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, tzinfo
from typing import List, Optional, Sequence

import requests
from icalendar import Calendar

from ..config.errors import InvalidPattern
from .calendar import CalendarEvent, CalendarSyncError, RemoteCalendarProvider, one_day_after, to_instant

log = logging.getLogger(__name__)

FETCH_TIMEOUT = 30


def compile_patterns(patterns: Sequence[str], kind: str) -> List[re.Pattern]:
    compiled = []
    for p in patterns or []:
        try:
            compiled.append(re.compile(p))
        except re.error as e:
            raise InvalidPattern(f"invalid {kind} pattern {p!r}: {e}") from e
    return compiled


class ICSCalendarProvider(RemoteCalendarProvider):
    """
    Календарь в формате ICS по URL (например, производственный календарь).

    Для события, содержащего момент времени:
      - совпал holiday-паттерн -> нерабочее время;
      - иначе совпал work-day паттерн -> рабочее время;
      - иначе событие игнорируем и смотрим следующее.
    Ничего не совпало -> рабочее время.
    При неудачном обновлении кеш очищается до следующей попытки.
    """

    keep_cache_on_failure = False
    name = "ics-calendar"

    def __init__(
        self,
        url: str,
        zone: tzinfo,
        sync_interval: float,
        work_day_patterns: Sequence[str] = (),
        holiday_patterns: Sequence[str] = (),
        session: Optional[requests.Session] = None,
        start_background: bool = True,
    ):
        self.url = url
        self.work_patterns = compile_patterns(work_day_patterns, "work day")
        self.holiday_patterns = compile_patterns(holiday_patterns, "holiday")
        self.session = session or requests.Session()
        super().__init__(zone, sync_interval, start_background=start_background)

    def fetch_events(self) -> List[CalendarEvent]:
        try:
            resp = self.session.get(self.url, timeout=FETCH_TIMEOUT)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise CalendarSyncError(f"failed to fetch ICS calendar: {e}") from e

        try:
            cal = Calendar.from_ical(resp.content)
        except ValueError as e:
            raise CalendarSyncError(f"failed to parse ICS calendar: {e}") from e

        events: List[CalendarEvent] = []
        for component in cal.walk("VEVENT"):
            summary = component.get("SUMMARY")
            dtstart = component.get("DTSTART")
            if dtstart is None:
                log.warning(f"Event has no start time: summary={summary!r}")
                continue
            start = to_instant(dtstart.dt, self.zone)

            end = self._event_end(component, start)
            if summary is None:
                log.debug(f"Event has no summary: start={start} end={end}")
                continue
            events.append(CalendarEvent(start=start, end=end, label=str(summary)))
        return events

    def _event_end(self, component, start: datetime) -> datetime:
        dtend = component.get("DTEND")
        if dtend is not None:
            return to_instant(dtend.dt, self.zone)
        duration = component.get("DURATION")
        if duration is not None and isinstance(duration.dt, timedelta):
            return start + duration.dt
        # конца нет - считаем событие однодневным
        end = one_day_after(start)
        log.debug(f"No end time specified, treating as one-day event: start={start} end={end}")
        return end

    def verdict(self, matching: List[CalendarEvent]) -> Optional[bool]:
        for ev in matching:
            if any(p.search(ev.label) for p in self.holiday_patterns):
                return False
            if any(p.search(ev.label) for p in self.work_patterns):
                return True
        return None

    def __repr__(self) -> str:
        return (
            f"ICSCalendarProvider(url={self.url}, sync_interval={self.sync_interval}s, "
            f"work_patterns={len(self.work_patterns)}, holiday_patterns={len(self.holiday_patterns)}, "
            f"cache_days_filled={self.cached_days})"
        )
