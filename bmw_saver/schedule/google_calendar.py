# bmw_saver/schedule/google_calendar.py
from __future__ import annotations

import logging
import os
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Dict, List, Optional

import httplib2
from google.auth.exceptions import GoogleAuthError
from google.oauth2 import service_account
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from ..config.errors import ConfigError
from .calendar import CalendarEvent, CalendarSyncError, RemoteCalendarProvider, to_instant
from .timeutil import start_of_day

log = logging.getLogger(__name__)

CALENDAR_READONLY_SCOPE = "https://www.googleapis.com/auth/calendar.readonly"


def build_calendar_service(credentials_path: str):
    if not os.path.isabs(credentials_path):
        raise ConfigError(f"credentials path must be absolute: {credentials_path}")
    try:
        creds = service_account.Credentials.from_service_account_file(
            credentials_path, scopes=[CALENDAR_READONLY_SCOPE]
        )
    except (OSError, ValueError) as e:
        raise ConfigError(f"failed to read credentials file: {e}") from e
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


def _parse_time(raw: Optional[Dict[str, Any]], zone: tzinfo) -> Optional[datetime]:
    """{dateTime: RFC3339} или {date: YYYY-MM-DD} (all-day)."""
    if not raw:
        return None
    if raw.get("dateTime"):
        return to_instant(datetime.fromisoformat(raw["dateTime"].replace("Z", "+00:00")), zone)
    if raw.get("date"):
        return to_instant(date.fromisoformat(raw["date"]), zone)
    return None


class GoogleCalendarProvider(RemoteCalendarProvider):
    """
    Нерабочее время = есть событие, найденное поисковым запросом off_time_events.

    Кеш держим на cache_days вперёд от сегодняшней полуночи. Если обновление
    упало, продолжаем отдавать старый кеш.
    """

    keep_cache_on_failure = True
    name = "google-calendar"

    def __init__(
        self,
        calendar_id: str,
        off_time_events: str,
        zone: tzinfo,
        sync_interval: float,
        cache_days: int = 7,
        service=None,
        credentials_path: Optional[str] = None,
        start_background: bool = True,
    ):
        self.calendar_id = calendar_id
        self.off_time_events = off_time_events
        self.cache_days = cache_days
        if service is None:
            service = build_calendar_service(credentials_path or "")
        self.service = service
        super().__init__(zone, sync_interval, start_background=start_background)

    def fetch_events(self) -> List[CalendarEvent]:
        today = datetime.now(self.zone).date()
        time_min = start_of_day(today, self.zone)
        time_max = start_of_day(today + timedelta(days=self.cache_days), self.zone)
        log.info(f"Syncing calendar events: time_min={time_min.isoformat()} time_max={time_max.isoformat()}")

        if not self.off_time_events:
            return []

        items: List[Dict[str, Any]] = []
        page_token = None
        try:
            while True:
                resp = self.service.events().list(
                    calendarId=self.calendar_id,
                    timeMin=time_min.isoformat(),
                    timeMax=time_max.isoformat(),
                    q=self.off_time_events,
                    singleEvents=True,
                    orderBy="startTime",
                    pageToken=page_token,
                ).execute()
                items.extend(resp.get("items", []))
                page_token = resp.get("nextPageToken")
                if not page_token:
                    break
        except (HttpError, GoogleAuthError, httplib2.HttpLib2Error, OSError) as e:
            raise CalendarSyncError(f"failed to list calendar events: {e}") from e

        events: List[CalendarEvent] = []
        for item in items:
            summary = item.get("summary", "")
            try:
                start = _parse_time(item.get("start"), self.zone)
                end = _parse_time(item.get("end"), self.zone)
            except ValueError as e:
                log.warning(f"Failed to parse event time: event={summary!r} error={e}")
                continue
            if start is None:
                log.warning(f"Event has no start time or date: event={summary!r}")
                continue
            if end is None:
                end = start + timedelta(days=1)
            events.append(CalendarEvent(start=start, end=end, label=summary))
        return events

    def verdict(self, matching: List[CalendarEvent]) -> Optional[bool]:
        # любое найденное off-time событие - нерабочее время
        return False

    def __repr__(self) -> str:
        return (
            f"GoogleCalendarProvider(calendar_id={self.calendar_id}, off_time_events={self.off_time_events!r}, "
            f"sync_interval={self.sync_interval}s, cache_days={self.cache_days}, cache_days_filled={self.cached_days})"
        )
