# bmw_saver/model/config.py
from __future__ import annotations

import re
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..config.errors import InvalidDuration
from ..types import CloudProviderKind, NodePoolName

DEFAULT_START_TIME = "09:00"
DEFAULT_END_TIME = "17:00"
DEFAULT_TIME_ZONE = "UTC"
DEFAULT_SYNC_INTERVAL = "1h"
DEFAULT_CACHE_DAYS = 7
DEFAULT_CREDENTIALS_PATH = "/etc/google/credentials.json"

_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")


def parse_duration(value: str) -> float:
    """
    Go-подобная строка длительности -> секунды.

    Поддерживаются группы <число><единица>: "1h", "30m", "1h30m", "45s", "500ms".
    """
    text = (value or "").strip()
    if not text:
        raise InvalidDuration("empty duration")
    pos = 0
    total = 0.0
    for m in _DURATION_PART.finditer(text):
        if m.start() != pos:
            break
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if pos != len(text):
        raise InvalidDuration(f"invalid duration {value!r}")
    if total <= 0:
        raise InvalidDuration(f"duration must be positive: {value!r}")
    return total


class _Model(BaseModel):
    # ключи в YAML - camelCase, в коде - snake_case
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


class WorkDays(_Model):
    monday: bool = True
    tuesday: bool = True
    wednesday: bool = True
    thursday: bool = True
    friday: bool = True
    saturday: bool = False
    sunday: bool = False

    def as_weekdays(self) -> Set[int]:
        """Номера дней в терминах datetime.weekday() (0 = понедельник)."""
        flags = [self.monday, self.tuesday, self.wednesday, self.thursday,
                 self.friday, self.saturday, self.sunday]
        return {i for i, on in enumerate(flags) if on}


class GoogleCalendarConfig(_Model):
    calendar_id: str = Field("", alias="calendarId")
    credentials_path: str = Field(DEFAULT_CREDENTIALS_PATH, alias="credentialsPath")
    # поисковый запрос событий, которые означают нерабочее время
    off_time_events: str = Field("", alias="offTimeEvents")
    sync_interval: str = Field(DEFAULT_SYNC_INTERVAL, alias="syncInterval")
    cache_days: int = Field(DEFAULT_CACHE_DAYS, alias="cacheDays")

    @field_validator("credentials_path", mode="before")
    @classmethod
    def _default_credentials(cls, v):
        return v or DEFAULT_CREDENTIALS_PATH

    @field_validator("sync_interval", mode="before")
    @classmethod
    def _check_interval(cls, v):
        v = v or DEFAULT_SYNC_INTERVAL
        parse_duration(v)
        return v

    @field_validator("cache_days", mode="before")
    @classmethod
    def _default_cache_days(cls, v):
        if v is None or int(v) <= 0:
            return DEFAULT_CACHE_DAYS
        return int(v)

    @property
    def sync_interval_seconds(self) -> float:
        return parse_duration(self.sync_interval)


class ICSCalendarConfig(_Model):
    url: str = ""
    work_day_patterns: List[str] = Field(default_factory=list, alias="workDayPatterns")
    holiday_patterns: List[str] = Field(default_factory=list, alias="holidayPatterns")
    sync_interval: str = Field(DEFAULT_SYNC_INTERVAL, alias="syncInterval")
    # зона для all-day событий; по умолчанию - зона расписания
    time_zone: Optional[str] = Field(None, alias="timeZone")

    @field_validator("work_day_patterns", "holiday_patterns", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return v or []

    @field_validator("sync_interval", mode="before")
    @classmethod
    def _check_interval(cls, v):
        v = v or DEFAULT_SYNC_INTERVAL
        parse_duration(v)
        return v

    @property
    def sync_interval_seconds(self) -> float:
        return parse_duration(self.sync_interval)


class WorkSchedule(_Model):
    start_time: str = Field(DEFAULT_START_TIME, alias="startTime")
    end_time: str = Field(DEFAULT_END_TIME, alias="endTime")
    time_zone: str = Field(DEFAULT_TIME_ZONE, alias="timeZone")
    work_days: WorkDays = Field(default_factory=WorkDays, alias="workDays")

    google_calendar: Optional[GoogleCalendarConfig] = Field(None, alias="googleCalendar")
    ics_calendar: Optional[ICSCalendarConfig] = Field(None, alias="icsCalendar")

    @field_validator("start_time", mode="before")
    @classmethod
    def _default_start(cls, v):
        return v or DEFAULT_START_TIME

    @field_validator("end_time", mode="before")
    @classmethod
    def _default_end(cls, v):
        return v or DEFAULT_END_TIME

    @field_validator("time_zone", mode="before")
    @classmethod
    def _default_tz(cls, v):
        return v or DEFAULT_TIME_ZONE

    @field_validator("work_days", mode="before")
    @classmethod
    def _default_work_days(cls, v):
        return v if v is not None else WorkDays()

    @property
    def has_static(self) -> bool:
        return bool(self.start_time and self.end_time and self.time_zone)


class NodeSpec(_Model):
    node_pool_name: NodePoolName = Field(NodePoolName(""), alias="nodePoolName")
    cloud_provider: CloudProviderKind = Field(CloudProviderKind(""), alias="cloudProvider")
    off_time_count: int = Field(0, alias="offTimeCount")


class Config(_Model):
    schedule: WorkSchedule = Field(default_factory=WorkSchedule)
    node_specs: List[NodeSpec] = Field(default_factory=list, alias="nodeSpecs")

    @field_validator("schedule", mode="before")
    @classmethod
    def _default_schedule(cls, v):
        return v if v is not None else WorkSchedule()

    @field_validator("node_specs", mode="before")
    @classmethod
    def _none_to_list(cls, v):
        return v or []
