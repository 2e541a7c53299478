# bmw_saver/schedule/factory.py
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from ..config.errors import ConfigError
from ..model.config import WorkSchedule
from .base import WorkTimeProvider
from .composite import CompositeProvider
from .google_calendar import GoogleCalendarProvider
from .ics_calendar import ICSCalendarProvider
from .static import StaticProvider
from .timeutil import resolve_zone

log = logging.getLogger(__name__)


def _static(schedule: WorkSchedule) -> WorkTimeProvider:
    # зону проверяем сразу, чтобы ошибка всплыла при сборке, а не на первом тике
    resolve_zone(schedule.time_zone)
    return StaticProvider(
        start_time=schedule.start_time,
        end_time=schedule.end_time,
        time_zone=schedule.time_zone,
        work_days=schedule.work_days.as_weekdays(),
    )


def _google(schedule: WorkSchedule) -> WorkTimeProvider:
    gcal = schedule.google_calendar
    return GoogleCalendarProvider(
        calendar_id=gcal.calendar_id,
        off_time_events=gcal.off_time_events,
        zone=resolve_zone(schedule.time_zone),
        sync_interval=gcal.sync_interval_seconds,
        cache_days=gcal.cache_days,
        credentials_path=gcal.credentials_path,
    )


def _ics(schedule: WorkSchedule) -> WorkTimeProvider:
    ics = schedule.ics_calendar
    return ICSCalendarProvider(
        url=ics.url,
        zone=resolve_zone(ics.time_zone or schedule.time_zone),
        sync_interval=ics.sync_interval_seconds,
        work_day_patterns=ics.work_day_patterns,
        holiday_patterns=ics.holiday_patterns,
    )


def build_scheduler(schedule: WorkSchedule, strict: bool = True) -> Optional[WorkTimeProvider]:
    """
    Собирает CompositeProvider из всех настроенных источников.

    strict=True: любая ошибка сборки пробрасывается (старт процесса).
    strict=False: источник с ошибкой логируется и пропускается (live-обновление);
    если не собралось ничего - возвращаем None.
    """
    builders: List[tuple[str, Callable[[WorkSchedule], WorkTimeProvider]]] = []
    if schedule.has_static:
        builders.append(("static", _static))
    if schedule.google_calendar is not None:
        builders.append(("google-calendar", _google))
    if schedule.ics_calendar is not None:
        builders.append(("ics-calendar", _ics))

    providers: List[WorkTimeProvider] = []
    for name, build in builders:
        try:
            providers.append(build(schedule))
        except Exception as e:
            # strict: старт процесса, ошибка фатальна; tolerant: источник пропускаем
            if strict:
                for p in providers:
                    p.close()
                raise
            log.error(f"Failed to create {name} schedule provider, skipping it: {e}")

    if not providers:
        if strict:
            raise ConfigError("no schedule providers configured")
        return None

    scheduler = CompositeProvider(*providers)
    log.info(f"Schedule configured: {scheduler!r}")
    return scheduler
