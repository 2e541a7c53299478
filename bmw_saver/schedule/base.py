# bmw_saver/schedule/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime


class WorkTimeProvider(ABC):
    """Источник решения "сейчас рабочее время или нет"."""

    @abstractmethod
    def is_work_time(self, now: datetime) -> bool:
        ...

    def close(self) -> None:
        """Останавливает фоновые задачи провайдера, если они есть."""
