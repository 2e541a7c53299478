# bmw_saver/schedule/composite.py
from __future__ import annotations

from datetime import datetime
from typing import List

from .base import WorkTimeProvider


class CompositeProvider(WorkTimeProvider):
    """
    AND по всем источникам: рабочее время только если все согласны.

    Первый False прерывает проверку, исключения пробрасываются как есть.
    Пустой список -> всегда рабочее время.
    """

    def __init__(self, *providers: WorkTimeProvider):
        self.providers: List[WorkTimeProvider] = list(providers)

    def is_work_time(self, now: datetime) -> bool:
        for p in self.providers:
            if not p.is_work_time(now):
                return False
        return True

    def close(self) -> None:
        for p in self.providers:
            p.close()

    def __repr__(self) -> str:
        inner = ", ".join(repr(p) for p in self.providers)
        return f"CompositeProvider([{inner}])"
