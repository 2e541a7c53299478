# bmw_saver/api/schema.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: str = "ok"


class ManagedPoolModel(BaseModel):
    node_pool_name: str
    cloud_provider: str
    off_time_count: int
    managed: bool


class PoolOutcomeModel(BaseModel):
    action: str
    ok: bool
    message: str = ""


class ReconcileResultModel(BaseModel):
    """Итог последнего тика контроллера."""
    started_at: datetime
    is_work_time: Optional[bool] = None
    error: Optional[str] = None
    pools: Dict[str, PoolOutcomeModel] = {}


class StatusResponse(BaseModel):
    pools: List[ManagedPoolModel]
    last_result: Optional[ReconcileResultModel] = None
