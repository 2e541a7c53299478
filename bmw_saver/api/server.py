# bmw_saver/api/server.py
from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Optional

from fastapi import FastAPI, HTTPException

from ..controller.scaling import ScalingController
from .schema import (
    HealthResponse, ManagedPoolModel, PoolOutcomeModel, ReconcileResultModel, StatusResponse
)

app = FastAPI(title="bmw-saver")

log = logging.getLogger("uvicorn")

# --- STATE ---
CONTROLLER: ScalingController | None = None


def attach_controller(controller: Optional[ScalingController]) -> None:
    global CONTROLLER
    CONTROLLER = controller


def to_status_response(status: dict) -> StatusResponse:
    last = status.get("last_result")
    last_model = None
    if last is not None:
        last_model = ReconcileResultModel(
            started_at=last.started_at,
            is_work_time=last.is_work_time,
            error=last.error,
            pools={pool: PoolOutcomeModel(**asdict(outcome)) for pool, outcome in last.pools.items()},
        )
    return StatusResponse(
        pools=[ManagedPoolModel(**p) for p in status.get("pools", [])],
        last_result=last_model,
    )


@app.get("/healthz", response_model=HealthResponse)
def healthz() -> HealthResponse:
    return HealthResponse()


@app.get("/status", response_model=StatusResponse)
def status() -> StatusResponse:
    if CONTROLLER is None:
        raise HTTPException(status_code=503, detail="Controller is not initialized")
    return to_status_response(CONTROLLER.status())
