# bmw_saver/model/state.py
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

# Поле с размером пула: GKE пишет nodeCount, EKS - desiredSize
GKE_COUNT_FIELD = "nodeCount"
EKS_COUNT_FIELD = "desiredSize"


@dataclass(frozen=True)
class AutoscalingState:
    enabled: bool
    min_size: Optional[int] = None
    max_size: Optional[int] = None


@dataclass(frozen=True)
class SavedPoolState:
    """
    Состояние пула до scale-down.

    Пишется перед каждым уменьшением, читается при restore.
    """
    desired_count: int
    autoscaling: Optional[AutoscalingState] = None

    @property
    def autoscaling_enabled(self) -> bool:
        return self.autoscaling is not None and self.autoscaling.enabled


def state_to_dict(state: SavedPoolState, count_field: str = GKE_COUNT_FIELD) -> Dict[str, Any]:
    data: Dict[str, Any] = {count_field: int(state.desired_count)}
    if state.autoscaling is not None:
        autoscaling: Dict[str, Any] = {"enabled": bool(state.autoscaling.enabled)}
        if state.autoscaling.min_size is not None:
            autoscaling["minSize"] = int(state.autoscaling.min_size)
        if state.autoscaling.max_size is not None:
            autoscaling["maxSize"] = int(state.autoscaling.max_size)
        data["autoscaling"] = autoscaling
    return data


def state_from_dict(data: Dict[str, Any]) -> SavedPoolState:
    # Понимаем оба варианта имени поля и старые minNodeCount/maxNodeCount
    count = data.get(GKE_COUNT_FIELD, data.get(EKS_COUNT_FIELD, 0))
    raw = data.get("autoscaling")
    autoscaling = None
    if raw:
        min_size = raw.get("minSize", raw.get("minNodeCount"))
        max_size = raw.get("maxSize", raw.get("maxNodeCount"))
        autoscaling = AutoscalingState(
            enabled=bool(raw.get("enabled", False)),
            min_size=int(min_size) if min_size is not None else None,
            max_size=int(max_size) if max_size is not None else None,
        )
    return SavedPoolState(desired_count=int(count or 0), autoscaling=autoscaling)


def encode_state(state: SavedPoolState, count_field: str = GKE_COUNT_FIELD) -> str:
    return json.dumps(state_to_dict(state, count_field), sort_keys=True)


def decode_state(text: str) -> SavedPoolState:
    data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"saved state must be a JSON object, got {type(data).__name__}")
    return state_from_dict(data)
