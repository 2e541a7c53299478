# bmw_saver/config/loader.py
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import ValidationError

from ..model.config import Config
from .errors import ConfigError

log = logging.getLogger(__name__)


def read_config_from_bytes(data: bytes | str) -> Config:
    """Парсит YAML и валидирует результат. Любая проблема -> ConfigError."""
    try:
        raw = yaml.safe_load(data) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"failed to parse config: {e}") from e
    if not isinstance(raw, dict):
        raise ConfigError("failed to parse config: top level must be a mapping")
    return config_from_dict(raw)


def config_from_dict(raw: Dict[str, Any]) -> Config:
    try:
        cfg = Config.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"invalid config: {e}") from e
    validate_config(cfg)
    return cfg


def read_config(path: str | Path) -> Config:
    path = Path(path)
    if not path.is_absolute():
        path = path.resolve()
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ConfigError(f"failed to read config file: {e}") from e
    return read_config_from_bytes(data)


def validate_config(cfg: Config) -> None:
    schedule = cfg.schedule
    if not (schedule.has_static or schedule.google_calendar is not None):
        raise ConfigError("no valid schedule configuration provided")

    gcal = schedule.google_calendar
    if gcal is not None:
        if not gcal.calendar_id:
            raise ConfigError("calendar ID is required for google calendar schedule")
        if not gcal.credentials_path:
            raise ConfigError("credentials file is required for google calendar schedule")
        if not os.path.isabs(gcal.credentials_path):
            raise ConfigError(f"credentials path must be absolute: {gcal.credentials_path}")

    ics = schedule.ics_calendar
    if ics is not None and not ics.url:
        raise ConfigError("url is required for ics calendar schedule")

    seen = set()
    for i, spec in enumerate(cfg.node_specs):
        if not spec.node_pool_name:
            raise ConfigError(f"node pool name is required for spec {i}")
        if not spec.cloud_provider:
            raise ConfigError(f"cloud provider is required for spec {i}")
        if spec.off_time_count < 0:
            raise ConfigError(f"invalid off-time node count for spec {i}")
        if spec.node_pool_name in seen:
            raise ConfigError(f"duplicate node pool name {spec.node_pool_name!r} in spec {i}")
        seen.add(spec.node_pool_name)
