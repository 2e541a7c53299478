# bmw_saver/controller/scaling.py
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from kubernetes import client

from ..model.config import Config, WorkSchedule
from ..providers.base import CloudProvider, NoSavedStateError
from ..providers.factory import new_cloud_provider
from ..schedule.base import WorkTimeProvider
from ..schedule.factory import build_scheduler
from ..types import CloudProviderKind, NodePoolName
from ..utils.rwlock import RWLock

log = logging.getLogger(__name__)

ProviderFactory = Callable[[CloudProviderKind, client.CoreV1Api], CloudProvider]
SchedulerFactory = Callable[[WorkSchedule, bool], Optional[WorkTimeProvider]]

ACTION_RESTORE = "restore"
ACTION_SCALE_DOWN = "scale_down"
ACTION_SKIPPED = "skipped"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PoolOutcome:
    action: str
    ok: bool
    message: str = ""


@dataclass
class ReconcileResult:
    started_at: datetime
    is_work_time: Optional[bool] = None
    error: Optional[str] = None
    pools: Dict[NodePoolName, PoolOutcome] = field(default_factory=dict)


@dataclass(frozen=True)
class _ControllerState:
    config: Config
    scheduler: WorkTimeProvider
    providers: Dict[NodePoolName, CloudProvider]


class ScalingController:
    """
    Контроллер: раз в тик решает "рабочее время или нет" и для каждого
    пула вызывает restore или scale_down.

    Конфигурация, планировщик и провайдеры живут в одном неизменяемом
    снимке. apply_configuration собирает новый снимок без блокировки
    и подменяет его под write-lock; тик читает снимок под read-lock,
    сетевые вызовы идут уже без блокировки.
    """

    def __init__(
        self,
        core_api: client.CoreV1Api,
        cfg: Config,
        provider_factory: ProviderFactory = new_cloud_provider,
        scheduler_factory: SchedulerFactory = build_scheduler,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.core_api = core_api
        self.provider_factory = provider_factory
        self.scheduler_factory = scheduler_factory
        self.clock = clock

        self._lock = RWLock()
        self._update_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self.last_result: Optional[ReconcileResult] = None

        self._state = self._build_state(cfg, strict=True)

    # --- сборка снимка ---

    def _build_providers(self, cfg: Config, strict: bool) -> Dict[NodePoolName, CloudProvider]:
        providers: Dict[NodePoolName, CloudProvider] = {}
        # один экземпляр на вид облака в рамках одной сборки
        by_kind: Dict[CloudProviderKind, CloudProvider] = {}
        for spec in cfg.node_specs:
            provider = by_kind.get(spec.cloud_provider)
            if provider is None:
                try:
                    provider = self.provider_factory(spec.cloud_provider, self.core_api)
                except Exception as e:
                    if strict:
                        raise
                    log.error(f"Failed to create provider for node pool {spec.node_pool_name}: {e}")
                    continue
                by_kind[spec.cloud_provider] = provider
            providers[spec.node_pool_name] = provider
        return providers

    def _build_state(self, cfg: Config, strict: bool) -> Optional[_ControllerState]:
        scheduler = self.scheduler_factory(cfg.schedule, strict)
        if scheduler is None:
            return None
        try:
            providers = self._build_providers(cfg, strict)
        except Exception:
            scheduler.close()
            raise
        return _ControllerState(config=cfg, scheduler=scheduler, providers=providers)

    def apply_configuration(self, cfg: Config) -> bool:
        """
        Применяет новую конфигурацию в tolerant-режиме.

        Если не удалось собрать ни одного источника расписания, обновление
        отклоняется и остаётся предыдущий снимок.
        """
        with self._update_lock:
            new_state = self._build_state(cfg, strict=False)
            if new_state is None:
                log.error("Configuration update rejected: no schedule providers could be created")
                return False
            with self._lock.write():
                old_state = self._state
                self._state = new_state
            if old_state is not None and old_state.scheduler is not new_state.scheduler:
                old_state.scheduler.close()
        log.info(f"Controller configuration updated: node_pools={list(new_state.providers)}")
        return True

    # --- тик ---

    def reconcile(self) -> Optional[ReconcileResult]:
        if not self._tick_lock.acquire(blocking=False):
            log.warning("Previous reconciliation is still running, skipping this tick")
            return None
        try:
            return self._reconcile()
        finally:
            self._tick_lock.release()

    def _reconcile(self) -> ReconcileResult:
        with self._lock.read():
            state = self._state

        now = self.clock()
        result = ReconcileResult(started_at=now)
        log.debug(f"Starting reconciliation loop: time={now.isoformat()}")

        try:
            work_time = state.scheduler.is_work_time(now)
        except Exception as e:
            log.error(f"Error checking work time: {e}")
            result.error = str(e)
            self.last_result = result
            return result

        result.is_work_time = work_time
        log.debug(f"Work time check: is_work_time={work_time}")

        for spec in state.config.node_specs:
            pool = spec.node_pool_name
            provider = state.providers.get(pool)
            if provider is None:
                log.warning(f"No provider found for node pool {pool}")
                result.pools[pool] = PoolOutcome(ACTION_SKIPPED, ok=False, message="no provider")
                continue

            if work_time:
                result.pools[pool] = self._restore(provider, pool)
            else:
                result.pools[pool] = self._scale_down(provider, pool, spec.off_time_count)

        self.last_result = result
        return result

    def _restore(self, provider: CloudProvider, pool: NodePoolName) -> PoolOutcome:
        try:
            provider.restore(pool)
        except NoSavedStateError:
            log.warning(f"No saved state found for node pool {pool}")
            return PoolOutcome(ACTION_RESTORE, ok=True, message="no saved state")
        except Exception as e:
            log.error(f"Error restoring node pool {pool}: {e}")
            return PoolOutcome(ACTION_RESTORE, ok=False, message=str(e))
        return PoolOutcome(ACTION_RESTORE, ok=True)

    def _scale_down(self, provider: CloudProvider, pool: NodePoolName, count: int) -> PoolOutcome:
        try:
            provider.scale_down(pool, count)
        except Exception as e:
            log.error(f"Error scaling node pool {pool} to {count}: {e}")
            return PoolOutcome(ACTION_SCALE_DOWN, ok=False, message=str(e))
        return PoolOutcome(ACTION_SCALE_DOWN, ok=True)

    # --- цикл и статус ---

    def run(self, interval: float = 60, stop_event: Optional[threading.Event] = None) -> None:
        stop_event = stop_event or threading.Event()
        log.info(f"Starting scaling controller: interval={interval}s")
        while True:
            self.reconcile()
            if stop_event.wait(interval):
                break
        log.info("Scaling controller stopped")

    def stop(self) -> None:
        with self._lock.read():
            state = self._state
        state.scheduler.close()

    def status(self) -> dict:
        with self._lock.read():
            state = self._state
        pools = [
            {
                "node_pool_name": spec.node_pool_name,
                "cloud_provider": spec.cloud_provider,
                "off_time_count": spec.off_time_count,
                "managed": spec.node_pool_name in state.providers,
            }
            for spec in state.config.node_specs
        ]
        return {"pools": pools, "last_result": self.last_result}
