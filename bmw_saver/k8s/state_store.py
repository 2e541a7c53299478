# bmw_saver/k8s/state_store.py
from __future__ import annotations

import logging

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..model.state import GKE_COUNT_FIELD, SavedPoolState, decode_state, encode_state
from ..providers.base import NoSavedStateError
from ..types import Namespace, NodePoolName

log = logging.getLogger(__name__)

DEFAULT_PREFIX = "bmw-saver-nodepool-"
DATA_KEY = "config"


class SavedStateStore:
    """
    Состояние пулов до scale-down, по одному ConfigMap на пул.

    Запись только create: если ConfigMap уже есть, первое сохранённое
    состояние остаётся (повторный scale-down его не перетирает).
    """

    def __init__(self, core_api: client.CoreV1Api, namespace: Namespace, prefix: str = DEFAULT_PREFIX):
        self.core_api = core_api
        self.namespace = namespace
        self.prefix = prefix

    def name_for(self, pool: NodePoolName) -> str:
        return f"{self.prefix}{pool}"

    def save(self, pool: NodePoolName, state: SavedPoolState, count_field: str = GKE_COUNT_FIELD) -> bool:
        body = client.V1ConfigMap(
            metadata=client.V1ObjectMeta(name=self.name_for(pool), namespace=self.namespace),
            data={DATA_KEY: encode_state(state, count_field)},
        )
        try:
            self.core_api.create_namespaced_config_map(namespace=self.namespace, body=body)
        except ApiException as e:
            if e.status == 409:
                log.debug(f"Saved state for node pool {pool} already exists, keeping it")
                return False
            raise
        log.info(f"Saved state for node pool {pool}: {state}")
        return True

    def load(self, pool: NodePoolName) -> SavedPoolState:
        try:
            cm = self.core_api.read_namespaced_config_map(name=self.name_for(pool), namespace=self.namespace)
        except ApiException as e:
            if e.status == 404:
                raise NoSavedStateError(pool) from e
            raise
        raw = (cm.data or {}).get(DATA_KEY)
        if not raw:
            raise NoSavedStateError(pool)
        return decode_state(raw)
