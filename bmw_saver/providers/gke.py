# bmw_saver/providers/gke.py
from __future__ import annotations

import logging
from typing import Optional

from google.api_core import exceptions as google_exceptions
from google.cloud import container_v1
from kubernetes import client

from ..k8s.drain import drain_cordoned, list_pool_nodes
from ..k8s.state_store import SavedStateStore
from ..model.state import GKE_COUNT_FIELD, AutoscalingState, SavedPoolState
from ..types import CloudProviderKind, Namespace, NodePoolName
from .base import CloudProvider, NodePoolNotFound
from .identity import GKEIdentity, current_namespace, gke_identity_from_metadata

log = logging.getLogger(__name__)

GKE_NODEPOOL_LABEL = "cloud.google.com/gke-nodepool"
BUSY_REASON = "CLUSTER_ALREADY_HAS_OPERATION"


def is_cluster_busy(err: google_exceptions.GoogleAPICallError) -> bool:
    """
    Кластер уже выполняет операцию: повторим на следующем тике.

    Смотрим только на структурированные поля ошибки (reason и details),
    текст сообщения не учитываем.
    """
    if not isinstance(err, (google_exceptions.BadRequest, google_exceptions.FailedPrecondition)):
        return False
    if getattr(err, "reason", None) == BUSY_REASON:
        return True
    for d in getattr(err, "details", None) or []:
        if isinstance(d, dict):
            reason = d.get("reason")
        else:
            reason = getattr(d, "reason", None)
        if reason == BUSY_REASON or (isinstance(d, str) and d == BUSY_REASON):
            return True
    return False


def _autoscaling_state(pool: container_v1.NodePool) -> AutoscalingState:
    a = pool.autoscaling
    if not a:
        return AutoscalingState(enabled=False)
    return AutoscalingState(
        enabled=bool(a.enabled),
        min_size=int(a.min_node_count),
        max_size=int(a.max_node_count),
    )


class GKEProvider(CloudProvider):
    """
    GKE node pool через ClusterManagerClient.

    Размер пула для сохранения и проверок берём из initial_node_count,
    фактическое число нод считаем по лейблу cloud.google.com/gke-nodepool.
    """

    kind = CloudProviderKind("gke")

    def __init__(
        self,
        core_api: client.CoreV1Api,
        identity: GKEIdentity,
        namespace: Namespace,
        cluster_manager: Optional[container_v1.ClusterManagerClient] = None,
    ):
        self.core_api = core_api
        self.identity = identity
        self.store = SavedStateStore(core_api, namespace)
        self.cluster_manager = cluster_manager or container_v1.ClusterManagerClient()
        log.info(
            f"GKE provider initialized: project={identity.project_id} "
            f"location={identity.location} cluster={identity.cluster}"
        )

    @classmethod
    def from_environment(cls, core_api: client.CoreV1Api) -> "GKEProvider":
        return cls(core_api, gke_identity_from_metadata(), current_namespace())

    def _find_pool(self, pool: NodePoolName) -> Optional[container_v1.NodePool]:
        resp = self.cluster_manager.list_node_pools(parent=self.identity.cluster_path)
        for np in resp.node_pools:
            log.debug(f"Node pool {np.name}: initial_node_count={np.initial_node_count}")
            if np.name == pool:
                return np
        return None

    def _set_size(self, pool: NodePoolName, count: int) -> None:
        req = container_v1.SetNodePoolSizeRequest(
            name=self.identity.node_pool_path(pool),
            node_count=count,
        )
        self.cluster_manager.set_node_pool_size(request=req)

    def _set_autoscaling(self, pool: NodePoolName, state: AutoscalingState) -> None:
        if state.enabled:
            autoscaling = container_v1.NodePoolAutoscaling(
                enabled=True,
                min_node_count=state.min_size or 0,
                max_node_count=state.max_size or 0,
            )
        else:
            autoscaling = container_v1.NodePoolAutoscaling(enabled=False)
        req = container_v1.SetNodePoolAutoscalingRequest(
            name=self.identity.node_pool_path(pool),
            autoscaling=autoscaling,
        )
        self.cluster_manager.set_node_pool_autoscaling(request=req)

    def scale_down(self, pool: NodePoolName, desired_count: int) -> None:
        np = self._find_pool(pool)
        if np is None:
            log.warning(f"Node pool {pool} not found, skipping scale down")
            return

        nodes = list_pool_nodes(self.core_api, GKE_NODEPOOL_LABEL, pool)
        if len(nodes) == desired_count:
            log.debug(f"Node pool {pool} already at desired size {desired_count}")
            return

        drain_cordoned(self.core_api, nodes)

        autoscaling = _autoscaling_state(np)
        self.store.save(
            pool,
            SavedPoolState(desired_count=int(np.initial_node_count), autoscaling=autoscaling),
            GKE_COUNT_FIELD,
        )

        try:
            if autoscaling.enabled:
                log.info(f"Disabling autoscaling before scaling node pool {pool}")
                self._set_autoscaling(pool, AutoscalingState(enabled=False))
            self._set_size(pool, desired_count)
        except google_exceptions.GoogleAPICallError as e:
            if is_cluster_busy(e):
                log.info(f"Cluster is busy, will retry in next reconciliation: node_pool={pool}")
                return
            raise
        log.info(f"Scaled node pool {pool} down to {desired_count}")

    def restore(self, pool: NodePoolName) -> None:
        saved = self.store.load(pool)

        np = self._find_pool(pool)
        if np is None:
            raise NodePoolNotFound(f"node pool {pool} not found")

        live = _autoscaling_state(np)
        autoscaling_match = live.enabled == saved.autoscaling_enabled
        count_match = saved.autoscaling_enabled or int(np.initial_node_count) == saved.desired_count
        if autoscaling_match and count_match:
            log.debug(
                f"Node pool {pool} already at desired state: node_count={saved.desired_count} "
                f"autoscaling_enabled={saved.autoscaling_enabled}"
            )
            return

        try:
            if saved.autoscaling_enabled:
                if not autoscaling_match:
                    self._set_autoscaling(pool, saved.autoscaling)
                    log.info(f"Restored autoscaling settings for node pool {pool}")
            else:
                self._set_size(pool, saved.desired_count)
                log.info(f"Restored node count for node pool {pool}: count={saved.desired_count}")
        except google_exceptions.GoogleAPICallError as e:
            if is_cluster_busy(e):
                log.info(f"Cluster is busy, will retry in next reconciliation: node_pool={pool}")
                return
            raise
