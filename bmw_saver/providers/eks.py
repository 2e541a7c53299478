# bmw_saver/providers/eks.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import ClientError, WaiterError
from kubernetes import client

from ..k8s.drain import drain_cordoned, list_pool_nodes
from ..k8s.state_store import SavedStateStore
from ..model.state import EKS_COUNT_FIELD, AutoscalingState, SavedPoolState
from ..types import CloudProviderKind, Namespace, NodePoolName, Region
from ..utils.rwlock import RWLock
from .base import CloudProvider, NodePoolNotFound
from .identity import current_namespace, eks_cluster_name

log = logging.getLogger(__name__)

EKS_NODEGROUP_LABEL = "eks.amazonaws.com/nodegroup"
REGION_LABEL = "topology.kubernetes.io/region"

# nodegroup_active: 30s * 20 = 10 минут
WAITER_CONFIG = {"Delay": 30, "MaxAttempts": 20}


def _error_code(err: ClientError) -> str:
    return err.response.get("Error", {}).get("Code", "")


def _scaling_state(nodegroup: Dict[str, Any]) -> SavedPoolState:
    sc = nodegroup.get("scalingConfig") or {}
    min_size = sc.get("minSize")
    max_size = sc.get("maxSize")
    # EKS не различает "выключенный" autoscaling: считаем его включённым при min != max
    autoscaling = AutoscalingState(
        enabled=min_size is not None and max_size is not None and min_size != max_size,
        min_size=min_size,
        max_size=max_size,
    )
    return SavedPoolState(desired_count=int(sc.get("desiredSize") or 0), autoscaling=autoscaling)


class EKSProvider(CloudProvider):
    """
    EKS managed node group через boto3.

    Регион группы берём из лейбла topology.kubernetes.io/region первой ноды
    и запоминаем, чтобы группу, уже уменьшенную до нуля, можно было найти
    при restore. Клиенты EKS создаются лениво, по одному на регион.
    """

    kind = CloudProviderKind("aws")

    def __init__(
        self,
        core_api: client.CoreV1Api,
        cluster_name: str,
        namespace: Namespace,
        default_region: Optional[str] = None,
        session: Optional[boto3.session.Session] = None,
    ):
        self.core_api = core_api
        self.cluster_name = cluster_name
        self.store = SavedStateStore(core_api, namespace)
        self.session = session or boto3.session.Session()
        self.default_region = default_region or self.session.region_name
        self._clients: Dict[Region, Any] = {}
        self._clients_lock = RWLock()
        self._group_regions: Dict[NodePoolName, Region] = {}
        log.info(f"EKS provider initialized: cluster={cluster_name} default_region={self.default_region}")

    @classmethod
    def from_environment(cls, core_api: client.CoreV1Api) -> "EKSProvider":
        return cls(core_api, eks_cluster_name(), current_namespace())

    # --- клиенты и регионы ---

    def client_for(self, region: Region):
        with self._clients_lock.read():
            eks = self._clients.get(region)
        if eks is not None:
            return eks
        with self._clients_lock.write():
            # мог создать другой поток, пока ждали write
            eks = self._clients.get(region)
            if eks is None:
                eks = self.session.client("eks", region_name=region)
                self._clients[region] = eks
                log.debug(f"Created EKS client for region {region}")
            return eks

    def _region_for(self, group: NodePoolName, nodes) -> Region:
        for node in nodes[:1]:
            region = (node.metadata.labels or {}).get(REGION_LABEL)
            if region:
                self._group_regions[group] = Region(region)
                return Region(region)
        if group in self._group_regions:
            return self._group_regions[group]
        if self.default_region:
            return Region(self.default_region)
        raise NodePoolNotFound(f"cannot determine region for node group {group}")

    def _describe(self, eks, group: NodePoolName) -> Optional[Dict[str, Any]]:
        try:
            resp = eks.describe_nodegroup(clusterName=self.cluster_name, nodegroupName=group)
        except ClientError as e:
            if _error_code(e) == "ResourceNotFoundException":
                return None
            raise
        ng = resp["nodegroup"]
        log.info(f"Current node group status: node_group={group} status={ng.get('status')} health={ng.get('health')}")
        return ng

    def _wait_active(self, eks, group: NodePoolName) -> None:
        waiter = eks.get_waiter("nodegroup_active")
        try:
            waiter.wait(clusterName=self.cluster_name, nodegroupName=group, WaiterConfig=WAITER_CONFIG)
        except WaiterError as e:
            raise RuntimeError(f"failed waiting for node group {group} to be active: {e}") from e

    def _update_scaling(self, eks, group: NodePoolName, min_size: int, max_size: int, desired: int) -> bool:
        try:
            eks.update_nodegroup_config(
                clusterName=self.cluster_name,
                nodegroupName=group,
                scalingConfig={"minSize": min_size, "maxSize": max_size, "desiredSize": desired},
            )
        except ClientError as e:
            if _error_code(e) == "ResourceInUseException":
                log.info(f"Cluster is busy, will retry in next reconciliation: node_group={group}")
                return False
            raise
        return True

    # --- операции ---

    def scale_down(self, pool: NodePoolName, desired_count: int) -> None:
        nodes = list_pool_nodes(self.core_api, EKS_NODEGROUP_LABEL, pool)
        try:
            region = self._region_for(pool, nodes)
        except NodePoolNotFound as e:
            log.warning(f"Cannot determine region of node group {pool}, skipping scale down: {e}")
            return
        eks = self.client_for(region)

        ng = self._describe(eks, pool)
        if ng is None:
            log.warning(f"Node group {pool} not found, skipping scale down")
            return

        if len(nodes) == desired_count:
            log.debug(f"Node group {pool} already at desired size {desired_count}")
            return

        drain_cordoned(self.core_api, nodes)
        self.store.save(pool, _scaling_state(ng), EKS_COUNT_FIELD)

        self._wait_active(eks, pool)
        # min <= desired <= max, поэтому autoscaling выключаем и размер задаём одним запросом
        if self._update_scaling(eks, pool, desired_count, max(desired_count, 1), desired_count):
            log.info(f"Scaled node group {pool} down to {desired_count}")

    def restore(self, pool: NodePoolName) -> None:
        saved = self.store.load(pool)

        nodes = list_pool_nodes(self.core_api, EKS_NODEGROUP_LABEL, pool)
        eks = self.client_for(self._region_for(pool, nodes))

        ng = self._describe(eks, pool)
        if ng is None:
            raise NodePoolNotFound(f"node group {pool} not found")

        sa = saved.autoscaling or AutoscalingState(enabled=False)
        min_size = sa.min_size if sa.min_size is not None else saved.desired_count
        max_size = sa.max_size if sa.max_size is not None else max(saved.desired_count, 1)

        live = _scaling_state(ng)
        # после scale_down до 0 группа выглядит как min=0,max=1, т.е. "autoscaling",
        # поэтому сравниваем сами границы, а не только флаг
        bounds_match = (live.autoscaling.min_size, live.autoscaling.max_size) == (min_size, max_size)
        count_match = saved.autoscaling_enabled or live.desired_count == saved.desired_count
        if bounds_match and count_match:
            log.debug(f"Node group {pool} already at desired state: desired_size={saved.desired_count}")
            return

        self._wait_active(eks, pool)
        if self._update_scaling(eks, pool, min_size, max_size, saved.desired_count):
            log.info(f"Restored node group {pool}: min={min_size} max={max_size} desired={saved.desired_count}")
