# bmw_saver/k8s/drain.py
from __future__ import annotations

import logging
from typing import Iterable, List

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..types import NodeName

log = logging.getLogger(__name__)

DEFAULT_SKIP_NAMESPACES = ("kube-system",)


def is_cordoned(node: client.V1Node) -> bool:
    return bool(node.spec is not None and node.spec.unschedulable)


def list_pool_nodes(core_api: client.CoreV1Api, label: str, pool: str) -> List[client.V1Node]:
    return list(core_api.list_node(label_selector=f"{label}={pool}").items)


def drain_node(
    core_api: client.CoreV1Api,
    node_name: NodeName,
    skip_namespaces: Iterable[str] = DEFAULT_SKIP_NAMESPACES,
) -> int:
    """
    Удаляет все поды с ноды, кроме системных неймспейсов.

    Ноду не кордонит: вызывается только для уже cordoned нод.
    Ошибка удаления одного пода не останавливает остальные.
    Возвращает число удалённых подов.
    """
    skip = set(skip_namespaces)
    pods = core_api.list_pod_for_all_namespaces(field_selector=f"spec.nodeName={node_name}")

    deleted = 0
    for pod in pods.items:
        ns = pod.metadata.namespace
        name = pod.metadata.name
        if ns in skip:
            continue
        try:
            core_api.delete_namespaced_pod(name=name, namespace=ns)
            deleted += 1
        except ApiException as e:
            log.error(f"Failed to delete pod {ns}/{name} on node {node_name}: {e.status} {e.reason}")
    log.info(f"Drained node {node_name}: deleted_pods={deleted}")
    return deleted


def drain_cordoned(core_api: client.CoreV1Api, nodes: Iterable[client.V1Node]) -> None:
    for node in nodes:
        if is_cordoned(node):
            drain_node(core_api, NodeName(node.metadata.name))
