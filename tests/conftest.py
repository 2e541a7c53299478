# tests/conftest.py
from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from kubernetes import client
from kubernetes.client.rest import ApiException


def make_node(name, labels=None, cordoned=False):
    return client.V1Node(
        metadata=client.V1ObjectMeta(name=name, labels=labels or {}),
        spec=client.V1NodeSpec(unschedulable=cordoned),
    )


def make_pod(name, namespace, node):
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace),
        spec=client.V1PodSpec(node_name=node, containers=[]),
    )


@pytest.fixture
def node_factory():
    return make_node


@pytest.fixture
def pod_factory():
    return make_pod


@pytest.fixture
def core_api():
    """CoreV1Api без кластера: ConfigMap-ы хранятся в словаре."""
    api = MagicMock(spec=client.CoreV1Api)
    api.config_maps = {}

    def create(namespace, body):
        key = (namespace, body.metadata.name)
        if key in api.config_maps:
            raise ApiException(status=409, reason="AlreadyExists")
        api.config_maps[key] = body
        return body

    def read(name, namespace):
        key = (namespace, name)
        if key not in api.config_maps:
            raise ApiException(status=404, reason="NotFound")
        return api.config_maps[key]

    api.create_namespaced_config_map.side_effect = create
    api.read_namespaced_config_map.side_effect = read
    api.list_node.return_value = SimpleNamespace(items=[])
    api.list_pod_for_all_namespaces.return_value = SimpleNamespace(items=[])
    return api


@pytest.fixture
def saved_state(core_api):
    """Положить сохранённое состояние пула в фейковый CoreV1Api."""

    def put(pool, payload, namespace="bmw-saver"):
        body = client.V1ConfigMap(
            metadata=client.V1ObjectMeta(name=f"bmw-saver-nodepool-{pool}", namespace=namespace),
            data={"config": json.dumps(payload)},
        )
        core_api.config_maps[(namespace, body.metadata.name)] = body

    return put


def saved_payload(core_api, pool, namespace="bmw-saver"):
    cm = core_api.config_maps[(namespace, f"bmw-saver-nodepool-{pool}")]
    return json.loads(cm.data["config"])


@pytest.fixture
def read_saved(core_api):
    return lambda pool, namespace="bmw-saver": saved_payload(core_api, pool, namespace)
