# bmw_saver/k8s/client.py
from __future__ import annotations

import logging

from kubernetes import client, config

log = logging.getLogger(__name__)


def load_kube_config() -> None:
    """Сначала in-cluster, если не вышло - локальный kubeconfig."""
    try:
        config.load_incluster_config()
        log.info("Loaded in-cluster kubernetes config")
    except config.ConfigException:
        config.load_kube_config()
        log.info("Loaded kubeconfig from local environment")


def core_v1_api() -> client.CoreV1Api:
    load_kube_config()
    return client.CoreV1Api()
