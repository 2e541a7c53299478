# bmw_saver/providers/azure.py
from __future__ import annotations

import logging

from kubernetes import client

from ..types import CloudProviderKind, NodePoolName
from .base import CloudProvider

log = logging.getLogger(__name__)


class AzureProvider(CloudProvider):
    """Заглушка: AKS пока не масштабируем, только пишем в debug."""

    kind = CloudProviderKind("azure")

    @classmethod
    def from_environment(cls, core_api: client.CoreV1Api) -> "AzureProvider":
        return cls()

    def scale_down(self, pool: NodePoolName, desired_count: int) -> None:
        log.debug(f"Azure scaling is not implemented: node_pool={pool} count={desired_count}")

    def restore(self, pool: NodePoolName) -> None:
        log.debug(f"Azure restore is not implemented: node_pool={pool}")
