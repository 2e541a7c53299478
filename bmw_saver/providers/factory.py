# bmw_saver/providers/factory.py
from __future__ import annotations

from kubernetes import client

from ..types import CloudProviderKind
from .azure import AzureProvider
from .base import CloudProvider, UnsupportedCloudProvider
from .eks import EKSProvider
from .gke import GKEProvider

PROVIDERS = {
    "gke": GKEProvider,
    "aws": EKSProvider,
    "azure": AzureProvider,
}


def new_cloud_provider(kind: CloudProviderKind, core_api: client.CoreV1Api) -> CloudProvider:
    cls = PROVIDERS.get(kind)
    if cls is None:
        raise UnsupportedCloudProvider(kind)
    return cls.from_environment(core_api)
