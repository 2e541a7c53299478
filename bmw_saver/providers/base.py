# bmw_saver/providers/base.py
from __future__ import annotations

from abc import ABC, abstractmethod

from ..types import CloudProviderKind, NodePoolName


class NoSavedStateError(LookupError):
    """Для пула нет сохранённого состояния: восстанавливать нечего."""

    def __init__(self, pool: NodePoolName):
        super().__init__(f"no saved state found for node pool {pool}")
        self.pool = pool


class UnsupportedCloudProvider(ValueError):
    def __init__(self, kind: CloudProviderKind):
        super().__init__(f"unsupported cloud provider: {kind}")
        self.kind = kind


class NodePoolNotFound(LookupError):
    pass


class CloudProvider(ABC):
    """
    Масштабирование одного вида пулов (GKE node pool / EKS node group).

    scale_down сохраняет текущее состояние и уменьшает пул до desired_count,
    restore возвращает сохранённое. Обе операции идемпотентны.
    """

    kind: CloudProviderKind

    @abstractmethod
    def scale_down(self, pool: NodePoolName, desired_count: int) -> None:
        ...

    @abstractmethod
    def restore(self, pool: NodePoolName) -> None:
        ...
