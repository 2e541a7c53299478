# bmw_saver/types.py
from __future__ import annotations

from typing import NewType


# Имена объектов в кластере / облаке
NodePoolName = NewType("NodePoolName", str)
NodeName = NewType("NodeName", str)
Namespace = NewType("Namespace", str)
Region = NewType("Region", str)

# "gke" | "aws" | "azure"
CloudProviderKind = NewType("CloudProviderKind", str)

# Ключ дневного кеша календаря: YYYY-MM-DD
DayKey = NewType("DayKey", str)
