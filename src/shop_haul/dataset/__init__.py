"""Dataset listing: shop records, upstream sources and the process-wide snapshot cache."""

from __future__ import annotations

from typing import TYPE_CHECKING

from shop_haul.dataset.cache import DatasetCache
from shop_haul.dataset.interfaces import DatasetSource
from shop_haul.dataset.models import DatasetResult, DatasetSnapshot, ShopRecord, SnapshotSource

if TYPE_CHECKING:
    from shop_haul.dataset.file_source import JsonFileDatasetSource
    from shop_haul.dataset.notion import NotionDatasetSource

__all__ = [
    "DatasetCache",
    "DatasetResult",
    "DatasetSnapshot",
    "DatasetSource",
    "JsonFileDatasetSource",
    "NotionDatasetSource",
    "ShopRecord",
    "SnapshotSource",
]


def __getattr__(name: str):
    if name == "JsonFileDatasetSource":
        from shop_haul.dataset.file_source import JsonFileDatasetSource as _JsonFileDatasetSource

        return _JsonFileDatasetSource
    if name == "NotionDatasetSource":
        from shop_haul.dataset.notion import NotionDatasetSource as _NotionDatasetSource

        return _NotionDatasetSource
    raise AttributeError(name)
