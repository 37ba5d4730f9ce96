from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

SchemaVersion = 1


@dataclass(frozen=True, slots=True)
class CacheEntry:
    content_type: str
    fetched_at: datetime
    body: bytes


@dataclass(frozen=True, slots=True)
class CacheMetadata:
    content_type: str
    fetched_at: str
    size_bytes: int
    schema_version: int = SchemaVersion
