from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from shop_haul.cache.models import CacheMetadata, SchemaVersion


def atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_bytes(data)
    tmp_path.replace(path)


def atomic_write_json(path: Path, payload: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
    tmp_path.replace(path)


def encode_metadata(meta: CacheMetadata) -> dict:
    return {
        "schema_version": meta.schema_version,
        "content_type": meta.content_type,
        "fetched_at": meta.fetched_at,
        "size_bytes": meta.size_bytes,
    }


def decode_metadata(payload: object) -> Optional[CacheMetadata]:
    """Decode a metadata document, returning None for anything malformed."""
    if not isinstance(payload, dict):
        return None
    content_type = payload.get("content_type")
    fetched_at = payload.get("fetched_at")
    size_bytes = payload.get("size_bytes")
    if not isinstance(content_type, str) or not isinstance(fetched_at, str):
        return None
    if not isinstance(size_bytes, int) or isinstance(size_bytes, bool) or size_bytes < 0:
        return None
    schema_version = payload.get("schema_version", SchemaVersion)
    if schema_version != SchemaVersion:
        return None
    return CacheMetadata(
        content_type=content_type,
        fetched_at=fetched_at,
        size_bytes=size_bytes,
        schema_version=schema_version,
    )
