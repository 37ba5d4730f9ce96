from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Optional

from shop_haul.cache.io import atomic_write_bytes, atomic_write_json, decode_metadata, encode_metadata
from shop_haul.cache.models import CacheEntry, CacheMetadata
from shop_haul.cache.utils import format_rfc3339, is_image_content_type, parse_rfc3339, utc_now

logger = logging.getLogger(__name__)

PAYLOAD_SUFFIX = ".bin"
METADATA_SUFFIX = ".json"


class CacheStore:
    """
    Persistent key -> (content type, bytes, fetched-at) store on the local filesystem.

    Each key owns two artifacts sharing the key as filename stem: the binary payload
    and a JSON metadata document. Expiry is logical: entries older than the TTL are
    reported as absent but stay on disk until overwritten or pruned externally.
    """

    def __init__(
        self,
        cache_dir: str | Path,
        *,
        ttl: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._cache_dir = Path(cache_dir)
        self._ttl = ttl
        self._clock = clock

    def paths_for_key(self, key: str) -> tuple[Path, Path]:
        return (
            self._cache_dir / f"{key}{PAYLOAD_SUFFIX}",
            self._cache_dir / f"{key}{METADATA_SUFFIX}",
        )

    def ensure_dir(self) -> None:
        self._cache_dir.mkdir(parents=True, exist_ok=True)

    def get(self, key: str) -> Optional[CacheEntry]:
        """
        Return the fresh entry for key, or None.

        Missing artifacts, unreadable or malformed metadata, a non-image content type,
        a payload whose size disagrees with its metadata and an expired entry all
        collapse into the same None result.
        """
        payload_path, meta_path = self.paths_for_key(key)
        try:
            meta = decode_metadata(json.loads(meta_path.read_text(encoding="utf-8")))
            if meta is None:
                logger.debug("Screenshot cache metadata rejected. key=%s", key)
                return None
            if not is_image_content_type(meta.content_type):
                logger.debug("Screenshot cache entry is not an image. key=%s content_type=%s", key, meta.content_type)
                return None
            fetched_at = parse_rfc3339(meta.fetched_at)
            if self._clock() - fetched_at > self._ttl:
                logger.debug("Screenshot cache entry expired. key=%s fetched_at=%s", key, meta.fetched_at)
                return None
            body = payload_path.read_bytes()
        except FileNotFoundError:
            return None
        except (OSError, ValueError, TypeError) as e:
            logger.debug("Screenshot cache entry unreadable. key=%s error=%s", key, e)
            return None

        if len(body) != meta.size_bytes:
            logger.debug(
                "Screenshot cache payload does not match metadata. key=%s expected=%d actual=%d",
                key,
                meta.size_bytes,
                len(body),
            )
            return None
        return CacheEntry(content_type=meta.content_type, fetched_at=fetched_at, body=body)

    def put(self, key: str, content_type: str, body: bytes) -> CacheEntry:
        """Write payload then metadata; a torn pair is caught by the size check in get()."""
        payload_path, meta_path = self.paths_for_key(key)
        fetched_at = self._clock()
        meta = CacheMetadata(
            content_type=content_type,
            fetched_at=format_rfc3339(fetched_at),
            size_bytes=len(body),
        )
        atomic_write_bytes(payload_path, body)
        atomic_write_json(meta_path, encode_metadata(meta))
        logger.debug("Screenshot cache entry written. key=%s size=%d", key, len(body))
        return CacheEntry(content_type=content_type, fetched_at=fetched_at, body=body)
