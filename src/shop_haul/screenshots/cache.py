from __future__ import annotations

import logging

from shop_haul.cache.store import CacheStore
from shop_haul.cache.utils import cache_key_for_url
from shop_haul.screenshots.fetcher import Screenshot, ScreenshotFetcher

logger = logging.getLogger(__name__)


class ScreenshotCache:
    """
    Get-or-produce access to screenshots keyed by (cache version, target URL).

    Concurrent misses for the same key may each fetch and overwrite the entry;
    the overwrite is idempotent so no locking is applied. Expired entries are never
    served on upstream failure: ScreenshotUnavailableError propagates to the caller.
    """

    def __init__(self, *, store: CacheStore, fetcher: ScreenshotFetcher, version: str) -> None:
        self._store = store
        self._fetcher = fetcher
        self._version = version

    def key_for(self, target_url: str) -> str:
        return cache_key_for_url(self._version, target_url)

    async def get_or_produce(self, target_url: str) -> Screenshot:
        key = self.key_for(target_url)
        cached = self._store.get(key)
        if cached is not None:
            logger.debug("Screenshot cache hit. url=%s key=%s", target_url, key)
            return Screenshot(content_type=cached.content_type, body=cached.body)

        logger.debug("Screenshot cache miss. url=%s key=%s", target_url, key)
        fresh = await self._fetcher.fetch(target_url)
        try:
            self._store.put(key, fresh.content_type, fresh.body)
        except OSError:
            logger.exception("Failed to persist screenshot cache entry. url=%s key=%s", target_url, key)
            return fresh
        logger.info("Screenshot cached. url=%s size=%d", target_url, len(fresh.body))
        return fresh
