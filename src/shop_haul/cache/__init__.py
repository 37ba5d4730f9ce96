"""Content-addressed, TTL-aware persistent cache for image payloads."""

from __future__ import annotations

from shop_haul.cache.models import CacheEntry
from shop_haul.cache.store import CacheStore
from shop_haul.cache.utils import cache_key_for_url

__all__ = ["CacheEntry", "CacheStore", "cache_key_for_url"]
