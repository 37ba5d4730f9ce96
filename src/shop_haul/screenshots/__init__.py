"""Screenshot capture: upstream provider chain plus the persistent screenshot cache."""

from __future__ import annotations

from shop_haul.screenshots.cache import ScreenshotCache
from shop_haul.screenshots.fetcher import ScreenshotFetcher
from shop_haul.screenshots.providers import ScreenshotProvider, build_providers

__all__ = ["ScreenshotCache", "ScreenshotFetcher", "ScreenshotProvider", "build_providers"]
