"""HTTP surface: /api/shops and /api/screenshot on aiohttp.web."""

from __future__ import annotations

from shop_haul.web.app import GalleryServices, build_services, create_app

__all__ = ["GalleryServices", "build_services", "create_app"]
