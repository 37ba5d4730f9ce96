from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from aiohttp import web

from shop_haul.cache.store import CacheStore
from shop_haul.cache.utils import is_web_url
from shop_haul.config.models import AppConfig, DatasetSettings
from shop_haul.dataset.cache import DatasetCache
from shop_haul.dataset.interfaces import DatasetSource
from shop_haul.dataset.payload import build_shops_payload
from shop_haul.errors import DatasetUnavailableError, InvalidInputError, ScreenshotUnavailableError
from shop_haul.screenshots.cache import ScreenshotCache
from shop_haul.screenshots.fetcher import ScreenshotFetcher
from shop_haul.screenshots.providers import build_providers

logger = logging.getLogger(__name__)

SHOPS_CACHE_HEADER = "X-Shops-Cache"


@dataclass(frozen=True, slots=True)
class GalleryServices:
    """Explicit handle on the shared caches, passed to request handlers via the app."""

    config: AppConfig
    dataset_cache: DatasetCache
    screenshot_cache: ScreenshotCache


SERVICES_KEY = web.AppKey("services", GalleryServices)


def build_dataset_source(settings: DatasetSettings) -> DatasetSource:
    if settings.source == "file":
        from shop_haul.dataset.file_source import JsonFileDatasetSource

        return JsonFileDatasetSource(settings.file_path)

    from shop_haul.dataset.notion import NotionDatasetSource

    return NotionDatasetSource(settings.notion)


def build_services(
    config: AppConfig,
    *,
    dataset_source: Optional[DatasetSource] = None,
    fetcher: Optional[ScreenshotFetcher] = None,
) -> GalleryServices:
    store = CacheStore(config.screenshots.cache_dir, ttl=config.screenshots.ttl)
    store.ensure_dir()
    if fetcher is None:
        fetcher = ScreenshotFetcher(
            build_providers(config.screenshots.providers),
            timeout_seconds=config.screenshots.fetch_timeout_seconds,
        )
    if dataset_source is None:
        dataset_source = build_dataset_source(config.dataset)
    return GalleryServices(
        config=config,
        dataset_cache=DatasetCache(dataset_source, ttl=config.dataset.ttl),
        screenshot_cache=ScreenshotCache(store=store, fetcher=fetcher, version=config.screenshots.version),
    )


def _parse_target_url(request: web.Request) -> str:
    target_url = request.query.get("u", "").strip()
    if not is_web_url(target_url):
        raise InvalidInputError("Missing or invalid screenshot URL.")
    return target_url


async def handle_screenshot(request: web.Request) -> web.StreamResponse:
    services = request.app[SERVICES_KEY]
    try:
        target_url = _parse_target_url(request)
    except InvalidInputError as e:
        return web.json_response({"error": str(e)}, status=400)

    try:
        shot = await services.screenshot_cache.get_or_produce(target_url)
    except ScreenshotUnavailableError as e:
        return web.json_response({"error": str(e), "details": e.details}, status=502)

    return web.Response(
        body=shot.body,
        headers={"Content-Type": shot.content_type, "Cache-Control": "no-store"},
    )


async def handle_shops(request: web.Request) -> web.StreamResponse:
    services = request.app[SERVICES_KEY]
    try:
        snapshot, source = await services.dataset_cache.get_snapshot()
    except DatasetUnavailableError as e:
        logger.error("Dataset unavailable and no snapshot to fall back to. details=%s", e.details)
        return web.json_response({"error": str(e), "details": e.details}, status=500)

    server = services.config.server
    payload = build_shops_payload(snapshot.result, screenshot_version=services.config.screenshots.version)
    return web.json_response(
        payload,
        headers={
            "Cache-Control": (
                f"public, s-maxage={server.edge_cache_seconds}, "
                f"stale-while-revalidate={server.edge_stale_seconds}"
            ),
            SHOPS_CACHE_HEADER: source,
        },
    )


def create_app(services: GalleryServices) -> web.Application:
    app = web.Application()
    app[SERVICES_KEY] = services
    app.router.add_get("/api/shops", handle_shops)
    app.router.add_get("/api/screenshot", handle_screenshot)
    return app
