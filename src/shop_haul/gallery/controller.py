from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence
from urllib.parse import urljoin

import aiohttp

from shop_haul.config.models import GallerySettings
from shop_haul.dataset.models import ShopRecord
from shop_haul.gallery.loader import MetricsProvider, ProgressiveLoader, RenderCallback
from shop_haul.gallery.preloader import ImagePreloader
from shop_haul.gallery.session import GallerySession
from shop_haul.screenshots.providers import thum_io_url

logger = logging.getLogger(__name__)

# Direct upstream fallback rendered at a laptop-class viewport.
FALLBACK_WIDTH = 3308
FALLBACK_CROP = 1900

StatusCallback = Callable[[str, bool], None]
ListingFetcher = Callable[[], Awaitable[Mapping[str, Any]]]


class ListingError(Exception):
    pass


def fallback_image_url(url: str) -> str:
    return thum_io_url(url, width=FALLBACK_WIDTH, crop=FALLBACK_CROP)


def format_status(visible: int, total: int) -> str:
    if not total:
        return "No shops match your current filters."
    return f"Showing {visible} of {total} shop{'' if total == 1 else 's'}"


class GalleryController:
    """Drives one gallery view: loads the listing, warms the first page and re-renders on every change."""

    def __init__(
        self,
        config: GallerySettings,
        *,
        render: RenderCallback,
        metrics: MetricsProvider,
        status: StatusCallback,
        preloader: Optional[ImagePreloader] = None,
        fetch_listing: Optional[ListingFetcher] = None,
    ) -> None:
        self._config = config
        self._render_cards = render
        self._status = status
        self._preloader = preloader or ImagePreloader(timeout_seconds=config.preload_timeout_seconds)
        self._fetch_listing = fetch_listing or self._fetch_listing_http
        self._screenshots: dict[str, str] = {}
        self.categories: list[str] = []
        self.tags: list[str] = []
        self.session = GallerySession(page_size=config.page_size)
        self.loader = ProgressiveLoader(
            self.session,
            render=self._render,
            metrics=metrics,
            near_bottom_threshold_px=config.near_bottom_threshold_px,
            viewport_fill_slack_px=config.viewport_fill_slack_px,
        )

    @property
    def active_filter_count(self) -> int:
        return self.session.filters.active_count

    async def load(self) -> bool:
        self._status("Loading shops...", True)
        try:
            payload = await self._fetch_listing()
            shops = [row for row in payload.get("shops") or [] if isinstance(row, Mapping)]
            records = [ShopRecord.from_payload(row) for row in shops]
            self._screenshots = {
                record.url: str(row.get("screenshot") or "") for record, row in zip(records, shops)
            }
            self.categories = [str(c) for c in payload.get("categories") or []]
            self.tags = [str(t) for t in payload.get("tags") or []]
            self.session.set_items(records)
            await self.preload_first_page()
            await self.loader.refresh()
            return True
        except (ListingError, aiohttp.ClientError, asyncio.TimeoutError, ValueError, TypeError) as e:
            detail = str(e) or type(e).__name__
            logger.warning("Gallery listing failed to load. error=%s", detail)
            self._status(f"Could not load data: {detail}", False)
            return False

    async def preload_first_page(self) -> None:
        first_batch = self.session.filtered_items[: self.session.page_size]
        pairs = [(self.primary_image_url(shop), fallback_image_url(shop.url)) for shop in first_batch]
        outcomes = await self._preloader.preload_batch(pairs)
        logger.debug(
            "First page preloaded. loaded=%d total=%d",
            sum(1 for outcome in outcomes if outcome.loaded),
            len(outcomes),
        )

    def primary_image_url(self, shop: ShopRecord) -> str:
        path = self._screenshots.get(shop.url)
        if not path:
            return fallback_image_url(shop.url)
        return urljoin(self._config.base_url.rstrip("/") + "/", path.lstrip("/"))

    async def set_category(self, category: str) -> None:
        self.session.set_category(category)
        await self.loader.refresh()

    async def set_tag(self, tag: str) -> None:
        self.session.set_tag(tag)
        await self.loader.refresh()

    async def set_text(self, text: str) -> None:
        self.session.set_text(text)
        await self.loader.refresh()

    async def set_sort(self, order: str) -> None:
        self.session.set_sort(order)
        await self.loader.refresh()

    async def reset_filters(self) -> None:
        self.session.reset_filters()
        await self.loader.refresh()

    async def _render(self, shops: Sequence[ShopRecord]) -> None:
        await self._render_cards(shops)
        self._status(format_status(self.session.visible_count, self.session.filtered_count), False)

    async def _fetch_listing_http(self) -> Mapping[str, Any]:
        url = urljoin(self._config.base_url.rstrip("/") + "/", "api/shops")
        timeout = aiohttp.ClientTimeout(total=self._config.listing_timeout_seconds)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.get(url) as resp:
                data = await resp.json(content_type=None)
                if resp.status != 200:
                    detail = data.get("details") or data.get("error") if isinstance(data, dict) else None
                    raise ListingError(detail or "Unknown API error")
                if not isinstance(data, dict):
                    raise ListingError("Unexpected API response")
                return data
