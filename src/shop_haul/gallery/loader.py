from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from shop_haul.dataset.models import ShopRecord
from shop_haul.gallery.session import GallerySession

logger = logging.getLogger(__name__)

DEFAULT_NEAR_BOTTOM_THRESHOLD_PX = 260.0
DEFAULT_VIEWPORT_FILL_SLACK_PX = 120.0


@dataclass(frozen=True, slots=True)
class ViewportMetrics:
    viewport_height: float
    scroll_y: float
    content_height: float

    @property
    def distance_to_bottom(self) -> float:
        return self.content_height - (self.viewport_height + self.scroll_y)


RenderCallback = Callable[[Sequence[ShopRecord]], Awaitable[None]]
MetricsProvider = Callable[[], ViewportMetrics]


class ProgressiveLoader:
    """
    Decides when the gallery page should grow, one page per user action.

    Three triggers can ask for more: the explicit "load more" action, a scroll
    that lands near the bottom of the content, and the sentinel after the last
    card intersecting the viewport. The two automatic triggers share a busy flag
    that stays set until the render they caused has settled; anything arriving
    meanwhile is dropped. After every render the viewport is topped up one page
    at a time while the content is shorter than the viewport.
    """

    def __init__(
        self,
        session: GallerySession,
        *,
        render: RenderCallback,
        metrics: MetricsProvider,
        near_bottom_threshold_px: float = DEFAULT_NEAR_BOTTOM_THRESHOLD_PX,
        viewport_fill_slack_px: float = DEFAULT_VIEWPORT_FILL_SLACK_PX,
    ) -> None:
        self._session = session
        self._render = render
        self._metrics = metrics
        self._near_bottom_threshold_px = near_bottom_threshold_px
        self._viewport_fill_slack_px = viewport_fill_slack_px
        self._auto_loading = False

    @property
    def auto_loading(self) -> bool:
        return self._auto_loading

    def request_more(self) -> bool:
        """Advance one page if more filtered items remain. Returns whether the page changed."""
        if not self._session.has_more:
            return False
        self._session.set_page(self._session.page + 1)
        return True

    async def refresh(self) -> None:
        """Render the current state, e.g. after a filter, sort or dataset change."""
        await self._render_and_settle()
        await self._auto_load_if(self._is_near_bottom)

    async def load_more(self) -> bool:
        if not self.request_more():
            return False
        await self._render_and_settle()
        return True

    async def on_scroll(self) -> bool:
        return await self._auto_load_if(self._is_near_bottom)

    async def on_resize(self) -> bool:
        return await self._auto_load_if(self._is_near_bottom)

    async def on_sentinel_intersection(self, is_intersecting: bool) -> bool:
        if not is_intersecting:
            return False
        return await self._auto_load_if(lambda: True)

    async def _auto_load_if(self, condition: Callable[[], bool]) -> bool:
        if self._auto_loading:
            logger.debug("Auto-load trigger ignored while a load is settling. page=%d", self._session.page)
            return False
        if not self._session.has_more or not condition():
            return False

        self._auto_loading = True
        try:
            self.request_more()
            await self._render_and_settle()
        finally:
            self._auto_loading = False
        return True

    async def _render_and_settle(self) -> None:
        await self._render(self._session.visible_items)
        while self._session.has_more and self._is_underfilled():
            self.request_more()
            logger.debug("Viewport underfilled, loading next page. page=%d", self._session.page)
            await self._render(self._session.visible_items)

    def _is_near_bottom(self) -> bool:
        return self._metrics().distance_to_bottom <= self._near_bottom_threshold_px

    def _is_underfilled(self) -> bool:
        metrics = self._metrics()
        return metrics.content_height <= metrics.viewport_height + self._viewport_fill_slack_px
