import asyncio
import unittest
from typing import Sequence

from shop_haul.dataset.models import ShopRecord
from shop_haul.gallery.loader import ProgressiveLoader, ViewportMetrics
from shop_haul.gallery.session import GallerySession
from tests.fakes import make_shop

CARD_HEIGHT = 100.0


class FakePage:
    """Content height follows the number of rendered cards; rendering can be slowed down."""

    def __init__(self, *, viewport_height: float = 800.0, render_delay: float = 0.0) -> None:
        self.viewport_height = viewport_height
        self.scroll_y = 0.0
        self.rendered = 0
        self.render_calls = 0
        self.render_delay = render_delay

    async def render(self, shops: Sequence[ShopRecord]) -> None:
        self.render_calls += 1
        if self.render_delay:
            await asyncio.sleep(self.render_delay)
        self.rendered = len(shops)

    def metrics(self) -> ViewportMetrics:
        return ViewportMetrics(
            viewport_height=self.viewport_height,
            scroll_y=self.scroll_y,
            content_height=self.rendered * CARD_HEIGHT,
        )

    def scroll_to_bottom(self) -> None:
        self.scroll_y = max(0.0, self.rendered * CARD_HEIGHT - self.viewport_height)


def _loader(count: int, page: FakePage, page_size: int = 12) -> tuple[GallerySession, ProgressiveLoader]:
    session = GallerySession([make_shop(i) for i in range(count)], page_size=page_size)
    loader = ProgressiveLoader(session, render=page.render, metrics=page.metrics)
    return session, loader


class RequestMoreTests(unittest.TestCase):
    def test_request_more_stops_at_filtered_count(self) -> None:
        session, loader = _loader(30, FakePage())
        self.assertEqual(session.visible_count, 12)

        self.assertTrue(loader.request_more())
        self.assertEqual(session.visible_count, 24)
        self.assertTrue(loader.request_more())
        self.assertEqual(session.visible_count, 30)
        self.assertFalse(loader.request_more())
        self.assertEqual(session.visible_count, 30)
        self.assertEqual(session.page, 3)


class ProgressiveLoaderTests(unittest.IsolatedAsyncioTestCase):
    async def test_initial_render_fills_short_viewport(self) -> None:
        page = FakePage(viewport_height=3000.0)
        session, loader = _loader(100, page, page_size=12)

        await loader.refresh()

        # 36 cards = 3600px is the first height above 3000 + 120 slack.
        self.assertEqual(session.visible_count, 36)
        self.assertEqual(page.rendered, 36)

    async def test_tall_content_renders_one_page(self) -> None:
        page = FakePage(viewport_height=500.0)
        session, loader = _loader(100, page)

        await loader.refresh()

        self.assertEqual(session.visible_count, 12)
        self.assertEqual(page.render_calls, 1)

    async def test_viewport_fill_stops_when_items_run_out(self) -> None:
        page = FakePage(viewport_height=5000.0)
        session, loader = _loader(20, page)

        await loader.refresh()

        self.assertEqual(session.visible_count, 20)
        self.assertFalse(session.has_more)

    async def test_explicit_load_more(self) -> None:
        page = FakePage(viewport_height=500.0)
        session, loader = _loader(30, page)
        await loader.refresh()

        self.assertTrue(await loader.load_more())
        self.assertEqual(session.visible_count, 24)
        self.assertTrue(await loader.load_more())
        self.assertFalse(await loader.load_more())
        self.assertEqual(session.visible_count, 30)

    async def test_scroll_far_from_bottom_does_nothing(self) -> None:
        page = FakePage(viewport_height=500.0)
        session, loader = _loader(100, page)
        await loader.refresh()

        self.assertFalse(await loader.on_scroll())
        self.assertEqual(session.page, 1)

    async def test_scroll_near_bottom_loads_one_page(self) -> None:
        page = FakePage(viewport_height=500.0)
        session, loader = _loader(100, page)
        await loader.refresh()
        page.scroll_to_bottom()

        self.assertTrue(await loader.on_scroll())
        self.assertEqual(session.page, 2)

    async def test_trigger_storm_increments_once(self) -> None:
        page = FakePage(viewport_height=500.0, render_delay=0.02)
        session, loader = _loader(100, page)
        await loader.refresh()
        page.scroll_to_bottom()

        results = await asyncio.gather(
            loader.on_scroll(),
            loader.on_scroll(),
            loader.on_sentinel_intersection(True),
            loader.on_scroll(),
        )

        self.assertEqual(results.count(True), 1)
        self.assertEqual(session.page, 2)
        self.assertFalse(loader.auto_loading)

    async def test_guard_clears_after_render_settles(self) -> None:
        page = FakePage(viewport_height=500.0)
        session, loader = _loader(100, page)
        await loader.refresh()

        self.assertTrue(await loader.on_sentinel_intersection(True))
        self.assertTrue(await loader.on_sentinel_intersection(True))
        self.assertEqual(session.page, 3)

    async def test_sentinel_leaving_viewport_is_ignored(self) -> None:
        page = FakePage(viewport_height=500.0)
        session, loader = _loader(100, page)
        await loader.refresh()

        self.assertFalse(await loader.on_sentinel_intersection(False))
        self.assertEqual(session.page, 1)

    async def test_guard_clears_when_render_fails(self) -> None:
        session = GallerySession([make_shop(i) for i in range(100)], page_size=12)

        async def broken_render(shops: Sequence[ShopRecord]) -> None:
            raise RuntimeError("render failed")

        loader = ProgressiveLoader(
            session,
            render=broken_render,
            metrics=lambda: ViewportMetrics(viewport_height=500.0, scroll_y=0.0, content_height=5000.0),
        )

        with self.assertRaises(RuntimeError):
            await loader.on_sentinel_intersection(True)
        self.assertFalse(loader.auto_loading)


if __name__ == "__main__":
    unittest.main()
