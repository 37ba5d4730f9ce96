import asyncio
import unittest
from datetime import timedelta

from shop_haul.dataset.cache import CacheState, DatasetCache
from shop_haul.errors import DatasetUnavailableError
from tests.fakes import FakeClock, ScriptedDatasetSource, make_result, make_shop


class DatasetCacheTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self) -> None:
        self.clock = FakeClock()
        self.first = make_result([make_shop(1), make_shop(2)])
        self.second = make_result([make_shop(3)])

    def _cache(self, source: ScriptedDatasetSource) -> DatasetCache:
        return DatasetCache(source, ttl=timedelta(seconds=300), clock=self.clock)

    async def test_first_call_refreshes_then_serves_fresh(self) -> None:
        source = ScriptedDatasetSource(self.first)
        cache = self._cache(source)
        self.assertEqual(cache.state, CacheState.EMPTY)

        snapshot, tag = await cache.get_snapshot()
        self.assertEqual(tag, "refreshed")
        self.assertEqual(list(snapshot.items), list(self.first.items))
        self.assertEqual(cache.state, CacheState.READY)

        again, tag = await cache.get_snapshot()
        self.assertEqual(tag, "fresh")
        self.assertIs(again, snapshot)
        self.assertEqual(source.calls, 1)

    async def test_concurrent_callers_share_one_fetch(self) -> None:
        source = ScriptedDatasetSource(self.first, delay=0.05)
        cache = self._cache(source)

        results = await asyncio.gather(*(cache.get_snapshot() for _ in range(10)))

        self.assertEqual(source.calls, 1)
        snapshots = {id(snapshot) for snapshot, _ in results}
        self.assertEqual(len(snapshots), 1)
        tags = sorted(tag for _, tag in results)
        self.assertEqual(tags.count("refreshed"), 1)
        self.assertEqual(tags.count("inflight-joined"), 9)

    async def test_state_is_fetching_while_refresh_runs(self) -> None:
        source = ScriptedDatasetSource(self.first, delay=0.05)
        cache = self._cache(source)

        pending = asyncio.create_task(cache.get_snapshot())
        await asyncio.sleep(0.01)
        self.assertEqual(cache.state, CacheState.FETCHING)
        await pending
        self.assertEqual(cache.state, CacheState.READY)

    async def test_stale_snapshot_triggers_refresh(self) -> None:
        source = ScriptedDatasetSource(self.first, self.second)
        cache = self._cache(source)
        await cache.get_snapshot()
        self.clock.advance(seconds=301)
        self.assertEqual(cache.state, CacheState.STALE)

        snapshot, tag = await cache.get_snapshot()

        self.assertEqual(tag, "refreshed")
        self.assertEqual(list(snapshot.items), list(self.second.items))
        self.assertEqual(source.calls, 2)

    async def test_failed_refresh_serves_stale_snapshot(self) -> None:
        source = ScriptedDatasetSource(self.first, RuntimeError("upstream down"))
        cache = self._cache(source)
        original, _ = await cache.get_snapshot()
        self.clock.advance(hours=6)

        snapshot, tag = await cache.get_snapshot()

        self.assertEqual(tag, "stale-on-error")
        self.assertIs(snapshot, original)
        self.assertEqual(cache.state, CacheState.STALE)

    async def test_stale_on_error_does_not_reset_age(self) -> None:
        source = ScriptedDatasetSource(self.first, RuntimeError("down"), self.second)
        cache = self._cache(source)
        await cache.get_snapshot()
        self.clock.advance(seconds=400)

        _, tag = await cache.get_snapshot()
        self.assertEqual(tag, "stale-on-error")

        snapshot, tag = await cache.get_snapshot()
        self.assertEqual(tag, "refreshed")
        self.assertEqual(list(snapshot.items), list(self.second.items))
        self.assertEqual(source.calls, 3)

    async def test_failure_without_snapshot_propagates(self) -> None:
        source = ScriptedDatasetSource(RuntimeError("no credentials"))
        cache = self._cache(source)

        with self.assertRaises(DatasetUnavailableError) as ctx:
            await cache.get_snapshot()
        self.assertEqual(ctx.exception.details, "no credentials")
        self.assertEqual(cache.state, CacheState.EMPTY)

    async def test_joined_callers_observe_same_failure(self) -> None:
        source = ScriptedDatasetSource(DatasetUnavailableError("Notion API key is missing."), delay=0.02)
        cache = self._cache(source)

        results = await asyncio.gather(*(cache.get_snapshot() for _ in range(5)), return_exceptions=True)

        self.assertEqual(source.calls, 1)
        self.assertTrue(all(isinstance(r, DatasetUnavailableError) for r in results))
        self.assertEqual({str(r) for r in results}, {"Notion API key is missing."})

    async def test_cancelled_caller_does_not_cancel_shared_refresh(self) -> None:
        source = ScriptedDatasetSource(self.first, delay=0.05)
        cache = self._cache(source)

        first = asyncio.create_task(cache.get_snapshot())
        await asyncio.sleep(0.01)
        second = asyncio.create_task(cache.get_snapshot())
        await asyncio.sleep(0)
        first.cancel()

        snapshot, tag = await second
        self.assertEqual(tag, "inflight-joined")
        self.assertEqual(list(snapshot.items), list(self.first.items))
        self.assertEqual(source.calls, 1)


if __name__ == "__main__":
    unittest.main()
