from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Optional

from shop_haul.cache.utils import utc_now
from shop_haul.dataset.interfaces import DatasetSource
from shop_haul.dataset.models import DatasetSnapshot, SnapshotSource
from shop_haul.errors import DatasetUnavailableError

logger = logging.getLogger(__name__)


class CacheState(str, Enum):
    EMPTY = "empty"
    FETCHING = "fetching"
    READY = "ready"
    STALE = "stale"


class DatasetCache:
    """
    In-memory, TTL-bounded holder of the latest dataset snapshot.

    One instance is owned by the web application and shared by every request.
    At most one refresh runs at a time; callers arriving while it runs await the
    same task. A failed refresh serves the previous snapshot (however old) tagged
    "stale-on-error" and leaves its age untouched so the next call retries.
    """

    def __init__(
        self,
        source: DatasetSource,
        *,
        ttl: timedelta,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._source = source
        self._ttl = ttl
        self._clock = clock
        self._snapshot: Optional[DatasetSnapshot] = None
        self._inflight: Optional[asyncio.Task[DatasetSnapshot]] = None

    @property
    def state(self) -> CacheState:
        if self._inflight is not None:
            return CacheState.FETCHING
        if self._snapshot is None:
            return CacheState.EMPTY
        if self._is_fresh(self._snapshot):
            return CacheState.READY
        return CacheState.STALE

    def _is_fresh(self, snapshot: DatasetSnapshot) -> bool:
        return self._clock() - snapshot.fetched_at < self._ttl

    async def get_snapshot(self) -> tuple[DatasetSnapshot, SnapshotSource]:
        current = self._snapshot
        if current is not None and self._inflight is None and self._is_fresh(current):
            return current, "fresh"

        joined = self._inflight is not None
        if self._inflight is None:
            self._inflight = asyncio.create_task(self._refresh())
            self._inflight.add_done_callback(_log_refresh_task_result)
        task = self._inflight

        try:
            snapshot = await asyncio.shield(task)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            previous = self._snapshot
            if previous is not None:
                logger.warning(
                    "Dataset refresh failed, serving stale snapshot. fetched_at=%s error=%s",
                    previous.fetched_at.isoformat(),
                    e,
                )
                return previous, "stale-on-error"
            if isinstance(e, DatasetUnavailableError):
                raise
            raise DatasetUnavailableError("Failed to load shop dataset.", details=str(e) or type(e).__name__) from e

        return snapshot, "inflight-joined" if joined else "refreshed"

    async def _refresh(self) -> DatasetSnapshot:
        started = self._clock()
        try:
            result = await self._source.fetch_dataset()
            snapshot = DatasetSnapshot(result=result, fetched_at=self._clock())
            self._snapshot = snapshot
            logger.info(
                "Dataset refreshed. items=%d total_rows=%d duration=%.2fs",
                len(result.items),
                result.total_rows,
                (snapshot.fetched_at - started).total_seconds(),
            )
            return snapshot
        finally:
            self._inflight = None


def _log_refresh_task_result(task: asyncio.Task) -> None:
    # Marks the exception as retrieved when every waiter was cancelled.
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug("Dataset refresh task finished with error. error=%s", error)
