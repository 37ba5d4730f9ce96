from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Literal, Optional

import aiohttp

from shop_haul.cache.utils import is_image_content_type

logger = logging.getLogger(__name__)

DEFAULT_PRELOAD_TIMEOUT_SECONDS = 7.0

ImageProbe = Callable[[str], Awaitable[bool]]
PreloadStatus = Literal["primary", "fallback", "failed", "timeout"]


@dataclass(frozen=True, slots=True)
class PreloadOutcome:
    status: PreloadStatus
    url: Optional[str] = None

    @property
    def loaded(self) -> bool:
        return self.url is not None


class HttpImageProbe:
    """Loads an image URL over HTTP; a 2xx non-empty image response counts as loaded."""

    def __init__(self, *, timeout_seconds: float = 30.0) -> None:
        self._timeout_seconds = timeout_seconds
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> HttpImageProbe:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    async def start(self) -> None:
        if self._session:
            return
        self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._timeout_seconds))

    async def stop(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def __call__(self, url: str) -> bool:
        if self._session is not None:
            return await self._load(self._session, url)
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._timeout_seconds)) as session:
            return await self._load(session, url)

    async def _load(self, session: aiohttp.ClientSession, url: str) -> bool:
        try:
            async with session.get(url) as response:
                if response.status < 200 or response.status >= 300:
                    return False
                if not is_image_content_type(response.headers.get("Content-Type")):
                    return False
                return bool(await response.read())
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug("Image load failed. url=%s error=%s", url, e)
            return False


class _Settlement:
    """A one-shot result slot: the first settle() wins, later calls are no-ops."""

    def __init__(self) -> None:
        self._future: asyncio.Future[PreloadOutcome] = asyncio.get_running_loop().create_future()

    @property
    def settled(self) -> bool:
        return self._future.done()

    def settle(self, outcome: PreloadOutcome) -> bool:
        if self._future.done():
            return False
        self._future.set_result(outcome)
        return True

    async def wait(self) -> PreloadOutcome:
        return await self._future


class ImagePreloader:
    """
    Best-effort warm-up of screenshot images.

    preload() tries the primary URL, switches once to the fallback on failure,
    and always settles within the timeout. It never raises; the outcome says
    which URL (if any) loaded.
    """

    def __init__(
        self,
        probe: Optional[ImageProbe] = None,
        *,
        timeout_seconds: float = DEFAULT_PRELOAD_TIMEOUT_SECONDS,
    ) -> None:
        self._probe: ImageProbe = probe or HttpImageProbe()
        self._timeout_seconds = timeout_seconds

    async def preload(
        self,
        primary_url: str,
        fallback_url: Optional[str] = None,
        *,
        timeout_seconds: Optional[float] = None,
    ) -> PreloadOutcome:
        timeout = self._timeout_seconds if timeout_seconds is None else timeout_seconds
        settlement = _Settlement()
        loop = asyncio.get_running_loop()
        timer = loop.call_later(max(0.0, timeout), settlement.settle, PreloadOutcome(status="timeout"))

        attempt = asyncio.create_task(self._load_with_fallback(primary_url, fallback_url))

        def _on_attempt_done(task: asyncio.Task) -> None:
            if task.cancelled() or task.exception() is not None:
                settlement.settle(PreloadOutcome(status="failed"))
                return
            settlement.settle(task.result())

        attempt.add_done_callback(_on_attempt_done)
        try:
            outcome = await settlement.wait()
        finally:
            timer.cancel()
            if not attempt.done():
                attempt.cancel()

        if outcome.status == "timeout":
            logger.debug("Image preload timed out. url=%s timeout=%.2fs", primary_url, timeout)
        return outcome

    async def preload_batch(
        self,
        pairs: Iterable[tuple[str, Optional[str]]],
        *,
        timeout_seconds: Optional[float] = None,
    ) -> list[PreloadOutcome]:
        tasks = [
            self.preload(primary, fallback, timeout_seconds=timeout_seconds)
            for primary, fallback in pairs
        ]
        if not tasks:
            return []
        return list(await asyncio.gather(*tasks))

    async def _load_with_fallback(self, primary_url: str, fallback_url: Optional[str]) -> PreloadOutcome:
        if await self._try_load(primary_url):
            return PreloadOutcome(status="primary", url=primary_url)
        if fallback_url and fallback_url != primary_url:
            if await self._try_load(fallback_url):
                return PreloadOutcome(status="fallback", url=fallback_url)
        return PreloadOutcome(status="failed")

    async def _try_load(self, url: str) -> bool:
        try:
            return bool(await self._probe(url))
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.debug("Image probe raised. url=%s", url, exc_info=True)
            return False
