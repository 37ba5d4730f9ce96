from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

import aiohttp

from shop_haul.cache.utils import is_image_content_type
from shop_haul.errors import ScreenshotUnavailableError
from shop_haul.screenshots.providers import ScreenshotProvider

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"
NO_PROVIDER_REASON = "No screenshot provider produced an upstream URL."


@dataclass(frozen=True, slots=True)
class Screenshot:
    content_type: str
    body: bytes


@dataclass(frozen=True, slots=True)
class ProviderRejection:
    provider: str
    reason: str


class ScreenshotFetcher:
    """
    Tries an ordered list of providers and returns the first usable image.

    Every failed attempt, including network errors and timeouts, becomes a
    ProviderRejection; only exhausting the list raises.
    """

    def __init__(self, providers: Sequence[ScreenshotProvider], *, timeout_seconds: float) -> None:
        self._providers = list(providers)
        self._timeout_seconds = timeout_seconds

    async def fetch(self, target_url: str) -> Screenshot:
        last_rejection: Optional[ProviderRejection] = None
        timeout = aiohttp.ClientTimeout(total=self._timeout_seconds)

        async with aiohttp.ClientSession(timeout=timeout) as session:
            for provider in self._providers:
                upstream = provider.upstream_url(target_url)
                if not upstream:
                    continue

                outcome = await self._attempt(session, provider, upstream)
                if isinstance(outcome, Screenshot):
                    logger.debug(
                        "Screenshot provider succeeded. provider=%s url=%s size=%d",
                        provider.name,
                        target_url,
                        len(outcome.body),
                    )
                    return outcome

                last_rejection = outcome
                logger.warning(
                    "Screenshot provider rejected. provider=%s url=%s reason=%s",
                    provider.name,
                    target_url,
                    outcome.reason,
                )

        reason = last_rejection.reason if last_rejection else NO_PROVIDER_REASON
        raise ScreenshotUnavailableError("Failed to create screenshot.", details=reason)

    async def _attempt(
        self,
        session: aiohttp.ClientSession,
        provider: ScreenshotProvider,
        upstream: str,
    ) -> Screenshot | ProviderRejection:
        try:
            async with session.get(upstream) as response:
                if response.status < 200 or response.status >= 300:
                    return ProviderRejection(provider.name, f"Provider failed ({response.status}).")

                content_type = response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE
                if not is_image_content_type(content_type):
                    return ProviderRejection(
                        provider.name, f"Provider returned non-image content ({content_type})."
                    )

                body = await response.read()
                if not body:
                    return ProviderRejection(provider.name, "Provider returned an empty image.")
                return Screenshot(content_type=content_type, body=body)
        except asyncio.TimeoutError:
            return ProviderRejection(provider.name, f"Provider timed out after {self._timeout_seconds:g}s.")
        except aiohttp.ClientError as e:
            return ProviderRejection(provider.name, str(e) or type(e).__name__)
