from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence
from urllib.parse import quote, urlsplit

THUM_IO_WIDTH = 1400
THUM_IO_CROP = 900


def thum_io_url(target_url: str, *, width: int = THUM_IO_WIDTH, crop: int = THUM_IO_CROP) -> str:
    return f"https://image.thum.io/get/width/{width}/crop/{crop}/noanimate/{quote(target_url, safe='')}"


def screenshot_of_url(target_url: str) -> Optional[str]:
    try:
        host = urlsplit(target_url).hostname
    except ValueError:
        return None
    if not host:
        return None
    return f"https://screenshotof.com/{host}"


@dataclass(frozen=True, slots=True)
class ScreenshotProvider:
    """A named strategy mapping a target URL to an upstream image URL (or None to skip)."""

    name: str
    build_url: Callable[[str], Optional[str]]

    def upstream_url(self, target_url: str) -> Optional[str]:
        return self.build_url(target_url)


KNOWN_PROVIDERS: dict[str, ScreenshotProvider] = {
    "thum_io": ScreenshotProvider(name="thum_io", build_url=thum_io_url),
    "screenshot_of": ScreenshotProvider(name="screenshot_of", build_url=screenshot_of_url),
}


def build_providers(names: Sequence[str]) -> list[ScreenshotProvider]:
    providers = []
    for name in names:
        provider = KNOWN_PROVIDERS.get(name.strip().lower())
        if provider is None:
            raise ValueError(f"Unknown screenshot provider: {name}")
        providers.append(provider)
    return providers
