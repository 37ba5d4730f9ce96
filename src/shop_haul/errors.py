from __future__ import annotations


class ShopHaulError(Exception):
    """Base class for errors surfaced by the gallery service."""


class InvalidInputError(ShopHaulError):
    """The caller supplied a missing or malformed target URL."""


class UpstreamUnavailableError(ShopHaulError):
    """An upstream collaborator could not produce a usable result."""

    def __init__(self, message: str, *, details: str = "") -> None:
        super().__init__(message)
        self.details = details or message


class ScreenshotUnavailableError(UpstreamUnavailableError):
    pass


class DatasetUnavailableError(UpstreamUnavailableError):
    pass
