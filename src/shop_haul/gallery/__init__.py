"""Client-side gallery state: filtering, paging, progressive disclosure and image warm-up."""

from __future__ import annotations

from shop_haul.gallery.controller import GalleryController
from shop_haul.gallery.loader import ProgressiveLoader, ViewportMetrics
from shop_haul.gallery.preloader import HttpImageProbe, ImagePreloader, PreloadOutcome
from shop_haul.gallery.session import GalleryFilters, GallerySession

__all__ = [
    "GalleryController",
    "GalleryFilters",
    "GallerySession",
    "HttpImageProbe",
    "ImagePreloader",
    "PreloadOutcome",
    "ProgressiveLoader",
    "ViewportMetrics",
]
