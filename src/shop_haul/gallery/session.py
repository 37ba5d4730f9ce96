from __future__ import annotations

import unicodedata
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Iterable, Literal, Sequence, get_args

from shop_haul.cache.utils import parse_rfc3339
from shop_haul.dataset.models import ShopRecord

SortOrder = Literal["recent", "oldest", "az", "za"]
SORT_ORDERS: tuple[str, ...] = get_args(SortOrder)

ALL = "all"
DEFAULT_PAGE_SIZE = 12

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def normalize_text(value: str | None) -> str:
    return str(value or "").strip().casefold()


def _title_key(title: str) -> str:
    # Accent- and case-insensitive ordering, close to a default collation.
    decomposed = unicodedata.normalize("NFKD", title.strip())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def _edited_key(shop: ShopRecord) -> datetime:
    try:
        return parse_rfc3339(shop.edited_at)
    except ValueError:
        return _EPOCH


def sort_shops(shops: Iterable[ShopRecord], order: SortOrder) -> list[ShopRecord]:
    """Stable sort; reverse=True keeps tied items in their prior relative order."""
    if order == "az":
        return sorted(shops, key=lambda shop: _title_key(shop.title))
    if order == "za":
        return sorted(shops, key=lambda shop: _title_key(shop.title), reverse=True)
    if order == "oldest":
        return sorted(shops, key=_edited_key)
    return sorted(shops, key=_edited_key, reverse=True)


@dataclass(frozen=True, slots=True)
class GalleryFilters:
    category: str = ALL
    tag: str = ALL
    text: str = ""

    @property
    def active_count(self) -> int:
        return sum(
            [
                _is_active_choice(self.category),
                _is_active_choice(self.tag),
                bool(self.text.strip()),
            ]
        )


def _is_active_choice(value: str) -> bool:
    normalized = normalize_text(value)
    return bool(normalized) and normalized != ALL


def filter_shops(shops: Iterable[ShopRecord], filters: GalleryFilters) -> list[ShopRecord]:
    items = list(shops)
    if _is_active_choice(filters.category):
        category = normalize_text(filters.category)
        items = [shop for shop in items if normalize_text(shop.category) == category]
    if _is_active_choice(filters.tag):
        tag = normalize_text(filters.tag)
        items = [shop for shop in items if tag in {normalize_text(t) for t in shop.tags}]
    query = normalize_text(filters.text)
    if query:
        items = [shop for shop in items if query in normalize_text(shop.notes)]
    return items


class GallerySession:
    """
    Filters, sort order and current page over the full shop list.

    The filtered view is recomputed synchronously on every mutation, so any render
    issued afterwards reflects the latest state. Changing a filter or the sort
    order resets the page to 1; changing the page keeps filters and sort.
    """

    def __init__(self, items: Sequence[ShopRecord] = (), *, page_size: int = DEFAULT_PAGE_SIZE) -> None:
        if page_size < 1:
            raise ValueError(f"page_size must be positive, got: {page_size}")
        self._page_size = page_size
        self._all_items: tuple[ShopRecord, ...] = tuple(items)
        self._filters = GalleryFilters()
        self._sort: SortOrder = "recent"
        self._page = 1
        self._filtered: list[ShopRecord] = []
        self._recompute()

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def all_items(self) -> Sequence[ShopRecord]:
        return self._all_items

    @property
    def filters(self) -> GalleryFilters:
        return self._filters

    @property
    def sort(self) -> SortOrder:
        return self._sort

    @property
    def page(self) -> int:
        return self._page

    @property
    def filtered_items(self) -> Sequence[ShopRecord]:
        return tuple(self._filtered)

    @property
    def filtered_count(self) -> int:
        return len(self._filtered)

    @property
    def visible_count(self) -> int:
        return min(len(self._filtered), self._page * self._page_size)

    @property
    def visible_items(self) -> Sequence[ShopRecord]:
        return tuple(self._filtered[: self.visible_count])

    @property
    def has_more(self) -> bool:
        return self.visible_count < len(self._filtered)

    def set_items(self, items: Sequence[ShopRecord]) -> None:
        self._all_items = tuple(items)
        self._page = 1
        self._recompute()

    def set_category(self, category: str) -> None:
        self._update_filters(replace(self._filters, category=category or ALL))

    def set_tag(self, tag: str) -> None:
        self._update_filters(replace(self._filters, tag=tag or ALL))

    def set_text(self, text: str) -> None:
        self._update_filters(replace(self._filters, text=text or ""))

    def reset_filters(self) -> None:
        self._update_filters(GalleryFilters())

    def set_sort(self, order: str) -> None:
        if order not in SORT_ORDERS:
            raise ValueError(f"Unknown sort order: {order}")
        self._sort = order  # type: ignore[assignment]
        self._page = 1
        self._recompute()

    def set_page(self, page: int) -> None:
        if page < 1:
            raise ValueError(f"page must be >= 1, got: {page}")
        self._page = page

    def _update_filters(self, filters: GalleryFilters) -> None:
        self._filters = filters
        self._page = 1
        self._recompute()

    def _recompute(self) -> None:
        self._filtered = sort_shops(filter_shops(self._all_items, self._filters), self._sort)
