from __future__ import annotations

from typing import Any, Iterable
from urllib.parse import quote

from shop_haul.dataset.models import DatasetResult

SCREENSHOT_ENDPOINT = "/api/screenshot"


def screenshot_path_for(url: str, version: str) -> str:
    return f"{SCREENSHOT_ENDPOINT}?u={quote(url, safe='')}&sv={quote(version, safe='')}"


def _sorted_unique(values: Iterable[str]) -> list[str]:
    cleaned = {value.strip() for value in values if value and value.strip()}
    return sorted(cleaned, key=lambda value: (value.casefold(), value))


def build_shops_payload(result: DatasetResult, *, screenshot_version: str) -> dict[str, Any]:
    shops = []
    for shop in result.items:
        entry = shop.to_payload()
        entry["screenshot"] = screenshot_path_for(shop.url, screenshot_version)
        shops.append(entry)

    return {
        "shops": shops,
        "categories": _sorted_unique(shop.category for shop in result.items),
        "tags": _sorted_unique(tag for shop in result.items for tag in shop.tags),
        "count": len(shops),
        "totalRows": result.total_rows,
        "shopsWithUrl": result.shops_with_url,
    }
