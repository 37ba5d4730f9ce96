from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Iterable, Mapping, Optional, Sequence
from urllib.parse import unquote, urlsplit, urlunsplit

import aiohttp

from shop_haul.config.models import NotionSettings
from shop_haul.dataset.interfaces import DatasetSource
from shop_haul.dataset.models import DatasetResult, ShopRecord
from shop_haul.errors import DatasetUnavailableError

logger = logging.getLogger(__name__)

PAGE_SIZE = 100

TITLE_NAMES = ("name", "title", "shop", "store")
URL_NAMES = ("url", "website", "link", "site", "shop url")
TAG_NAMES = ("tags", "tags/categories", "tag", "topics", "labels", "keywords")
CATEGORY_NAMES = ("category/type", "category", "type", "categories")
NOTES_NAMES = ("description/notes/summary", "description", "notes", "summary", "blurb")

_BUILTWITH_HOST = re.compile(r"(^|\.)builtwith\.com$", re.IGNORECASE)

Property = Mapping[str, Any]


def _plain_text(rich_text: Optional[Iterable[Mapping[str, Any]]]) -> str:
    return "".join(str(part.get("plain_text") or "") for part in rich_text or [])


def _normalize_name(value: str) -> str:
    return str(value or "").strip().lower()


def normalize_candidate_url(value: Optional[str]) -> str:
    """Return an absolute http(s) URL for value, or "" if it does not look like one."""
    raw = str(value or "").strip()
    if not raw:
        return ""

    if re.match(r"^https?://", raw, re.IGNORECASE):
        try:
            parsed = urlsplit(raw)
        except ValueError:
            return ""
        if parsed.scheme.lower() not in ("http", "https") or not parsed.netloc:
            return ""
        return urlunsplit(parsed._replace(path=parsed.path or "/"))

    if re.search(r"\s", raw) or "." not in raw:
        return ""

    try:
        parsed = urlsplit("https://" + raw.lstrip("/"))
    except ValueError:
        return ""
    if not parsed.netloc:
        return ""
    return urlunsplit(parsed._replace(path=parsed.path or "/"))


def unwrap_builtwith_url(value: str) -> str:
    """builtwith.com/?https://target links are replaced by their target."""
    raw = value.strip()
    if not raw:
        return raw
    try:
        parsed = urlsplit(raw)
    except ValueError:
        return raw
    if not _BUILTWITH_HOST.search(parsed.hostname or ""):
        return raw
    target = unquote(parsed.query).strip()
    if re.match(r"^https?://", target, re.IGNORECASE):
        return target
    return raw


def read_title(prop: Optional[Property]) -> str:
    if not prop:
        return ""
    if prop.get("type") == "title":
        return _plain_text(prop.get("title"))
    if prop.get("type") == "rich_text":
        return _plain_text(prop.get("rich_text"))
    return ""


def read_url(prop: Optional[Property]) -> str:
    if not prop:
        return ""
    kind = prop.get("type")
    if kind == "url":
        return normalize_candidate_url(prop.get("url"))
    if kind in ("rich_text", "title"):
        parts = prop.get(kind) or []
        direct = normalize_candidate_url(_plain_text(parts))
        if direct:
            return direct
        linked = next((part.get("href") for part in parts if part.get("href")), "")
        return normalize_candidate_url(linked)
    if kind == "formula":
        formula = prop.get("formula") or {}
        if formula.get("type") == "string":
            return normalize_candidate_url(formula.get("string"))
    return ""


def read_tags(prop: Optional[Property]) -> list[str]:
    if not prop:
        return []
    kind = prop.get("type")
    if kind == "multi_select":
        return [option.get("name") for option in prop.get("multi_select") or [] if option.get("name")]
    if kind == "select":
        name = (prop.get("select") or {}).get("name")
        return [name] if name else []
    if kind == "rich_text":
        return [tag.strip() for tag in _plain_text(prop.get("rich_text")).split(",") if tag.strip()]
    return []


def read_category(prop: Optional[Property]) -> str:
    if not prop:
        return ""
    kind = prop.get("type")
    if kind == "select":
        return (prop.get("select") or {}).get("name") or ""
    if kind == "multi_select":
        options = prop.get("multi_select") or []
        return (options[0].get("name") or "") if options else ""
    if kind == "rich_text":
        return _plain_text(prop.get("rich_text")).split(",")[0].strip()
    return ""


def read_notes(prop: Optional[Property]) -> str:
    if not prop:
        return ""
    kind = prop.get("type")
    if kind in ("rich_text", "title"):
        return _plain_text(prop.get(kind))
    if kind == "formula":
        formula = prop.get("formula") or {}
        if formula.get("type") == "string":
            return formula.get("string") or ""
    return ""


def find_property(
    props: Mapping[str, Property],
    preferred_name: str,
    *,
    preferred_names: Sequence[str],
    accepted_types: Sequence[str],
) -> Optional[Property]:
    """Resolve a property by configured name, then known aliases, then first of an accepted type."""
    by_name = {_normalize_name(name): value for name, value in props.items()}
    for name in (preferred_name, *preferred_names):
        key = _normalize_name(name)
        if key and key in by_name:
            return by_name[key]
    for value in props.values():
        if isinstance(value, Mapping) and value.get("type") in accepted_types:
            return value
    return None


def _host_of(url: str) -> str:
    try:
        host = urlsplit(url).hostname or ""
    except ValueError:
        return ""
    return host[4:] if host.startswith("www.") else host


class NotionDatasetSource(DatasetSource):
    def __init__(self, config: NotionSettings) -> None:
        self._config = config

    async def fetch_dataset(self) -> DatasetResult:
        if not self._config.api_key:
            raise DatasetUnavailableError("Notion API key is missing.")
        if not self._config.database_id:
            raise DatasetUnavailableError("Notion database id is missing.")

        rows = await self._query_all_pages()
        page_rows = [row for row in rows if row.get("object") == "page"]
        items = [record for record in (self.record_from_row(row) for row in page_rows) if record.url]
        logger.info("Notion dataset fetched. rows=%d shops_with_url=%d", len(page_rows), len(items))
        return DatasetResult(items=items, total_rows=len(page_rows), shops_with_url=len(items))

    def record_from_row(self, row: Mapping[str, Any]) -> ShopRecord:
        props: Mapping[str, Property] = row.get("properties") or {}
        names = self._config.property_map

        title_prop = find_property(props, names.name, preferred_names=TITLE_NAMES, accepted_types=("title", "rich_text"))
        url_prop = find_property(
            props, names.url, preferred_names=URL_NAMES, accepted_types=("url", "rich_text", "formula")
        )
        tags_prop = find_property(
            props, names.tags, preferred_names=TAG_NAMES, accepted_types=("multi_select", "select", "rich_text")
        )
        category_prop = find_property(
            props, names.category, preferred_names=CATEGORY_NAMES, accepted_types=("select", "multi_select", "rich_text")
        )
        notes_prop = find_property(
            props, names.notes, preferred_names=NOTES_NAMES, accepted_types=("rich_text", "title", "formula")
        )

        url = read_url(url_prop)
        if not url:
            url = next((candidate for candidate in map(read_url, props.values()) if candidate), "")
        url = unwrap_builtwith_url(url)

        title = read_title(title_prop).strip() or _host_of(url) or "Untitled"
        return ShopRecord(
            id=str(row.get("id") or ""),
            title=title,
            url=url,
            category=read_category(category_prop),
            tags=tuple(read_tags(tags_prop)),
            notes=read_notes(notes_prop),
            edited_at=str(row.get("last_edited_time") or ""),
        )

    async def _query_all_pages(self) -> list[Mapping[str, Any]]:
        url = f"{self._config.api_base_url.rstrip('/')}/databases/{self._config.database_id}/query"
        headers = {
            "Authorization": f"Bearer {self._config.api_key}",
            "Notion-Version": self._config.api_version,
            "Content-Type": "application/json",
        }
        timeout = aiohttp.ClientTimeout(total=self._config.timeout_seconds)
        results: list[Mapping[str, Any]] = []
        cursor: Optional[str] = None

        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                while True:
                    body: dict[str, Any] = {
                        "page_size": PAGE_SIZE,
                        "sorts": [{"timestamp": "last_edited_time", "direction": "descending"}],
                    }
                    if cursor:
                        body["start_cursor"] = cursor
                    async with session.post(url, headers=headers, json=body) as resp:
                        if resp.status != 200:
                            text = await resp.text()
                            raise DatasetUnavailableError(
                                "Failed to load Notion database.", details=f"HTTP {resp.status}: {text}"
                            )
                        page = await resp.json()
                    results.extend(page.get("results") or [])
                    cursor = page.get("next_cursor") if page.get("has_more") else None
                    if not cursor:
                        return results
        except asyncio.TimeoutError as e:
            raise DatasetUnavailableError(
                "Failed to load Notion database.",
                details=f"Notion request timed out after {self._config.timeout_seconds:g}s.",
            ) from e
        except aiohttp.ClientError as e:
            raise DatasetUnavailableError("Failed to load Notion database.", details=str(e)) from e
