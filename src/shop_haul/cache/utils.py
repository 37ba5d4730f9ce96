from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from urllib.parse import urlsplit


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_rfc3339(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_rfc3339(value: str) -> datetime:
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def cache_key_for_url(version: str, url: str) -> str:
    """Derive the content-addressed key for a (cache version, target URL) pair."""
    return hashlib.sha256(f"{version}:{url}".encode("utf-8")).hexdigest()


def is_image_content_type(content_type: str | None) -> bool:
    return bool(content_type) and str(content_type).strip().lower().startswith("image/")


def is_web_url(value: str | None) -> bool:
    if not value:
        return False
    try:
        parsed = urlsplit(value)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)
