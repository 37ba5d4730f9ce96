from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Mapping, Sequence

SnapshotSource = Literal["fresh", "inflight-joined", "refreshed", "stale-on-error"]


@dataclass(frozen=True, slots=True)
class ShopRecord:
    id: str
    title: str
    url: str
    category: str = ""
    tags: tuple[str, ...] = ()
    notes: str = ""
    edited_at: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "url": self.url,
            "category": self.category,
            "tags": list(self.tags),
            "notes": self.notes,
            "editedAt": self.edited_at,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> ShopRecord:
        tags = payload.get("tags") or ()
        if isinstance(tags, str):
            tags = [tags]
        return cls(
            id=str(payload.get("id") or ""),
            title=str(payload.get("title") or ""),
            url=str(payload.get("url") or ""),
            category=str(payload.get("category") or ""),
            tags=tuple(str(tag) for tag in tags),
            notes=str(payload.get("notes") or ""),
            edited_at=str(payload.get("editedAt") or payload.get("edited_at") or ""),
        )


@dataclass(frozen=True, slots=True)
class DatasetResult:
    items: Sequence[ShopRecord]
    total_rows: int
    shops_with_url: int


@dataclass(frozen=True, slots=True)
class DatasetSnapshot:
    result: DatasetResult
    fetched_at: datetime

    @property
    def items(self) -> Sequence[ShopRecord]:
        return self.result.items

