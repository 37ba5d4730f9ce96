from __future__ import annotations

import json
import logging
from pathlib import Path

from shop_haul.dataset.interfaces import DatasetSource
from shop_haul.dataset.models import DatasetResult, ShopRecord
from shop_haul.errors import DatasetUnavailableError

logger = logging.getLogger(__name__)


class JsonFileDatasetSource(DatasetSource):
    """
    Dataset source backed by a local JSON file.

    Accepts either a list of shop objects or a mapping with a "shops" list, using
    the same field names as the /api/shops response. Records without a URL are
    counted in total_rows but dropped from the listing.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    async def fetch_dataset(self) -> DatasetResult:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise DatasetUnavailableError("Dataset file not found.", details=str(self._path)) from e
        except (OSError, ValueError) as e:
            raise DatasetUnavailableError("Dataset file could not be read.", details=str(e)) from e

        rows = payload.get("shops", []) if isinstance(payload, dict) else payload
        if not isinstance(rows, list):
            raise DatasetUnavailableError("Dataset file has an unexpected shape.", details=str(self._path))

        records = [ShopRecord.from_payload(row) for row in rows if isinstance(row, dict)]
        items = [record for record in records if record.url]
        logger.debug("Dataset file loaded. path=%s rows=%d items=%d", self._path, len(records), len(items))
        return DatasetResult(items=items, total_rows=len(records), shops_with_url=len(items))
