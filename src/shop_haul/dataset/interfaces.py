from __future__ import annotations

from shop_haul.dataset.models import DatasetResult


class DatasetSource:
    async def fetch_dataset(self) -> DatasetResult:
        """
        Fetch the complete shop listing from the upstream source.

        Implementations raise DatasetUnavailableError (or any exception) on failure;
        the dataset cache decides whether a stale snapshot can be served instead.
        """
        raise NotImplementedError
