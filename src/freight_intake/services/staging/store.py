"""In-memory record store for one staging session."""

from __future__ import annotations

from typing import Iterator, Optional

from ...models.domain import StagingRecord
from .errors import StagingRecordNotFound


class StagingStore:
    """Records keyed by staging id, iterated in manifest row order."""

    def __init__(self) -> None:
        self._records: dict[str, StagingRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, staging_id: object) -> bool:
        return staging_id in self._records

    def __iter__(self) -> Iterator[StagingRecord]:
        return iter(self.records())

    def records(self) -> list[StagingRecord]:
        return sorted(self._records.values(), key=lambda record: record.row_index)

    def get(self, staging_id: str) -> StagingRecord:
        try:
            return self._records[staging_id]
        except KeyError:
            raise StagingRecordNotFound(staging_id) from None

    def put(self, record: StagingRecord) -> StagingRecord:
        self._records[record.staging_id] = record
        return record

    def remove(self, staging_id: str) -> StagingRecord:
        record = self.get(staging_id)
        del self._records[staging_id]
        return record

    def by_row_index(self, row_index: int) -> Optional[StagingRecord]:
        for record in self._records.values():
            if record.row_index == row_index:
                return record
        return None

    def clear(self) -> None:
        self._records.clear()
