"""In-memory map from target id to the last observed status."""

from __future__ import annotations

import threading

from .models import StatusRecord


class StatusCache:
    """Holds only observed status. Scheduling metadata is kept by the reconciler.

    Records are immutable, so every write is a whole-record reference swap and
    readers never see a half-updated record.
    """

    def __init__(self):
        self._records: dict[str, StatusRecord] = {}
        self._lock = threading.Lock()

    def write(self, record: StatusRecord) -> None:
        with self._lock:
            self._records[record.id] = record

    def read_one(self, host_id: str) -> StatusRecord | None:
        return self._records.get(host_id)

    def read_all(self) -> dict[str, StatusRecord]:
        with self._lock:
            return dict(self._records)

    def remove(self, host_id: str) -> None:
        with self._lock:
            self._records.pop(host_id, None)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, host_id: object) -> bool:
        return host_id in self._records
