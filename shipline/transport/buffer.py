"""Bounded accumulator for serialized events."""

from __future__ import annotations

from shipline.common.constants import DEFAULT_MAX_BATCH_SIZE, DEFAULT_MAX_BUFFER_BYTES
from shipline.common.errors import BufferFullError


class TransportBuffer:
    def __init__(
        self,
        max_records: int = DEFAULT_MAX_BATCH_SIZE,
        max_bytes: int = DEFAULT_MAX_BUFFER_BYTES,
    ) -> None:
        self.max_records = max_records
        self.max_bytes = max_bytes
        self._records: list[bytes] = []
        self.size_bytes = 0

    def __len__(self) -> int:
        return len(self._records)

    def is_empty(self) -> bool:
        return not self._records

    def can_accept(self, record: bytes) -> bool:
        if len(self._records) >= self.max_records:
            return False
        return self.size_bytes + len(record) <= self.max_bytes

    def add(self, record: bytes) -> None:
        if not self.can_accept(record):
            raise BufferFullError(
                f"buffer full at {len(self._records)} records / {self.size_bytes} bytes, "
                f"cannot add {len(record)} bytes"
            )
        self._records.append(record)
        self.size_bytes += len(record)

    def payload(self) -> bytes:
        return b"".join(self._records)

    def clear(self) -> None:
        self._records.clear()
        self.size_bytes = 0
