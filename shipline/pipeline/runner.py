"""Drive records through extract, transform, serialize and deliver.

Record-level failures (no match, bad number, oversize record) are counted and
never abort the batch. Transport failures mark the whole batch undelivered.
Records are buffered per partition set so each send carries one routing key.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from shipline.common.errors import BufferFullError, PipelineError, TransportError
from shipline.common.logging import log_event
from shipline.common.models import Deserializer, Operation, RawRecord, StructuredEvent
from shipline.transport.buffer import TransportBuffer
from shipline.transport.http import HttpTransport

logger = logging.getLogger(__name__)

PartitionKey = tuple[tuple[str, str], ...]


@dataclass
class BatchReport:
    records_in: int = 0
    events_out: int = 0
    record_failures: Counter = field(default_factory=Counter)
    batches_sent: int = 0
    batches_failed: int = 0
    failure_reasons: list[str] = field(default_factory=list)

    @property
    def failed_records(self) -> int:
        return sum(self.record_failures.values())

    def to_dict(self) -> dict:
        return {
            "records_in": self.records_in,
            "events_out": self.events_out,
            "record_failures": dict(sorted(self.record_failures.items())),
            "batches_sent": self.batches_sent,
            "batches_failed": self.batches_failed,
            "failure_reasons": list(self.failure_reasons),
        }


def apply_operations(event: StructuredEvent, operations: Sequence[Operation]) -> list[StructuredEvent]:
    events = [event]
    for operation in operations:
        events = [out for current in events for out in operation.apply(current)]
    return events


class BatchRunner:
    def __init__(
        self,
        deserializer: Deserializer,
        operations: Sequence[Operation],
        serializer,
        transport: HttpTransport,
        *,
        max_batch_size: int,
        max_buffer_bytes: int,
    ) -> None:
        self.deserializer = deserializer
        self.operations = list(operations)
        self.serializer = serializer
        self.transport = transport
        self.max_batch_size = max_batch_size
        self.max_buffer_bytes = max_buffer_bytes

    def _new_buffer(self) -> TransportBuffer:
        return TransportBuffer(max_records=self.max_batch_size, max_bytes=self.max_buffer_bytes)

    def _flush(self, buffer: TransportBuffer, partitions: dict[str, str], report: BatchReport) -> None:
        if buffer.is_empty():
            return
        try:
            outcome = self.transport.send_batch(buffer, partitions)
        except TransportError as exc:
            report.batches_failed += 1
            report.failure_reasons.append(str(exc))
            log_event(
                logger,
                f"batch of {len(buffer)} events undelivered: {exc}",
                level=logging.ERROR,
                event="BATCH_FAIL",
                status="error",
                attempt=exc.outcome.attempts if exc.outcome else None,
                records_out=len(buffer),
                error_code=exc.error_code,
            )
        else:
            report.batches_sent += 1
            log_event(
                logger,
                f"batch of {len(buffer)} events delivered",
                event="BATCH_SENT",
                status="ok",
                attempt=outcome.attempts,
                records_out=len(buffer),
            )
        finally:
            buffer.clear()

    def _process_record(self, record: RawRecord) -> list[bytes]:
        event = self.deserializer.deserialize(record.text())
        return [self.serializer.serialize(out) for out in apply_operations(event, self.operations)]

    def run(self, records: Iterable[RawRecord]) -> BatchReport:
        report = BatchReport()
        buffers: dict[PartitionKey, TransportBuffer] = {}

        for record in records:
            report.records_in += 1
            try:
                serialized = self._process_record(record)
            except PipelineError as exc:
                report.record_failures[exc.error_code] += 1
                log_event(
                    logger,
                    f"record dropped: {exc}",
                    level=logging.DEBUG,
                    event="RECORD_FAIL",
                    status="error",
                    error_code=exc.error_code,
                )
                continue

            key: PartitionKey = tuple(record.partitions.items())
            buffer = buffers.setdefault(key, self._new_buffer())
            for payload in serialized:
                if not buffer.can_accept(payload):
                    self._flush(buffer, dict(key), report)
                if not buffer.can_accept(payload):
                    report.record_failures[BufferFullError.error_code] += 1
                    continue
                buffer.add(payload)
                report.events_out += 1

        for key, buffer in buffers.items():
            self._flush(buffer, dict(key), report)

        return report
