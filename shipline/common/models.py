"""Data models used across the pipeline."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterator, Protocol

from shipline.common.errors import DeserializationError
from shipline.common.time_utils import utc_now

StructuredEvent = dict[str, Any]


@dataclass(frozen=True)
class RawRecord:
    payload: str | bytes
    partitions: dict[str, str] = field(default_factory=dict)
    source: str | None = None
    arrival_time: datetime = field(default_factory=utc_now)

    def text(self) -> str:
        if isinstance(self.payload, str):
            return self.payload
        try:
            return self.payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DeserializationError(f"raw event is not valid utf-8: {exc.reason} at byte {exc.start}") from exc


class FieldType(str, Enum):
    BOOLEAN = "BOOLEAN"
    NUMBER = "NUMBER"
    STRING = "STRING"


@dataclass(frozen=True)
class FieldSpec:
    name: str
    type: FieldType = FieldType.STRING
    index: int | None = None


@dataclass(frozen=True)
class RegexDeserializerConfig:
    pattern: re.Pattern
    fields: tuple[FieldSpec, ...]


@dataclass(frozen=True)
class RootNodeOperationConfig:
    root_path: str


class Deserializer(Protocol):
    def deserialize(self, raw: str) -> StructuredEvent: ...


class Operation(Protocol):
    def apply(self, event: StructuredEvent) -> Iterator[StructuredEvent]: ...
