"""Regex deserializer: one raw line in, one typed field mapping out.

The whole line must match the pattern. Capture group ``i`` (1-based) is bound
to the field at list position ``i - 1``. Extra groups are ignored and fields
without a group are skipped, so patterns and field lists can evolve
independently.

Fields are coerced in positional order and the first field that fails raises
:class:`CoercionError` with that field's name; no partial event is returned.
"""

from __future__ import annotations

import re
from typing import Sequence

from shipline.common.errors import CoercionError, ConfigError, DeserializationError
from shipline.common.models import FieldSpec, FieldType, RegexDeserializerConfig, StructuredEvent

_INT_RE = re.compile(r"[+-]?\d+")
_HEX_RE = re.compile(r"[+-]?0[xX][0-9a-fA-F]+")
_FLOAT_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def parse_boolean(text: str) -> bool:
    # Anything other than "true" (any case) is False, never an error.
    return text.lower() == "true"


def parse_number(text: str) -> int | float:
    """Parse ``text`` as an int when it has no fraction or exponent, else a float.

    Accepts hex ints (``0x1F``) and a trailing type suffix (``10L``, ``1.5f``,
    ``2d``). Raises ValueError for anything else.
    """
    candidate = text.strip()
    if _HEX_RE.fullmatch(candidate):
        return int(candidate, 16)

    if candidate[-1:] in ("l", "L") and _INT_RE.fullmatch(candidate[:-1]):
        return int(candidate[:-1])
    if candidate[-1:] in ("f", "F", "d", "D") and _FLOAT_RE.fullmatch(candidate[:-1]):
        return float(candidate[:-1])

    if _INT_RE.fullmatch(candidate):
        return int(candidate)
    if _FLOAT_RE.fullmatch(candidate):
        return float(candidate)

    raise ValueError(f"{text!r} is not a valid number")


def coerce(text: str, field_type: FieldType, *, field: str | None = None) -> bool | int | float | str:
    if field_type is FieldType.BOOLEAN:
        return parse_boolean(text)
    if field_type is FieldType.NUMBER:
        try:
            return parse_number(text)
        except ValueError as exc:
            raise CoercionError(f"field {field!r}: {exc}", field=field) from exc
    return text


class RegexDeserializer:
    def __init__(self, pattern: re.Pattern | str, fields: Sequence[FieldSpec]) -> None:
        self.pattern = re.compile(pattern) if isinstance(pattern, str) else pattern
        self.fields = tuple(fields)
        for position, spec in enumerate(self.fields):
            if spec.index is not None and spec.index != position:
                raise ConfigError(f"field {spec.name!r} declares index {spec.index} but is at position {position}")

    @classmethod
    def from_config(cls, config: RegexDeserializerConfig) -> "RegexDeserializer":
        return cls(config.pattern, config.fields)

    def deserialize(self, raw: str) -> StructuredEvent:
        match = self.pattern.fullmatch(raw)
        if match is None:
            raise DeserializationError("raw event does not match pattern")

        groups = match.groups()
        event: StructuredEvent = {}
        for spec, value in zip(self.fields, groups):
            if value is None:
                continue
            event[spec.name] = coerce(value, spec.type, field=spec.name)
        return event
