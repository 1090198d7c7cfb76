"""Re-root an event at a nested object, dropping its siblings."""

from __future__ import annotations

import re
from typing import Iterator

from shipline.common.errors import ConfigError
from shipline.common.models import RootNodeOperationConfig, StructuredEvent

_SEGMENT_RE = re.compile(r"\.([^.\[\]]+)|\[(\d+)\]|\['([^']+)'\]")
_MISSING = object()


def parse_path(path: str) -> tuple[str | int, ...]:
    """Parse a JSONPath subset: ``$.a.b[0]['c d']``. The leading ``$`` is optional."""
    text = path.strip()
    if text.startswith("$"):
        text = text[1:]
    elif text and not text.startswith((".", "[")):
        text = "." + text

    segments: list[str | int] = []
    pos = 0
    while pos < len(text):
        match = _SEGMENT_RE.match(text, pos)
        if match is None:
            raise ConfigError(f"Invalid root path {path!r} at position {pos}")
        key, index, quoted = match.groups()
        if index is not None:
            segments.append(int(index))
        else:
            segments.append(key if key is not None else quoted)
        pos = match.end()
    return tuple(segments)


def resolve(node: object, segments: tuple[str | int, ...]) -> object:
    for segment in segments:
        if isinstance(segment, int):
            if not isinstance(node, list) or segment >= len(node):
                return _MISSING
            node = node[segment]
        else:
            if not isinstance(node, dict) or segment not in node:
                return _MISSING
            node = node[segment]
    return node


class RootNodeOperation:
    def __init__(self, root_path: str) -> None:
        self.root_path = root_path
        self.segments = parse_path(root_path)

    @classmethod
    def from_config(cls, config: RootNodeOperationConfig) -> "RootNodeOperation":
        return cls(config.root_path)

    def apply(self, event: StructuredEvent) -> Iterator[StructuredEvent]:
        node = resolve(event, self.segments)
        if isinstance(node, dict):
            yield dict(node)
        else:
            # Unresolvable paths pass the event through untouched.
            yield event
