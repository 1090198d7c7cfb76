"""Event to bytes serializers used to fill transport buffers."""

from __future__ import annotations

import json

from shipline.common.models import StructuredEvent


def dumps_event(event: StructuredEvent) -> str:
    return json.dumps(event, ensure_ascii=False, separators=(",", ":"), default=str)


class JsonLineSerializer:
    def serialize(self, event: StructuredEvent) -> bytes:
        return (dumps_event(event) + "\n").encode("utf-8")
