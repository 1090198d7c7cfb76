"""Elasticsearch bulk transport.

Adds destination addressing on top of :class:`HttpTransport`:

- index names, optionally suffixed with a UTC time bucket (``index_time_format``
  uses ``strftime`` syntax, e.g. ``-%Y.%m.%d``);
- document ids, either left to the server or a SHA-1 of the document body;
- routing keys built from partition metadata, ``part1=foo/part2=bar``, sent as
  the ``routing`` query parameter so a single source partition lands on a
  single shard. Pair it with a low-cardinality secondary partition (such as a
  5 minute bucket) to avoid hot spots;
- bulk response checking, since Elasticsearch answers 200 even when items fail.
"""

from __future__ import annotations

import hashlib
import json
from datetime import datetime
from typing import Any, Callable, Mapping

import requests

from shipline.common.models import StructuredEvent
from shipline.common.time_utils import format_time_bucket, utc_now
from shipline.transport.http import DeliveryOutcome, HttpTransport
from shipline.transport.serializer import dumps_event


def build_routing_key(partitions: Mapping[str, str]) -> str:
    return "/".join(f"{key}={value}" for key, value in partitions.items())


def resolve_index_name(index: str, index_time_format: str | None, now: datetime | None = None) -> str:
    if not index_time_format:
        return index
    return index + format_time_bucket(index_time_format, now)


class ElasticSearchSerializer:
    def __init__(
        self,
        index: str,
        *,
        document_type: str | None = None,
        index_time_format: str | None = None,
        use_hashid: bool = False,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.index = index
        self.document_type = document_type
        self.index_time_format = index_time_format
        self.use_hashid = use_hashid
        self.clock = clock

    def serialize(self, event: StructuredEvent) -> bytes:
        document = dumps_event(event)
        meta: dict[str, str] = {"_index": resolve_index_name(self.index, self.index_time_format, self.clock())}
        if self.document_type:
            meta["_type"] = self.document_type
        if self.use_hashid:
            meta["_id"] = hashlib.sha1(document.encode("utf-8")).hexdigest()
        action = json.dumps({"index": meta}, separators=(",", ":"))
        return f"{action}\n{document}\n".encode("utf-8")


def _item_failures(payload: dict) -> list[str]:
    reasons: list[str] = []
    for item in payload.get("items") or []:
        for result in item.values():
            error = result.get("error") if isinstance(result, dict) else None
            if not error:
                continue
            if isinstance(error, dict):
                reasons.append(f"{error.get('type', 'unknown')}: {error.get('reason', '')}".strip())
            else:
                reasons.append(str(error))
    return reasons


class ElasticSearchTransport(HttpTransport):
    uncompressed_content_type = "application/json"

    def __init__(self, *args: Any, use_partitions_for_routing: bool = False, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.use_partitions_for_routing = use_partitions_for_routing

    def request_params(self, partitions: Mapping[str, str] | None) -> dict[str, Any] | None:
        if not self.use_partitions_for_routing or not partitions:
            return None
        return {"routing": build_routing_key(partitions)}

    def check_response(self, response: requests.Response, response_string: str) -> DeliveryOutcome:
        outcome = super().check_response(response, response_string)
        if not outcome.ok:
            return outcome

        try:
            payload = json.loads(response_string)
        except ValueError:
            return DeliveryOutcome.retryable(
                f'es call failed because response was not json "{response_string[:200]}"',
                status_code=response.status_code,
            )

        if not isinstance(payload, dict) or not payload.get("errors"):
            return outcome

        failures = _item_failures(payload)
        distinct = sorted(set(failures))
        return DeliveryOutcome.retryable(
            f"es index failure count is {len(failures)} -- {'; '.join(distinct)}",
            status_code=response.status_code,
        )
