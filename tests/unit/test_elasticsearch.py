from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone

from shipline.common.http import HttpClient
from shipline.transport.elasticsearch import (
    ElasticSearchSerializer,
    ElasticSearchTransport,
    build_routing_key,
    resolve_index_name,
)
from shipline.transport.http import OutcomeKind

FIXED_NOW = datetime(2026, 2, 17, 13, 5, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, status_code: int, text: str, reason: str = "OK"):
        self.status_code = status_code
        self.text = text
        self.reason = reason

    def close(self) -> None:
        return None


def test_routing_key_joins_partitions_in_order():
    assert build_routing_key({"part1": "foo", "part2": "bar"}) == "part1=foo/part2=bar"
    assert build_routing_key({}) == ""


def test_routing_param_attached_only_when_enabled():
    client = HttpClient()
    partitions = {"part1": "foo", "part2": "bar"}

    enabled = ElasticSearchTransport(client, "http://es:9200/_bulk", use_partitions_for_routing=True)
    disabled = ElasticSearchTransport(client, "http://es:9200/_bulk")

    assert enabled.request_params(partitions) == {"routing": "part1=foo/part2=bar"}
    assert disabled.request_params(partitions) is None
    assert enabled.request_params({}) is None


def test_resolve_index_name_with_and_without_time_bucket():
    assert resolve_index_name("logs", None, FIXED_NOW) == "logs"
    assert resolve_index_name("logs-", "%Y.%m.%d", FIXED_NOW) == "logs-2026.02.17"
    assert resolve_index_name("logs-", "%Y.%m.%d.%H", FIXED_NOW) == "logs-2026.02.17.13"


def test_serializer_writes_bulk_action_and_document():
    serializer = ElasticSearchSerializer(
        "logs-",
        document_type="event",
        index_time_format="%Y.%m",
        clock=lambda: FIXED_NOW,
    )

    action_line, document_line, trailing = serializer.serialize({"a": 1, "b": "x"}).decode("utf-8").split("\n")

    assert json.loads(action_line) == {"index": {"_index": "logs-2026.02", "_type": "event"}}
    assert json.loads(document_line) == {"a": 1, "b": "x"}
    assert trailing == ""


def test_serializer_hash_id_is_stable_content_hash():
    serializer = ElasticSearchSerializer("logs", use_hashid=True)

    first = serializer.serialize({"a": 1})
    second = serializer.serialize({"a": 1})
    action = json.loads(first.decode("utf-8").split("\n")[0])

    assert first == second
    assert action["index"]["_id"] == hashlib.sha1(b'{"a":1}').hexdigest()
    assert "_type" not in action["index"]


def test_serializer_leaves_id_to_server_by_default():
    action = json.loads(ElasticSearchSerializer("logs").serialize({"a": 1}).decode("utf-8").split("\n")[0])
    assert "_id" not in action["index"]


def test_bulk_response_without_errors_is_success():
    transport = ElasticSearchTransport(HttpClient(), "http://es:9200/_bulk")
    body = json.dumps({"took": 3, "errors": False, "items": []})
    assert transport.check_response(FakeResponse(200, body), body).ok


def test_bulk_response_with_item_errors_is_retryable():
    transport = ElasticSearchTransport(HttpClient(), "http://es:9200/_bulk")
    body = json.dumps(
        {
            "errors": True,
            "items": [
                {"index": {"status": 201}},
                {"index": {"status": 400, "error": {"type": "mapper_parsing_exception", "reason": "bad field"}}},
                {"index": {"status": 400, "error": {"type": "mapper_parsing_exception", "reason": "bad field"}}},
            ],
        }
    )

    outcome = transport.check_response(FakeResponse(200, body), body)

    assert outcome.kind is OutcomeKind.RETRYABLE_FAILURE
    assert "failure count is 2" in outcome.reason
    assert "mapper_parsing_exception: bad field" in outcome.reason


def test_bulk_response_not_json_is_retryable():
    transport = ElasticSearchTransport(HttpClient(), "http://es:9200/_bulk")
    assert transport.check_response(FakeResponse(200, "<html>"), "<html>").kind is OutcomeKind.RETRYABLE_FAILURE


def test_non_200_keeps_generic_classification():
    transport = ElasticSearchTransport(HttpClient(), "http://es:9200/_bulk")
    outcome = transport.check_response(FakeResponse(429, "slow down", reason="Too Many Requests"), "slow down")
    assert outcome.status_code == 429
    assert "Too Many Requests" in outcome.reason


def test_uncompressed_content_type_is_json():
    assert ElasticSearchTransport.uncompressed_content_type == "application/json"
