from __future__ import annotations

import gzip

import pytest
import requests

from shipline.common.errors import RetryableTransportError, TransportError
from shipline.common.http import HttpClient
from shipline.transport.buffer import TransportBuffer
from shipline.transport.elasticsearch import ElasticSearchTransport
from shipline.transport.http import HttpTransport, OutcomeKind


class FakeResponse:
    def __init__(self, status_code: int, text: str = "", reason: str = "OK"):
        self.status_code = status_code
        self.text = text
        self.reason = reason
        self.closed = False

    def close(self) -> None:
        self.closed = True


class ScriptedSession:
    """Plays back a list of responses or exceptions, one per request."""

    def __init__(self, script):
        self.script = list(script)
        self.calls: list[dict] = []
        self.responses: list[FakeResponse] = []

    def __call__(self, **kwargs):
        self.calls.append(kwargs)
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, Exception):
            raise step
        response = FakeResponse(*step)
        self.responses.append(response)
        return response


def _build(monkeypatch, script, cls=HttpTransport, **kwargs):
    client = HttpClient()
    session = ScriptedSession(script)
    monkeypatch.setattr(client.session, "request", session)
    sleeps: list[float] = []
    transport = cls(client, "http://sink.test/bulk", sleep=sleeps.append, **kwargs)
    return transport, session, sleeps


@pytest.mark.integration
@pytest.mark.parametrize("retries", [1, 3])
def test_succeeds_after_n_failures_with_growing_delays(monkeypatch, retries):
    script = [(500, "boom", "Internal Server Error")] * retries + [(200, "ok")]
    transport, session, sleeps = _build(monkeypatch, script, retries=retries, retry_delay_ms=50)

    outcome = transport.send_batch(b"payload")

    assert outcome.kind is OutcomeKind.SUCCESS
    assert outcome.attempts == retries + 1
    assert len(session.calls) == retries + 1
    assert len(sleeps) == retries
    assert sleeps[0] == pytest.approx(0.05)
    assert all(later >= earlier for earlier, later in zip(sleeps, sleeps[1:]))


@pytest.mark.integration
def test_exhaustion_raises_fatal_after_retries_plus_one_and_releases_every_response(monkeypatch):
    transport, session, sleeps = _build(
        monkeypatch,
        [(503, "busy", "Service Unavailable")],
        retries=2,
        retry_delay_ms=10,
    )

    with pytest.raises(TransportError) as exc_info:
        transport.send_batch(b"payload")

    err = exc_info.value
    assert not isinstance(err, RetryableTransportError)
    assert err.outcome.kind is OutcomeKind.FATAL_FAILURE
    assert err.outcome.attempts == 3
    assert err.outcome.status_code == 503
    assert isinstance(err.__cause__, RetryableTransportError)
    assert "Service Unavailable" in str(err)
    assert len(session.calls) == 3
    assert all(response.closed for response in session.responses)
    assert sleeps == pytest.approx([0.01, 0.02])


@pytest.mark.integration
def test_network_errors_are_retried(monkeypatch):
    transport, session, _ = _build(
        monkeypatch,
        [requests.exceptions.ConnectionError("refused"), (200, "ok")],
        retries=1,
        retry_delay_ms=1,
    )

    assert transport.send_batch(b"x").attempts == 2
    assert len(session.calls) == 2


@pytest.mark.integration
def test_zero_retries_means_single_attempt(monkeypatch):
    transport, session, sleeps = _build(monkeypatch, [(500, "", "Internal Server Error")], retries=0)

    with pytest.raises(TransportError):
        transport.send_batch(b"x")

    assert len(session.calls) == 1
    assert sleeps == []


@pytest.mark.integration
def test_unexpected_errors_abort_without_spending_retries(monkeypatch):
    class BrokenCheck(HttpTransport):
        def check_response(self, response, response_string):
            raise KeyError("bug in classifier")

    transport, session, sleeps = _build(monkeypatch, [(200, "ok")], cls=BrokenCheck, retries=5)

    with pytest.raises(TransportError) as exc_info:
        transport.send_batch(b"x")

    assert isinstance(exc_info.value.__cause__, KeyError)
    assert len(session.calls) == 1
    assert sleeps == []


@pytest.mark.integration
def test_buffer_payload_is_sent_gzipped_and_decompresses_identically(monkeypatch):
    transport, session, _ = _build(monkeypatch, [(200, "ok")], use_gzip=True)
    buffer = TransportBuffer()
    buffer.add(b'{"n":1}\n')
    buffer.add(b'{"n":2}\n')

    transport.send_batch(buffer)

    assert gzip.decompress(session.calls[0]["data"]) == buffer.payload()


@pytest.mark.integration
def test_elasticsearch_routing_is_sent_as_query_parameter(monkeypatch):
    body = '{"errors": false, "items": []}'
    transport, session, _ = _build(
        monkeypatch,
        [(200, body)],
        cls=ElasticSearchTransport,
        use_partitions_for_routing=True,
    )

    transport.send_batch(b"x", {"part1": "foo", "part2": "bar"})

    assert session.calls[0]["params"] == {"routing": "part1=foo/part2=bar"}
    assert session.calls[0]["headers"]["Content-Type"] == "application/json"


@pytest.mark.integration
def test_elasticsearch_item_errors_are_retried(monkeypatch):
    failed = '{"errors": true, "items": [{"index": {"error": {"type": "es_rejected_execution_exception", "reason": "queue full"}}}]}'
    transport, session, _ = _build(
        monkeypatch,
        [(200, failed), (200, '{"errors": false}')],
        cls=ElasticSearchTransport,
        retries=1,
        retry_delay_ms=1,
    )

    assert transport.send_batch(b"x").ok
    assert len(session.calls) == 2
