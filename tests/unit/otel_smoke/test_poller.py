"""Unit tests for bounded sink polling."""

import logging

import httpx
import pytest
from opentelemetry.proto.trace.v1.trace_pb2 import Span

from otel_smoke.errors import NoTracesObserved
from otel_smoke.poller import fetch_spans
from otel_smoke.sink import FakeBackendClient
from tests._support.otlp_builders import (
    ScriptedSink,
    encode_requests,
    hello_request,
    make_request,
    make_span,
)


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


def test_returns_spans_from_first_non_empty_attempt():
    """Three empty reads then data: four reads, spans of the fourth."""
    sink = ScriptedSink([b"[]", b"[]", b"[]", encode_requests([hello_request()])])
    sleep = RecordingSleep()

    spans = fetch_spans(sink, max_attempts=20, interval=0.1, sleep=sleep)

    assert sink.reads == 4
    assert sleep.calls == [0.1, 0.1, 0.1]
    assert [(s.kind, s.name) for s in spans] == [
        (Span.SPAN_KIND_SERVER, "/hello"),
        (Span.SPAN_KIND_INTERNAL, "AppController.hello"),
    ]


def test_stops_at_first_data_without_waiting_for_more():
    """A partial batch ends polling even if more spans would arrive later."""
    partial = make_request([[make_span("/hello", Span.SPAN_KIND_SERVER)]])
    sink = ScriptedSink([encode_requests([partial]), encode_requests([hello_request()])])

    spans = fetch_spans(sink, sleep=RecordingSleep())

    assert sink.reads == 1
    assert [s.name for s in spans] == ["/hello"]


def test_exhaustion_raises_no_traces_observed():
    sink = ScriptedSink([b"[]"])
    sleep = RecordingSleep()

    with pytest.raises(NoTracesObserved) as exc_info:
        fetch_spans(sink, max_attempts=20, interval=0.1, sleep=sleep)

    assert sink.reads == 20
    assert len(sleep.calls) == 19
    assert exc_info.value.attempts == 20
    assert "20 attempts" in str(exc_info.value)


def test_decode_errors_are_retried(caplog):
    """Malformed bodies count as empty attempts and are logged."""
    sink = ScriptedSink([b"[{", b"", encode_requests([hello_request()])])

    with caplog.at_level(logging.WARNING, logger="otel_smoke.poller"):
        spans = fetch_spans(sink, sleep=RecordingSleep())

    assert sink.reads == 3
    assert len(spans) == 2
    assert sum("Error reading JSON response" in r.message for r in caplog.records) == 2


def test_scalar_nested_containers_are_retried():
    """A span list sent as a scalar is a malformed body, not a crash."""
    sink = ScriptedSink(
        [
            b'[{"resourceSpans": [{"scopeSpans": [{"spans": 7}]}]}]',
            encode_requests([hello_request()]),
        ]
    )

    spans = fetch_spans(sink, sleep=RecordingSleep())

    assert sink.reads == 2
    assert [s.name for s in spans] == ["/hello", "AppController.hello"]


def test_backend_error_status_is_retried():
    """A backend still warming up answers 503 before serving exports."""
    replies = iter(
        [
            httpx.Response(503, text="warming up"),
            httpx.Response(200, content=encode_requests([hello_request()])),
        ]
    )
    http_client = httpx.Client(transport=httpx.MockTransport(lambda request: next(replies)))
    sleep = RecordingSleep()

    with FakeBackendClient("http://backend:8080", client=http_client) as sink:
        spans = fetch_spans(sink, sleep=sleep)

    assert len(spans) == 2
    assert sleep.calls == [0.1]


def test_only_decode_errors_exhaust_to_no_traces_observed():
    sink = ScriptedSink([b"<html>"])

    with pytest.raises(NoTracesObserved):
        fetch_spans(sink, max_attempts=3, sleep=RecordingSleep())

    assert sink.reads == 3


def test_request_without_spans_still_ends_polling():
    """Any export request counts as data, even one carrying no spans."""
    sink = ScriptedSink([b"[{}]", encode_requests([hello_request()])])

    assert fetch_spans(sink, sleep=RecordingSleep()) == []
    assert sink.reads == 1


def test_sink_errors_propagate():
    class BrokenSink:
        def get_requests(self):
            raise ConnectionError("backend down")

    with pytest.raises(ConnectionError):
        fetch_spans(BrokenSink(), sleep=RecordingSleep())


def test_rejects_non_positive_attempts():
    with pytest.raises(ValueError):
        fetch_spans(ScriptedSink([b"[]"]), max_attempts=0)
