"""Builders for OTLP export requests used across smoke harness tests."""

import json
import struct

from google.protobuf.json_format import MessageToDict
from opentelemetry.proto.collector.trace.v1.trace_service_pb2 import ExportTraceServiceRequest
from opentelemetry.proto.trace.v1.trace_pb2 import Span

TEST_START_SECS = 1_700_000_000


def trace_id_at(epoch_seconds: int, suffix: bytes = b"\x00" * 11 + b"\x01") -> bytes:
    """16-byte trace id whose first four bytes encode the given epoch second."""
    return struct.pack(">I", epoch_seconds) + suffix


def make_span(name: str, kind: int, trace_id: bytes = None) -> Span:
    span = Span(name=name, kind=kind)
    span.trace_id = trace_id if trace_id is not None else trace_id_at(TEST_START_SECS + 5)
    span.span_id = b"\x00\x00\x00\x00\x00\x00\x00\x01"
    return span


def make_request(*resource_groups) -> ExportTraceServiceRequest:
    """Build a request from nested lists: resource groups -> scope groups -> spans."""
    request = ExportTraceServiceRequest()
    for scope_groups in resource_groups:
        rs = request.resource_spans.add()
        rs.resource.attributes.add(key="service.name").value.string_value = "smoke-app"
        for spans in scope_groups:
            ss = rs.scope_spans.add()
            ss.scope.name = "io.opentelemetry.smoke"
            ss.spans.extend(spans)
    return request


def encode_requests(requests) -> bytes:
    """Encode requests the way the fake backend serves them."""
    return json.dumps([MessageToDict(r) for r in requests]).encode("utf-8")


def hello_request(epoch_seconds: int = TEST_START_SECS + 5) -> ExportTraceServiceRequest:
    """The request an instrumented /hello call exports: a server span and a controller span."""
    trace_id = trace_id_at(epoch_seconds)
    return make_request(
        [
            [
                make_span("/hello", Span.SPAN_KIND_SERVER, trace_id),
                make_span("AppController.hello", Span.SPAN_KIND_INTERNAL, trace_id),
            ]
        ]
    )


class ScriptedSink:
    """Sink returning one scripted body per read; the last body repeats."""

    def __init__(self, bodies):
        self._bodies = list(bodies)
        self.reads = 0

    def get_requests(self) -> bytes:
        body = self._bodies[min(self.reads, len(self._bodies) - 1)]
        self.reads += 1
        return body
