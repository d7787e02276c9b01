"""Decode sink responses into OTLP export requests and flatten their spans.

The sink returns a JSON array of ``ExportTraceServiceRequest`` messages encoded
with the protobuf JSON mapping. Payloads written by older OTLP versions (the
``instrumentationLibrarySpans`` era) and payloads that follow the OTLP/JSON
convention of hex-encoded ids are normalized before parsing.
"""

import base64
import json
import string
from typing import Any, Iterable, Union

from google.protobuf.json_format import ParseDict, ParseError
from opentelemetry.proto.collector.trace.v1.trace_service_pb2 import ExportTraceServiceRequest
from opentelemetry.proto.trace.v1.trace_pb2 import Span

from otel_smoke.errors import DecodeError

_LEGACY_SCOPE_SPANS_KEYS = ("instrumentationLibrarySpans", "instrumentation_library_spans")
_LEGACY_SCOPE_KEYS = ("instrumentationLibrary", "instrumentation_library")

# Hex length of each id field; base64 renditions of the same ids are shorter.
_ID_HEX_LENGTHS = {
    "traceId": 32,
    "trace_id": 32,
    "spanId": 16,
    "span_id": 16,
    "parentSpanId": 16,
    "parent_span_id": 16,
}

_LEGACY_SPAN_KINDS = {"UNSPECIFIED", "INTERNAL", "SERVER", "CLIENT", "PRODUCER", "CONSUMER"}

_HEX_DIGITS = frozenset(string.hexdigits)


def decode_export_requests(body: Union[bytes, str]) -> list[ExportTraceServiceRequest]:
    """Decode a sink response body into export requests.

    Raises:
        DecodeError: The body is not a JSON array of export request objects.
    """
    try:
        payload = json.loads(body)
    except ValueError as e:
        raise DecodeError(f"Invalid JSON body: {e}") from e

    if not isinstance(payload, list):
        raise DecodeError(f"Expected a JSON array, got {type(payload).__name__}")

    requests = []
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise DecodeError(
                f"Export request at index {index} is {type(item).__name__}, not an object"
            )
        request = ExportTraceServiceRequest()
        try:
            ParseDict(_normalize_request(item), request, ignore_unknown_fields=True)
        except (ParseError, TypeError) as e:
            raise DecodeError(f"Invalid export request at index {index}: {e}") from e
        requests.append(request)
    return requests


def flatten_spans(requests: Iterable[ExportTraceServiceRequest]) -> list[Span]:
    """Collect every span, in request -> resource -> scope -> span order."""
    return [
        span
        for request in requests
        for resource_spans in request.resource_spans
        for scope_spans in resource_spans.scope_spans
        for span in scope_spans.spans
    ]


def _normalize_request(request: dict) -> dict:
    resource_spans = request.get("resourceSpans", request.get("resource_spans"))
    if not isinstance(resource_spans, list):
        return request

    for rs in resource_spans:
        if not isinstance(rs, dict):
            continue
        for legacy_key in _LEGACY_SCOPE_SPANS_KEYS:
            legacy_groups = rs.pop(legacy_key, None)
            if legacy_groups is not None and "scopeSpans" not in rs and "scope_spans" not in rs:
                rs["scopeSpans"] = legacy_groups

        for ss in _as_list(rs.get("scopeSpans", rs.get("scope_spans"))):
            if not isinstance(ss, dict):
                continue
            for legacy_key in _LEGACY_SCOPE_KEYS:
                scope = ss.pop(legacy_key, None)
                if scope is not None and "scope" not in ss:
                    ss["scope"] = scope
            for span in _as_list(ss.get("spans")):
                if isinstance(span, dict):
                    _normalize_span(span)
    return request


def _normalize_span(span: dict) -> None:
    _normalize_ids(span)
    for link in _as_list(span.get("links")):
        if isinstance(link, dict):
            _normalize_ids(link)

    kind = span.get("kind")
    if isinstance(kind, str) and kind.upper() in _LEGACY_SPAN_KINDS:
        span["kind"] = f"SPAN_KIND_{kind.upper()}"


def _normalize_ids(message: dict) -> None:
    for key, hex_length in _ID_HEX_LENGTHS.items():
        value = message.get(key)
        if _is_hex_id(value, hex_length):
            message[key] = base64.b64encode(bytes.fromhex(value)).decode("ascii")


def _is_hex_id(value: Any, hex_length: int) -> bool:
    return isinstance(value, str) and len(value) == hex_length and set(value) <= _HEX_DIGITS


def _as_list(value: Any) -> list:
    # Non-list containers are left for ParseDict to reject.
    return value if isinstance(value, list) else []
