"""Predicates over flattened spans."""

import struct
from typing import Iterable, Union

from opentelemetry.proto.trace.v1.trace_pb2 import Span

SpanKindLike = Union[int, str]

_KIND_PREFIX = "SPAN_KIND_"


def resolve_span_kind(kind: SpanKindLike) -> int:
    """Map a kind name ("SERVER", "span_kind_server") or enum value to its enum value."""
    if isinstance(kind, int):
        if kind not in Span.SpanKind.values():
            raise ValueError(f"Unknown span kind value: {kind}")
        return kind

    name = kind.strip().upper()
    if not name.startswith(_KIND_PREFIX):
        name = _KIND_PREFIX + name
    try:
        return Span.SpanKind.Value(name)
    except ValueError:
        raise ValueError(f"Unknown span kind: {kind!r}") from None


def span_kind_name(kind: int) -> str:
    """Short kind name, e.g. SERVER for SPAN_KIND_SERVER."""
    try:
        return Span.SpanKind.Name(kind)[len(_KIND_PREFIX) :]
    except ValueError:
        return str(kind)


def exists_span_with_kind_and_name(spans: Iterable[Span], kind: SpanKindLike, name: str) -> bool:
    expected_kind = resolve_span_kind(kind)
    return any(span.kind == expected_kind and span.name == name for span in spans)


def trace_id_epoch_seconds(trace_id: bytes) -> int:
    """Decode the leading 4 bytes of a trace id as a big-endian unsigned int."""
    if len(trace_id) < 4:
        raise ValueError(f"Trace id too short to carry a timestamp: {len(trace_id)} bytes")
    return struct.unpack(">I", trace_id[:4])[0]


def stale_trace_id_spans(spans: Iterable[Span], threshold_epoch_seconds: int) -> list[Span]:
    """Spans whose trace id timestamp is at or before the threshold.

    A trace id too short to carry a timestamp cannot be fresh and is included.
    """
    return [
        span
        for span in spans
        if len(span.trace_id) < 4
        or trace_id_epoch_seconds(span.trace_id) <= threshold_epoch_seconds
    ]


def all_spans_have_fresh_trace_id(spans: Iterable[Span], threshold_epoch_seconds: int) -> bool:
    """True when every span's trace id was created strictly after the threshold."""
    return not stale_trace_id_spans(spans, threshold_epoch_seconds)
