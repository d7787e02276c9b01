"""OTLP export request decoding."""

from otel_smoke.otlp.parser import decode_export_requests, flatten_spans

__all__ = ["decode_export_requests", "flatten_spans"]
