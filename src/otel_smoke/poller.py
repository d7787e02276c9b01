"""Bounded polling of a telemetry sink until exported spans show up.

Instrumented applications batch spans and flush them on a timer, so the
request that produced a trace can complete before the trace is exported.
The poller re-reads the sink on a fixed interval and stops at the first
attempt that yields any export request. It does not wait for a complete
set of spans.
"""

import logging
import time
from typing import Callable

from opentelemetry.proto.trace.v1.trace_pb2 import Span

from otel_smoke.errors import DecodeError, NoTracesObserved
from otel_smoke.logging import log_event
from otel_smoke.otlp.parser import decode_export_requests, flatten_spans
from otel_smoke.sink import TelemetrySink

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 20
DEFAULT_INTERVAL_SECONDS = 0.1


def fetch_spans(
    sink: TelemetrySink,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    interval: float = DEFAULT_INTERVAL_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> list[Span]:
    """Read the sink until it returns export requests and flatten their spans.

    Args:
        sink: Source of buffered export requests.
        max_attempts: Number of reads before giving up.
        interval: Seconds to wait between reads.
        sleep: Sleep function, replaceable in tests.

    Returns:
        Spans of the first non-empty read, in source order.

    Raises:
        NoTracesObserved: No read produced any export request.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        body = sink.get_requests()
        try:
            requests = decode_export_requests(body)
        except DecodeError as e:
            # Partial bodies are expected while the backend warms up.
            logger.warning("Error reading JSON response on attempt %d: %s", attempt, e)
            requests = []

        if requests:
            spans = flatten_spans(requests)
            log_event(
                "traces_observed",
                attempt=attempt,
                request_count=len(requests),
                span_count=len(spans),
            )
            return spans

        logger.debug("No export requests on attempt %d/%d", attempt, max_attempts)
        if attempt < max_attempts:
            sleep(interval)

    log_event(
        "poll_exhausted",
        level=logging.ERROR,
        attempts=max_attempts,
        interval_seconds=interval,
    )
    raise NoTracesObserved(max_attempts)
