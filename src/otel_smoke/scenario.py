"""Smoke scenario: hit the instrumented application and verify its exported trace."""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Sequence

import httpx
from opentelemetry.proto.trace.v1.trace_pb2 import Span

from otel_smoke.assertions import (
    exists_span_with_kind_and_name,
    span_kind_name,
    stale_trace_id_spans,
    trace_id_epoch_seconds,
)
from otel_smoke.logging import log_event
from otel_smoke.poller import DEFAULT_INTERVAL_SECONDS, DEFAULT_MAX_ATTEMPTS, fetch_spans
from otel_smoke.sink import TelemetrySink

logger = logging.getLogger(__name__)

DEFAULT_TRIGGER_PATH = "/hello"
DEFAULT_EXPECTED_BODY = "Hi there!"


@dataclass(frozen=True)
class SpanExpectation:
    """A span that must be present among the exported spans."""

    kind: str
    name: str

    def describe(self) -> str:
        return f"{self.kind} span named {self.name!r}"


HELLO_SPAN_EXPECTATIONS = (
    SpanExpectation(kind="SERVER", name="/hello"),
    SpanExpectation(kind="INTERNAL", name="AppController.hello"),
)


@dataclass
class ScenarioResult:
    """Outcome of one scenario run; every failed expectation is listed separately."""

    status_code: int
    body: str
    spans: list[Span] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.failures

    def raise_for_failures(self) -> None:
        if self.failures:
            details = "\n".join(f"  - {failure}" for failure in self.failures)
            raise AssertionError(f"{len(self.failures)} expectation(s) failed:\n{details}")


def run_scenario(
    app_client: httpx.Client,
    sink: TelemetrySink,
    *,
    started_at: int,
    path: str = DEFAULT_TRIGGER_PATH,
    expected_body: str = DEFAULT_EXPECTED_BODY,
    expectations: Sequence[SpanExpectation] = HELLO_SPAN_EXPECTATIONS,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    interval: float = DEFAULT_INTERVAL_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> ScenarioResult:
    """Trigger the application and check the spans it exported.

    ``app_client`` carries the application base URL; ``path`` is requested on it.
    ``started_at`` is the epoch second recorded before the application could
    have produced the trace; every exported trace id must be newer.
    ``NoTracesObserved`` from the poller propagates and no span assertions run.
    """
    response = app_client.get(path)
    result = ScenarioResult(status_code=response.status_code, body=response.text)

    if not response.is_success:
        result.failures.append(f"GET {path} returned status {response.status_code}")
    if response.text != expected_body:
        result.failures.append(
            f"GET {path} returned body {response.text!r}, expected {expected_body!r}"
        )

    result.spans = fetch_spans(sink, max_attempts=max_attempts, interval=interval, sleep=sleep)

    for expectation in expectations:
        if not exists_span_with_kind_and_name(result.spans, expectation.kind, expectation.name):
            seen = ", ".join(f"{span_kind_name(s.kind)}/{s.name}" for s in result.spans)
            result.failures.append(f"No {expectation.describe()} among exported spans: [{seen}]")

    for span in stale_trace_id_spans(result.spans, started_at):
        if len(span.trace_id) < 4:
            result.failures.append(
                f"Span {span.name!r} has trace id {span.trace_id.hex()!r} with no timestamp"
            )
            continue
        result.failures.append(
            f"Span {span.name!r} has trace id {span.trace_id.hex()} created at "
            f"{trace_id_epoch_seconds(span.trace_id)}, not after {started_at}"
        )

    log_event(
        "scenario_finished",
        level=logging.INFO if result.passed else logging.WARNING,
        path=path,
        status_code=result.status_code,
        span_count=len(result.spans),
        failure_count=len(result.failures),
    )
    return result
