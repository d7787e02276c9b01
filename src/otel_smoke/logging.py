import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

logger = logging.getLogger("otel_smoke.events")

DEFAULT_COMPONENT = "harness"


def log_event(
    event_name: str, level: int = logging.INFO, component: str = DEFAULT_COMPONENT, **kwargs: Any
):
    """
    Emit one JSON line describing a harness or fake-backend event.

    Args:
        event_name: Event name (e.g., 'traces_observed', 'poll_exhausted').
        level: Logging level (default INFO; poll exhaustion logs at ERROR).
        component: Emitting side, 'harness' for the poller/scenario and
            'backend' for the fake telemetry backend.
        **kwargs: Context such as attempt counts or span counts.
    """
    payload: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "component": component,
        "event": event_name,
        **kwargs,
    }

    try:
        msg = json.dumps(payload)
    except (TypeError, ValueError):
        # Context values are not always JSON-safe (e.g. protobuf messages).
        msg = json.dumps(payload, default=repr)

    logger.log(level, msg)
