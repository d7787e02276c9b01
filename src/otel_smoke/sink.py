"""HTTP client for the fake telemetry backend that buffers exported requests."""

import logging
import time
from typing import Callable, Optional, Protocol

import httpx

from otel_smoke.logging import log_event

logger = logging.getLogger(__name__)

GET_REQUESTS_PATH = "/get-requests"
CLEAR_REQUESTS_PATH = "/clear-requests"
HEALTH_PATH = "/health"

DEFAULT_TIMEOUT_SECONDS = 10.0


class TelemetrySink(Protocol):
    """Anything exposing the buffered export requests as an idempotent read."""

    def get_requests(self) -> bytes:
        """Return the raw body listing every buffered export request."""
        ...


class FakeBackendClient:
    """Sync client for the fake backend's request buffer."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=timeout)
        self._timeout = timeout

    def get_requests(self) -> bytes:
        """Raw body of the buffered requests, whatever the status.

        A backend that is still starting may answer with an error page; the
        poller treats that body like any other undecodable reply.
        """
        response = self._client.get(f"{self.base_url}{GET_REQUESTS_PATH}", timeout=self._timeout)
        if not response.is_success:
            logger.warning(
                "Backend %s returned status %d for %s",
                self.base_url,
                response.status_code,
                GET_REQUESTS_PATH,
            )
        return response.content

    def clear_requests(self) -> None:
        response = self._client.get(
            f"{self.base_url}{CLEAR_REQUESTS_PATH}", timeout=self._timeout
        )
        response.raise_for_status()
        logger.debug("Cleared buffered export requests at %s", self.base_url)

    def is_healthy(self) -> bool:
        try:
            response = self._client.get(f"{self.base_url}{HEALTH_PATH}", timeout=self._timeout)
        except httpx.TransportError as e:
            logger.debug("Health check against %s failed: %s", self.base_url, e)
            return False
        return response.is_success

    def wait_until_healthy(
        self,
        max_attempts: int = 60,
        interval: float = 1.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> bool:
        """Poll the health endpoint until it succeeds or attempts run out."""
        for attempt in range(1, max_attempts + 1):
            if self.is_healthy():
                return True
            if attempt < max_attempts:
                sleep(interval)
        log_event(
            "backend_unhealthy",
            level=logging.WARNING,
            base_url=self.base_url,
            attempts=max_attempts,
        )
        return False

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "FakeBackendClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
