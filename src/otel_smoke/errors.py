"""Error types raised by the trace verification harness."""


class SmokeTestError(Exception):
    """Base class for harness errors."""


class DecodeError(SmokeTestError, ValueError):
    """A sink response body could not be decoded into export requests."""


class NoTracesObserved(SmokeTestError):
    """The sink never returned exported traces within the attempt budget."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"No traces after {attempts} attempts.")
