"""In-process fake telemetry backend."""
