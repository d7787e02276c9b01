from typing import Dict, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Configuration settings for the smoke test harness."""

    BACKEND_URL: str = "http://localhost:8080"
    APP_URL: str = "http://localhost:8081"

    TRIGGER_PATH: str = "/hello"
    EXPECTED_BODY: str = "Hi there!"

    POLL_MAX_ATTEMPTS: int = 20
    POLL_INTERVAL_MS: int = 100
    HTTP_TIMEOUT_SECONDS: float = 10.0

    AGENT_PATH: Optional[str] = None
    AGENT_CONTAINER_PATH: str = "/opentelemetry-javaagent-all.jar"

    # Exporter tuning applied to the instrumented application
    BSP_MAX_EXPORT_BATCH: int = 1
    BSP_SCHEDULE_DELAY_MS: int = 10
    OTLP_ENDPOINT: str = "collector:55680"

    BACKEND_IMAGE: str = (
        "docker.pkg.github.com/anuraaga/aws-opentelemetry-java-instrumentation/"
        "smoke-tests-fake-backend:master"
    )
    COLLECTOR_IMAGE: str = "otel/opentelemetry-collector-dev"
    APPLICATION_IMAGE: str = (
        "docker.pkg.github.com/anuraaga/aws-opentelemetry-java-instrumentation/"
        "smoke-tests-spring-boot:master"
    )

    @model_validator(mode="after")
    def normalize_urls(self) -> "Settings":
        """Strip trailing slashes so paths can be appended directly."""
        self.BACKEND_URL = self.BACKEND_URL.rstrip("/")
        self.APP_URL = self.APP_URL.rstrip("/")
        if self.POLL_MAX_ATTEMPTS < 1:
            raise ValueError("POLL_MAX_ATTEMPTS must be at least 1")
        return self

    @property
    def poll_interval_seconds(self) -> float:
        return self.POLL_INTERVAL_MS / 1000.0

    def application_environment(self) -> Dict[str, str]:
        """Environment the instrumented application is started with."""
        return {
            "JAVA_TOOL_OPTIONS": f"-javaagent:{self.AGENT_CONTAINER_PATH}",
            "OTEL_BSP_MAX_EXPORT_BATCH": str(self.BSP_MAX_EXPORT_BATCH),
            "OTEL_BSP_SCHEDULE_DELAY": str(self.BSP_SCHEDULE_DELAY_MS),
            "OTEL_OTLP_ENDPOINT": self.OTLP_ENDPOINT,
        }

    class Config:
        """Pydantic config."""

        env_prefix = "SMOKE_"
        case_sensitive = True


settings = Settings()
