import argparse
import logging
import sys
import time

import httpx
from dotenv import load_dotenv

from otel_smoke.config import Settings
from otel_smoke.errors import NoTracesObserved
from otel_smoke.scenario import run_scenario
from otel_smoke.sink import FakeBackendClient

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ASSERTION_FAILED = 1
EXIT_NO_TRACES = 2


def _verify(args: argparse.Namespace, settings: Settings) -> int:
    started_at = args.started_at if args.started_at is not None else int(time.time())
    app_url = (args.app_url or settings.APP_URL).rstrip("/")
    backend_url = args.backend_url or settings.BACKEND_URL
    max_attempts = (
        args.max_attempts if args.max_attempts is not None else settings.POLL_MAX_ATTEMPTS
    )
    interval_ms = args.interval_ms if args.interval_ms is not None else settings.POLL_INTERVAL_MS

    with httpx.Client(base_url=app_url, timeout=settings.HTTP_TIMEOUT_SECONDS) as app_client:
        with FakeBackendClient(backend_url, timeout=settings.HTTP_TIMEOUT_SECONDS) as sink:
            try:
                result = run_scenario(
                    app_client,
                    sink,
                    started_at=started_at,
                    path=args.path or settings.TRIGGER_PATH,
                    expected_body=(
                        args.expected_body
                        if args.expected_body is not None
                        else settings.EXPECTED_BODY
                    ),
                    max_attempts=max_attempts,
                    interval=interval_ms / 1000.0,
                )
            except NoTracesObserved as e:
                logger.error(str(e))
                return EXIT_NO_TRACES
            finally:
                if not args.no_clear:
                    sink.clear_requests()

    if result.passed:
        logger.info(f"Scenario passed with {len(result.spans)} exported span(s)")
        return EXIT_OK
    for failure in result.failures:
        logger.error(failure)
    return EXIT_ASSERTION_FAILED


def _serve_backend(args: argparse.Namespace) -> int:
    import uvicorn

    from otel_smoke.backend.app import app

    uvicorn.run(app, host=args.host, port=args.port)
    return EXIT_OK


def _print_env(settings: Settings) -> int:
    for key, value in settings.application_environment().items():
        print(f"{key}={value}")
    return EXIT_OK


def main(argv=None):
    """Run the smoke test CLI."""
    load_dotenv()

    parser = argparse.ArgumentParser(description="Trace export smoke test CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    verify_parser = subparsers.add_parser(
        "verify", help="Trigger the application and verify its exported trace"
    )
    verify_parser.add_argument("--app-url", help="Instrumented application base URL")
    verify_parser.add_argument("--backend-url", help="Fake backend base URL")
    verify_parser.add_argument("--path", help="Trigger path (default: /hello)")
    verify_parser.add_argument("--expected-body", help="Expected trigger response body")
    verify_parser.add_argument("--max-attempts", type=int, help="Poll attempts (default: 20)")
    verify_parser.add_argument("--interval-ms", type=int, help="Poll interval (default: 100)")
    verify_parser.add_argument(
        "--started-at",
        type=int,
        help="Epoch seconds every trace id must be newer than (default: now)",
    )
    verify_parser.add_argument(
        "--no-clear",
        action="store_true",
        help="Keep buffered export requests after the run",
    )

    backend_parser = subparsers.add_parser("backend", help="Serve the fake telemetry backend")
    backend_parser.add_argument("--host", default="0.0.0.0")
    backend_parser.add_argument("--port", type=int, default=8080)

    subparsers.add_parser("env", help="Print the instrumented application environment")

    args = parser.parse_args(argv)
    settings = Settings()

    if args.command == "verify":
        sys.exit(_verify(args, settings))
    elif args.command == "backend":
        sys.exit(_serve_backend(args))
    elif args.command == "env":
        sys.exit(_print_env(settings))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
