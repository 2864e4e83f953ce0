"""Command line entry point.

Usage:
    cenc-encode                 # build, start and poll one encoding
    cenc-encode run --no-start  # only create the encoding and its resources
    cenc-encode run --serve     # also expose the status server during and after the run
    cenc-encode serve           # status server only

Exit codes:
    0  success
    1  the run failed (remote call, key delivery, encoding failure, timeout)
    2  invalid configuration
"""

import argparse
import sys
import threading
from typing import Sequence

from aws_lambda_powertools import Logger

from .encoding.client import create_encoding_client
from .encoding.orchestrator import EncodingOrchestrator
from .key_delivery.client import create_key_delivery_client
from .shared.config import Settings, get_settings
from .shared.exceptions import ConfigurationError, EncodingPipelineError
from .status_server.app import create_app, serve
from .status_server.state import RunStatusTracker

logger = Logger(service="cenc-encoder")

EXIT_OK = 0
EXIT_RUN_FAILED = 1
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cenc-encode",
        description="Create and run a CENC DRM protected encoding",
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Run one encoding (default)")
    run_parser.add_argument(
        "--no-start",
        action="store_true",
        help="Create all resources but do not start the encoding",
    )
    run_parser.add_argument(
        "--serve",
        action="store_true",
        help="Serve the status endpoint during the run and keep serving afterwards",
    )

    subparsers.add_parser("serve", help="Only run the status server")
    return parser


def run_encoding(settings: Settings, tracker: RunStatusTracker | None = None) -> int:
    """Run one encoding and map the outcome to an exit code."""
    key_fetcher = create_key_delivery_client(settings) if settings.uses_key_delivery else None
    orchestrator = EncodingOrchestrator(
        client=create_encoding_client(settings),
        settings=settings,
        key_fetcher=key_fetcher,
        tracker=tracker,
    )

    try:
        result = orchestrator.run()
    except EncodingPipelineError as e:
        logger.error("Encoding run failed", extra=e.to_dict())
        return EXIT_RUN_FAILED

    logger.info(
        "Encoding run complete",
        extra={
            "encoding_id": result.encoding_id,
            "status": result.status.value,
            "started": result.started,
            "duration_seconds": result.duration_seconds,
        },
    )
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    command = args.command or "run"

    try:
        settings = get_settings()
    except ConfigurationError as e:
        logger.error("Configuration rejected", extra=e.to_dict())
        return EXIT_CONFIG_ERROR

    logger.setLevel(settings.log_level)

    if getattr(args, "no_start", False):
        settings = settings.model_copy(update={"start_encoding": False})

    tracker = RunStatusTracker()
    app = create_app(tracker)

    if command == "serve":
        logger.info("Status server listening", extra={"port": settings.port})
        serve(app, port=settings.port, log_level=settings.log_level.lower())
        return EXIT_OK

    server_thread = None
    if getattr(args, "serve", False):
        server_thread = threading.Thread(
            target=serve,
            kwargs={"app": app, "port": settings.port, "log_level": settings.log_level.lower()},
            name="status-server",
            daemon=True,
        )
        server_thread.start()
        logger.info("Status server listening", extra={"port": settings.port})

    exit_code = run_encoding(settings, tracker)

    if server_thread is not None:
        try:
            server_thread.join()
        except KeyboardInterrupt:
            logger.info("Status server stopped")

    return exit_code


if __name__ == "__main__":
    sys.exit(main())
