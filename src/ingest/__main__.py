"""Cast ingest service entry point. Use --help for usage.

Exit status:
    0  stopped by SIGINT/SIGTERM after the final flush
    1  configuration or other startup error, or a fatal runtime error
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from dotenv import load_dotenv

from config import load_config
from config.config import IngestConfig
from core.errors.exceptions import ConfigurationError
from core.logging.setup import log_worker_startup, setup_logging
from core.logging.utilities import log_exception
from core.utils import generate_worker_id
from ingest.metrics import start_metrics_server
from ingest.service import STAGE, StreamService

# Project root directory (where .env file is located)
# __main__.py is at src/ingest/__main__.py, so root is 3 levels up
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)


def _env_flag(name: str) -> bool:
    return os.getenv(name, "false").lower() in ("true", "1", "yes")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Stream new casts from a Farcaster hub to a batch collection endpoint",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Run with config/config.yaml and .env
    python -m ingest

    # Custom config file, logs to stdout only
    python -m ingest --config /etc/cast-ingest/config.yaml --log-to-stdout

    # Disable the health server, move metrics
    python -m ingest --health-port 0 --metrics-port 9090
        """,
    )

    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to config YAML (default: bundled config/config.yaml)",
    )

    parser.add_argument(
        "--metrics-port",
        type=int,
        default=None,
        help="Port for Prometheus metrics server, 0 disables (default: from config)",
    )

    parser.add_argument(
        "--health-port",
        type=int,
        default=None,
        help="Port for health check server, 0 disables (default: from config)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Log directory path (default: from LOG_DIR env var or ./logs)",
    )

    parser.add_argument(
        "--log-to-stdout",
        action="store_true",
        help="Send all log output to stdout only, skipping file handlers. "
        "Can also be set via LOG_TO_STDOUT environment variable.",
    )

    return parser.parse_args(argv)


def setup_signal_handlers(loop: asyncio.AbstractEventLoop, shutdown_event: asyncio.Event) -> None:
    """Set up signal handlers for graceful shutdown.

    First signal: sets the shutdown event; the service stops consuming and
    performs its final flush.
    Second signal: forces immediate shutdown by cancelling all tasks."""

    def handle_signal(sig):
        logger.info("Received signal, initiating graceful shutdown", extra={"signal": sig.name})
        if not shutdown_event.is_set():
            shutdown_event.set()
        else:
            logger.warning("Received second signal, forcing immediate shutdown...")
            for task in asyncio.all_tasks(loop):
                task.cancel()

    if sys.platform == "win32":
        logger.debug("Signal handlers not supported on Windows, using KeyboardInterrupt")
        return

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))


def _build_overrides(args: argparse.Namespace) -> dict:
    observability = {}
    if args.metrics_port is not None:
        observability["metrics_port"] = args.metrics_port
    if args.health_port is not None:
        observability["health_port"] = args.health_port
    return {"observability": observability} if observability else {}


def _start_metrics(config: IngestConfig) -> None:
    if not config.metrics_port:
        logger.info("Metrics server disabled")
        return

    actual_port = start_metrics_server(config.metrics_port)
    if actual_port != config.metrics_port:
        logger.info(
            "Metrics server started on fallback port",
            extra={"port": actual_port},
        )
    else:
        logger.info("Metrics server started", extra={"port": actual_port})


def main(argv: list[str] | None = None) -> int:
    global logger

    load_dotenv(PROJECT_ROOT / ".env")
    args = parse_args(argv)

    worker_id = os.getenv("WORKER_ID") or generate_worker_id(STAGE)
    setup_logging(
        name="ingest",
        stage=STAGE,
        log_dir=Path(args.log_dir or os.getenv("LOG_DIR") or "logs"),
        json_format=os.getenv("JSON_LOGS", "true").lower() in ("true", "1", "yes"),
        console_level=getattr(logging, args.log_level),
        worker_id=worker_id,
        log_to_stdout=args.log_to_stdout or _env_flag("LOG_TO_STDOUT"),
    )
    logger = logging.getLogger(__name__)

    try:
        config = load_config(args.config, overrides=_build_overrides(args))
    except ConfigurationError as e:
        log_exception(logger, e, "Configuration error", include_traceback=False)
        return 1

    log_worker_startup(
        logger,
        worker_name=STAGE,
        hub_endpoint=config.hub_endpoint,
        sink_url=config.sink_base_url,
        extra_config={"worker_id": worker_id, **config.sanitized()},
    )

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    shutdown_event = asyncio.Event()
    setup_signal_handlers(loop, shutdown_event)

    try:
        _start_metrics(config)
        service = StreamService(config, worker_id=worker_id)
        loop.run_until_complete(service.run(shutdown_event))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")
    except asyncio.CancelledError:
        logger.info("Tasks cancelled, shutting down...")
    except Exception as e:
        log_exception(logger, e, "Fatal error")
        return 1
    finally:
        loop.close()

    logger.info("Ingest shutdown complete")
    return 0


if __name__ == "__main__":
    sys.exit(main())
