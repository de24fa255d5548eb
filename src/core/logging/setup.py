"""Logging setup: root handlers, context, and third-party log levels."""

import logging
import sys
from datetime import datetime
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from core.logging.context import set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter

DEFAULT_LOG_DIR = Path("logs")

# Hourly files, one day kept
ROTATE_WHEN = "H"
ROTATE_BACKUPS = 24

# Chatty at INFO/DEBUG; only their warnings are kept
NOISY_LOGGERS = (
    "aiohttp",
    "aiohttp.access",
    "grpc",
    "grpc._cython",
    "asyncio",
)

PLAIN_FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"


def get_log_file_path(
    log_dir: Path,
    stage: str | None = None,
    worker_id: str | None = None,
) -> Path:
    """
    Path of the log file for this process, under a per-day folder.

    Layout: ``{log_dir}/{YYYY-MM-DD}/{stage}_{MMDD}_{HHMM}[_{worker_id}].log``

    Example:
        logs/2026-01-05/cast-ingest_0105_1430_brave-golden-tiger.log
    """
    started = datetime.now()
    parts = [stage or "ingest", started.strftime("%m%d"), started.strftime("%H%M")]
    if worker_id:
        parts.append(worker_id)
    return log_dir / started.strftime("%Y-%m-%d") / ("_".join(parts) + ".log")


def _file_handler(path: Path, level: int, json_format: bool) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = TimedRotatingFileHandler(
        path, when=ROTATE_WHEN, backupCount=ROTATE_BACKUPS, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter() if json_format else logging.Formatter(PLAIN_FILE_FORMAT))
    return handler


def setup_logging(
    name: str = "ingest",
    stage: str | None = None,
    log_dir: Path | None = None,
    json_format: bool = True,
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    worker_id: str | None = None,
    log_to_stdout: bool = False,
    suppress_noisy: bool = True,
) -> logging.Logger:
    """
    Replace the root handlers with this service's console and file handlers.

    Args:
        name: Logger name returned to the caller
        stage: Stage label added to every record
        log_dir: Base directory for log files (default: ./logs)
        json_format: JSON lines for the file (or stdout in stdout-only mode)
        console_level: Console threshold
        file_level: File threshold
        worker_id: Worker label added to every record and the file name
        log_to_stdout: One stdout handler and no file, for containers whose
            stdout is collected
        suppress_noisy: Lower gRPC/aiohttp/asyncio loggers to WARNING

    Returns:
        The named logger
    """
    set_log_context(stage=stage, worker_id=worker_id)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    log_file: Path | None = None

    if log_to_stdout:
        console.setLevel(min(console_level, file_level))
        console.setFormatter(JSONFormatter() if json_format else ConsoleFormatter())
    else:
        console.setLevel(console_level)
        console.setFormatter(ConsoleFormatter())
        log_file = get_log_file_path(log_dir or DEFAULT_LOG_DIR, stage=stage, worker_id=worker_id)
        root.addHandler(_file_handler(log_file, file_level, json_format))

    root.addHandler(console)

    if suppress_noisy:
        for noisy in NOISY_LOGGERS:
            logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug("Logging initialized", extra={"worker_name": stage})
    if log_file is not None:
        logger.debug(f"Writing logs to {log_file}")
    return logger


def log_worker_startup(
    logger: logging.Logger,
    worker_name: str,
    hub_endpoint: str,
    sink_url: str,
    extra_config: dict | None = None,
) -> None:
    """Startup banner. Values are logged verbatim, so never pass secrets."""
    rule = "=" * 70
    lines = [
        f"Starting {worker_name}",
        rule,
        f"Hub endpoint: {hub_endpoint}",
        f"Sink URL: {sink_url}",
    ]
    lines += [f"{key}: {value}" for key, value in (extra_config or {}).items()]

    logger.info(rule)
    for line in lines:
        logger.info(line)
    logger.info(rule)
