"""Logging configuration for the port manager with dual output (console + files)."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog
from structlog.stdlib import BoundLogger, LoggerFactory, ProcessorFormatter

SERVER_LOGGER = "server"
MIDDLEWARE_LOGGER = "middleware"


def setup_logging(
    log_dir: Path | str | None = Path("logs"),
    log_level: str | None = None,
    max_file_size_mb: int = 10,
) -> None:
    """Setup dual logging system: console + files with automatic truncation.

    Creates two log files when ``log_dir`` is given:
    - server.log: Server, service and runtime client events
    - middleware.log: MCP request/response tracking

    Args:
        log_dir: Directory for log files, or None for console-only logging
        log_level: Log level (defaults to LOG_LEVEL env var or INFO)
        max_file_size_mb: Max file size before truncation (no backup files kept)
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    log_level_num = getattr(logging, log_level.upper(), logging.INFO)
    max_bytes = max_file_size_mb * 1024 * 1024

    # Clear any existing handlers to prevent duplicates
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(log_level_num)

    renderer = (
        structlog.dev.ConsoleRenderer()
        if sys.stdout.isatty()
        else structlog.processors.JSONRenderer()
    )
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level_num)
    console_handler.setFormatter(ProcessorFormatter(processor=renderer))
    root_logger.addHandler(console_handler)

    file_logs: dict[str, str] = {}
    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        for logger_name, file_name in (
            (SERVER_LOGGER, "server.log"),
            (MIDDLEWARE_LOGGER, "middleware.log"),
        ):
            file_handler = RotatingFileHandler(
                log_dir / file_name,
                maxBytes=max_bytes,
                backupCount=0,  # Don't keep old files, just truncate
                encoding="utf-8",
            )
            file_handler.setLevel(log_level_num)
            file_handler.setFormatter(
                ProcessorFormatter(processor=structlog.processors.JSONRenderer())
            )

            named_logger = logging.getLogger(logger_name)
            named_logger.handlers.clear()
            named_logger.addHandler(file_handler)
            named_logger.propagate = True  # Also send to console via root logger
            file_logs[f"{logger_name}_log"] = str(log_dir / file_name)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger(SERVER_LOGGER)
    logger.info(
        "Logging system initialized",
        log_dir=str(Path(log_dir).absolute()) if log_dir is not None else None,
        log_level=log_level,
        max_file_size_mb=max_file_size_mb,
        **file_logs,
    )


def get_server_logger() -> Any:
    """Get logger for general server operations (writes to server.log)."""
    return structlog.get_logger(SERVER_LOGGER)


def get_middleware_logger() -> Any:
    """Get logger for middleware operations (writes to middleware.log)."""
    return structlog.get_logger(MIDDLEWARE_LOGGER)
