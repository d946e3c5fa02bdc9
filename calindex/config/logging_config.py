from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path

from loguru import logger

from calindex.config.settings import settings

# Libraries whose stdlib loggers are too chatty below CRITICAL
SILENCED_LIBRARIES = ("networkx", "asyncio")

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"

# Track if logging has been configured to prevent re-initialization
_configured = False


class InterceptHandler(logging.Handler):
    """Forward stdlib logging records (the parsers log this way) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level_name = logger.level(record.levelname).name
        except ValueError:
            level_name = record.levelno

        # Walk out of the logging module so loguru reports the parser's frame
        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level_name, record.getMessage())


def _resolve_level(level: str | None, env: str) -> str:
    if level is None:
        level = settings.LOG_LEVEL or ("DEBUG" if env == "development" else "INFO")
    return level.upper()


def _add_file_sink(level: str) -> Path:
    """One log file per process under LOG_DIR, named by start time."""
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file_path = log_dir / f"calindex_{datetime.now():%Y-%m-%d_%H-%M-%S}.log"
    logger.add(
        log_file_path,
        level=level,
        format=FILE_FORMAT,
        backtrace=True,
        diagnose=False,
        encoding="utf-8",
    )
    return log_file_path


def configure_logging(level: str | None = None) -> None:
    """
    Configure loguru sinks and route stdlib logging through them.
    - level: minimum level; defaults to settings.LOG_LEVEL, then to DEBUG in
      development and INFO elsewhere.
    Console output goes to stderr so JSON results on stdout stay clean.
    Production logs are serialized as JSON lines.
    """
    global _configured
    if _configured:
        return

    env = settings.ENV.lower()
    level = _resolve_level(level, env)

    logger.remove()
    log_file_path = _add_file_sink(level) if settings.LOG_TO_FILE else None

    if env == "production":
        logger.add(sys.stderr, level=level, serialize=True, backtrace=False, diagnose=False)
    else:
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    logging.root.handlers = [InterceptHandler()]
    logging.root.setLevel(logging.getLevelName(level))

    for lib_name in SILENCED_LIBRARIES:
        noisy_logger = logging.getLogger(lib_name)
        noisy_logger.setLevel(logging.CRITICAL)
        noisy_logger.propagate = False

    _configured = True
    logger.debug(f"Logging configured: level={level}, environment={env}, log_file={log_file_path}")
