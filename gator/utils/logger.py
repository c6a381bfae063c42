"""
Logging setup for gator.

Application code logs through structlog; the few stdlib loggers that matter
(aiohttp, SQLAlchemy, our own file output) are routed through a Rich handler.
Everything goes to stderr so command output on stdout stays clean.
"""

import asyncio
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

import structlog
from rich.console import Console
from rich.logging import RichHandler

from ..config import LoggingConfig

# Third-party loggers that are only interesting when something goes wrong
QUIET_LOGGERS = ("aiohttp", "asyncio", "sqlalchemy.engine")


def _handlers_for(config: LoggingConfig, level: int) -> List[logging.Handler]:
    rich_handler = RichHandler(
        console=Console(stderr=True),
        show_time=True,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    rich_handler.setLevel(level)
    handlers: List[logging.Handler] = [rich_handler]

    if config.file_path:
        log_file = Path(config.file_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(config.format))
        handlers.append(file_handler)

    return handlers


def setup_logger(config: LoggingConfig) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        config: Logging configuration; ``level`` must be a stdlib level name
    """
    level = logging.getLevelName(config.level.upper())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        context_class=dict,
        # Tests swap sys.stderr between runs
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    root.handlers.clear()
    logging.basicConfig(
        level=level, handlers=_handlers_for(config, level), format=config.format
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)
    """
    return structlog.get_logger(name)


class LoggerMixin:
    """
    Give a class a ``self.logger`` named after it plus ``log_*`` shortcuts.

    ``log_error`` flattens an exception into ``error`` and ``error_type``
    fields so failures stay greppable in the console renderer.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.logger = get_logger(type(self).__name__)

    def log_debug(self, message: str, **fields):
        self.logger.debug(message, **fields)

    def log_info(self, message: str, **fields):
        self.logger.info(message, **fields)

    def log_warning(self, message: str, **fields):
        self.logger.warning(message, **fields)

    def log_error(self, message: str, error: Optional[BaseException] = None, **fields):
        if error is not None:
            fields["error"] = str(error) or repr(error)
            fields["error_type"] = type(error).__name__
        self.logger.error(message, **fields)


class ContextLogger:
    """
    Bind context for one operation and log how it ended.

    Usage:
        with ContextLogger("scrape_feed", feed_url=url) as log:
            log.info("Fetching")

    Exceptions are logged and re-raised. Cancellation is logged at debug
    level only, since stopping the scheduler cancels in-flight work.
    """

    def __init__(self, operation: str, **context):
        self.operation = operation
        self.logger = get_logger("gator.operation").bind(operation=operation, **context)
        self._started = 0.0

    def __enter__(self):
        self._started = time.perf_counter()
        self.logger.debug(f"{self.operation} started")
        return self.logger

    def __exit__(self, exc_type, exc_val, exc_tb):
        elapsed_ms = round((time.perf_counter() - self._started) * 1000, 1)
        if exc_type is None:
            self.logger.debug(f"{self.operation} finished", elapsed_ms=elapsed_ms)
        elif issubclass(exc_type, asyncio.CancelledError):
            self.logger.debug(f"{self.operation} cancelled", elapsed_ms=elapsed_ms)
        else:
            self.logger.error(
                f"{self.operation} failed",
                error=str(exc_val),
                error_type=exc_type.__name__,
                elapsed_ms=elapsed_ms,
            )
        return False
