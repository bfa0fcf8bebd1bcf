"""Logging setup for the sync process.

Events are built with structlog and rendered to a single line; the standard
library root logger only routes that line to the console (colored by level
with colorlog) and, optionally, to a rotating file. ``setup_logging`` swaps
out the handlers it installed before, so calling it again changes the
configuration instead of duplicating every line.
"""

import functools
import logging
import logging.handlers
import sys
import time
from pathlib import Path
from typing import Optional

import structlog
import colorlog
from structlog.typing import Processor

# Attribute marking root handlers owned by setup_logging.
_OWNED_HANDLER = "_dropbox_sync_handler"

LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}


def setup_logging(
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    log_file: Optional[str] = None
) -> None:
    """Configure structlog and the root logger handlers.

    Args:
        log_level: Level name, defaults to the LOG_LEVEL setting
        log_format: 'json' or 'console', defaults to the LOG_FORMAT setting
        log_file: Also write to this rotating file, defaults to LOG_FILE_PATH
    """
    from ..config.settings import get_settings

    settings = get_settings()
    level = getattr(logging, (log_level or settings.logging.level).upper())
    format_type = log_format or settings.logging.format
    file_path = log_file or settings.logging.file_path

    structlog.configure(
        processors=_build_processors(format_type),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.setLevel(level)
    for handler in [h for h in root.handlers if getattr(h, _OWNED_HANDLER, False)]:
        root.removeHandler(handler)
        handler.close()

    _install_handler(root, _console_handler(level))
    if file_path:
        _install_handler(root, _file_handler(file_path, level))


def _build_processors(format_type: str) -> list:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if format_type == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        # colorlog colors the whole line by level
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def _install_handler(root: logging.Logger, handler: logging.Handler) -> None:
    setattr(handler, _OWNED_HANDLER, True)
    root.addHandler(handler)


def _console_handler(level: int) -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(colorlog.ColoredFormatter(
        "%(log_color)s%(message)s",
        reset=True,
        log_colors=LOG_COLORS
    ))
    return handler


def _file_handler(file_path: str, level: int) -> logging.Handler:
    Path(file_path).parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        file_path,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5
    )
    handler.setLevel(level)
    # structlog already rendered the event, timestamp included
    handler.setFormatter(logging.Formatter("%(message)s"))
    return handler


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def get_mapping_logger(name: str, account: str, remote_path: str, local_path: str) -> structlog.stdlib.BoundLogger:
    """Logger carrying the context of one account mapping on every event."""
    return get_logger(name).bind(
        account=account,
        remote_path=remote_path or "/",
        local_path=local_path
    )


def log_async_execution_time(func):
    """Log how long an awaited call took, and its failure if it raised."""

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        logger = get_logger(func.__qualname__)
        start_time = time.monotonic()

        try:
            result = await func(*args, **kwargs)
        except Exception as e:
            logger.error(
                "Call failed",
                function=func.__qualname__,
                elapsed=round(time.monotonic() - start_time, 3),
                error=str(e)
            )
            raise

        logger.debug(
            "Call finished",
            function=func.__qualname__,
            elapsed=round(time.monotonic() - start_time, 3)
        )
        return result

    return wrapper
