"""
Logging configuration module for spit.

This module provides centralized logging setup with rich console output
and custom log levels for startup sections and notable updates.
"""

import logging
import sys
from typing import Optional, Any
from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme
from devtools import debug


# Custom log levels
SECTION_LEVEL = 35  # Between WARNING (30) and CRITICAL (50)
UPDATE_LEVEL = 22  # Between INFO (20) and WARNING (30) - for relevant updates

logging.addLevelName(SECTION_LEVEL, "SECTION")
logging.addLevelName(UPDATE_LEVEL, "UPDATE")

# Default level when no verbosity flags are used
DEFAULT_LEVEL = UPDATE_LEVEL

# Line format for the optional log file; the console uses rich
FILE_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Logger(logging.Logger):
    """Extended Logger class with custom log levels for section and update messages."""

    def section(self, message: str, *args, **kwargs) -> None:
        """Log a section heading with an automatic separator."""
        if self.isEnabledFor(SECTION_LEVEL):
            self._log(SECTION_LEVEL, message, args, **kwargs)

    def update(self, message: str, *args, **kwargs) -> None:
        """Log a relevant update message (shown by default)."""
        if self.isEnabledFor(UPDATE_LEVEL):
            self._log(UPDATE_LEVEL, message, args, **kwargs)

    def debugf(self, obj: Any) -> None:
        """Log an object using devtools formatting at DEBUG level."""
        if self.isEnabledFor(logging.DEBUG):
            self.debug(debug.format(obj))


# Set our custom Logger class as the default
logging.setLoggerClass(Logger)


class CustomRichHandler(RichHandler):
    """RichHandler that prints a separator rule before SECTION records."""

    def emit(self, record: logging.LogRecord) -> None:
        if record.levelno == SECTION_LEVEL:
            self.console.print("═" * 100, style="bold cyan")
        super().emit(record)


def setup_logging(
    level: int = DEFAULT_LEVEL,
    log_file: Optional[str] = None,
) -> Logger:
    """
    Configure logging for the application using rich console output.

    Args:
        level: Logging level (default: UPDATE_LEVEL). Use logging.INFO for -v, logging.DEBUG for -vv
        log_file: Optional file path to write logs to, formatted with FILE_LOG_FORMAT

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    theme = Theme(
        {
            "logging.level.debug": "dim cyan",
            "logging.level.info": "green",
            "logging.level.update": "blue",
            "logging.level.warning": "yellow",
            "logging.level.error": "red",
            "logging.level.critical": "bold red",
            "logging.level.section": "bold cyan",
        }
    )

    console = Console(file=sys.stdout, theme=theme)
    rich_handler = CustomRichHandler(
        console=console,
        level=level,
        show_time=True,
        show_path=False,
    )
    root_logger.addHandler(rich_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        root_logger.addHandler(file_handler)

    # uvicorn installs its own handlers; route its records through ours instead
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.propagate = True

    return root_logger  # type: ignore[return-value]


def get_logger(name: str) -> Logger:
    """
    Get a logger with the specified name.

    Args:
        name: Name of the logger (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)  # type: ignore[return-value]
