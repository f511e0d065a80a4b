"""
Logging configuration for sftpstream.

Console output goes through Rich, file output uses a plain parseable format.
"""

import logging
import sys
import threading
from pathlib import Path
from typing import Any

from rich.logging import RichHandler


class FileFormatter(logging.Formatter):
    """Formatter for file logs - clean and parseable."""

    def __init__(self) -> None:
        super().__init__(fmt="%(asctime)s [%(levelname)-8s] %(name)s: %(message)s", datefmt="%Y-%m-%d %H:%M:%S")


class ConsoleFormatter(logging.Formatter):
    """``LEVEL: timestamp - msg``; errors also carry ``file:line``."""

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        if record.levelno >= logging.ERROR and record.pathname:
            location = f"{Path(record.pathname).name}:{record.lineno}"
            result = f"{record.levelname}: {self.formatTime(record)} - {location} - {record.getMessage()}"
        else:
            result = f"{record.levelname}: {self.formatTime(record)} - {record.getMessage()}"
        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)
        return result


LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def _parse_level(level: str | int) -> int:
    """Parse a logging level from a name or int; unknown names map to INFO."""
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        return LEVEL_MAP.get(level.upper(), logging.INFO)
    return logging.INFO


def setup_logging(
    level: str | int = logging.INFO,
    log_file: str | Path | None = None,
    format_string: str | None = None,
    file_mode: str = "a",
    console_enabled: bool = True,
    use_rich: bool = True,
) -> logging.Logger:
    """
    Setup logging configuration for sftpstream.

    Args:
        level: Logging level as string (DEBUG, INFO, etc.) or int (default: INFO)
        log_file: Optional file path to write logs to (default: console only)
        format_string: Optional custom console format string
        file_mode: 'a' to append to the log file, 'w' to overwrite
        console_enabled: Whether to log to the console at all
        use_rich: Use RichHandler for the console

    Returns:
        The ``sftpstream`` logger
    """
    logger = logging.getLogger("sftpstream")
    logger.handlers.clear()

    level_int = _parse_level(level)
    logger.setLevel(level_int)

    if console_enabled:
        if use_rich and format_string is None:
            logger.addHandler(
                RichHandler(
                    level=level_int,
                    show_time=True,
                    show_path=False,
                    rich_tracebacks=True,
                    log_time_format="[%X]",
                )
            )
        else:
            formatter: logging.Formatter = (
                logging.Formatter(format_string) if format_string is not None else ConsoleFormatter()
            )
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setLevel(level_int)
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode=file_mode)
        # File captures everything the logger lets through
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(FileFormatter())
        logger.addHandler(file_handler)

    return logger


def setup_logging_from_config(config: dict[str, Any], project_dir: Path | None = None) -> logging.Logger:
    """
    Setup logging from the ``logging`` section of the configuration.

    Example:
        logging:
          level: DEBUG
          file: logs/sftpstream.log
          console_type: plain   # or rich (default)
    """
    logging_config = config.get("logging") or {}

    level = logging_config.get("level", logging.INFO)
    log_file = logging_config.get("file") or logging_config.get("log_file")
    if log_file and project_dir:
        log_file = Path(log_file)
        if not log_file.is_absolute():
            log_file = project_dir / log_file

    return setup_logging(
        level=level,
        log_file=log_file,
        format_string=logging_config.get("format"),
        file_mode=logging_config.get("file_mode", "a"),
        console_enabled=logging_config.get("console_enabled", True),
        use_rich=logging_config.get("console_type", "rich") == "rich",
    )


_logging_setup_done = False
_logging_setup_lock = threading.Lock()


def _auto_setup_logging() -> None:
    """Install default console logging once if nobody configured it yet."""
    global _logging_setup_done

    if _logging_setup_done:
        return
    with _logging_setup_lock:
        if _logging_setup_done:
            return
        if not logging.getLogger("sftpstream").handlers:
            setup_logging()
        _logging_setup_done = True


def get_logger(name: str = "sftpstream") -> logging.Logger:
    """
    Get a logger instance, setting up default logging on first use.

    Args:
        name: Logger name (default: "sftpstream")
    """
    _auto_setup_logging()
    return logging.getLogger(name)
