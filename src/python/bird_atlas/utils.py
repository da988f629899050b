"""
Utility functions for bird-atlas.

Logging setup lives here so the CLI and library users configure output the
same way.

Example:
    >>> from bird_atlas.utils import setup_logging
    >>> setup_logging("DEBUG", "scan.log")
"""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO, Union

# Libraries that log far more than a scan summary needs
NOISY_LOGGERS = ("openpyxl", "urllib3", "asyncio")


def setup_logging(
    level: Union[str, int] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    format_string: Optional[str] = None,
    include_timestamp: bool = True,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Set up logging configuration for the application.

    Args:
        level: Logging level name or number
        log_file: Optional path to log file (console only if None)
        format_string: Custom format string for log messages
        include_timestamp: Whether to include timestamp in log messages
        stream: Console stream, stdout if None
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    if format_string is None:
        if include_timestamp:
            format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        else:
            format_string = "%(name)s - %(levelname)s - %(message)s"

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    formatter = logging.Formatter(format_string)

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def format_duration(seconds: float) -> str:
    """
    Format a duration for display.

    Examples:
        >>> format_duration(0.25)
        '250 ms'
        >>> format_duration(75)
        '1m 15s'
    """
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    if seconds < 60:
        return f"{seconds:.1f} s"
    minutes, secs = divmod(int(round(seconds)), 60)
    return f"{minutes}m {secs:02d}s"
