"""
Logging Configuration Module

Provides centralized logging setup with configurable output to console and file.
Uses the standard library logging module with custom formatting.

Usage:
    from src.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Data channel open")
"""

import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

# Third-party loggers that are chatty at DEBUG during ICE/DTLS negotiation
NOISY_LOGGERS = ("aioice", "aiortc", "asyncio")


class ColoredFormatter(logging.Formatter):
    """
    Custom formatter that adds colors to log output for better readability.

    Colors:
    - DEBUG: Cyan
    - INFO: Green
    - WARNING: Yellow
    - ERROR: Red
    - CRITICAL: Bold Red
    """

    COLORS = {
        logging.DEBUG: "\033[36m",     # Cyan
        logging.INFO: "\033[32m",      # Green
        logging.WARNING: "\033[33m",   # Yellow
        logging.ERROR: "\033[31m",     # Red
        logging.CRITICAL: "\033[1;31m" # Bold Red
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record with colors for terminal output."""
        color = self.COLORS.get(record.levelno, self.RESET)
        record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    use_colors: bool = True,
    quiet_transport: bool = True,
) -> None:
    """
    Configure the root logger with console and optional file handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        use_colors: Whether to use colored output in console
        quiet_transport: Keep WebRTC library loggers at WARNING
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    # stdout carries the CLI transcript
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(numeric_level)

    if use_colors and sys.stderr.isatty():
        console_format = ColoredFormatter(
            "%(asctime)s │ %(levelname)s │ %(name)s │ %(message)s",
            datefmt="%H:%M:%S"
        )
    else:
        console_format = logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )

    console_handler.setFormatter(console_format)
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(numeric_level)
        file_format = logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_format)
        root_logger.addHandler(file_handler)

    if quiet_transport:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a module.

    Args:
        name: Usually __name__ of the calling module

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)


def summarize(payload: Any, limit: int = 300) -> str:
    """
    Render a wire payload for a log line, truncated to ``limit`` characters.

    Dicts and lists are serialized as compact JSON; anything else uses str().
    """
    if isinstance(payload, (dict, list)):
        try:
            text = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError):
            text = str(payload)
    else:
        text = str(payload)
    if len(text) > limit:
        return f"{text[:limit]}... ({len(text)} chars)"
    return text


_initialized = False


def init_logging(level: Optional[str] = None) -> None:
    """
    Initialize logging from settings. Call once at application startup.

    Args:
        level: Optional override for the configured log level
    """
    global _initialized
    if _initialized:
        return

    try:
        from src.config import settings
        setup_logging(
            level=level or settings.logging.level,
            log_file=settings.logging.file
        )
    except Exception:
        # Fallback if settings aren't available
        setup_logging(level=level or "INFO")

    _initialized = True
