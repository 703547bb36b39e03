"""
Logging configuration for QuoteFlow
Coloured console output with optional file logging
"""

import functools
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import colorama
from colorama import Fore, Style

# Initialize colorama for Windows support
colorama.init()

LOG_COLORS = {
    'DEBUG': Fore.CYAN,
    'INFO': Fore.GREEN,
    'WARNING': Fore.YELLOW,
    'ERROR': Fore.RED,
    'CRITICAL': Fore.MAGENTA
}


def format_context(context: Optional[Dict[str, Any]]) -> str:
    """Render bound context as ' [key=value ...]'"""
    if not context:
        return ""
    return " [" + " ".join(f"{key}={value}" for key, value in context.items()) + "]"


class ColoredFormatter(logging.Formatter):
    """Formatter that colours level and logger name on a TTY"""

    def __init__(self, fmt=None, datefmt=None, use_colors=True):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record):
        # Work on a copy so file handlers never see escape codes
        record = logging.makeLogRecord(record.__dict__)
        if self.use_colors:
            levelname = record.levelname
            if levelname in LOG_COLORS:
                record.levelname = f"{LOG_COLORS[levelname]}{levelname}{Style.RESET_ALL}"
                record.name = f"{Fore.BLUE}{record.name}{Style.RESET_ALL}"

        record.timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        record.context_str = format_context(getattr(record, "context", None))

        return super().format(record)


class StructuredLogger:
    """Logger wrapper that tags every message with bound context"""

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        self.logger = logger
        self.context = dict(context or {})

    def bind(self, **kwargs) -> "StructuredLogger":
        """Child logger carrying extra context such as the quote source"""
        return StructuredLogger(self.logger, {**self.context, **kwargs})

    def _log(self, level, msg, *args, **kwargs):
        if self.context:
            extra = kwargs.setdefault('extra', {})
            extra['context'] = self.context
        getattr(self.logger, level)(msg, *args, **kwargs)

    def debug(self, msg, *args, **kwargs):
        self._log('debug', msg, *args, **kwargs)

    def info(self, msg, *args, **kwargs):
        self._log('info', msg, *args, **kwargs)

    def warning(self, msg, *args, **kwargs):
        self._log('warning', msg, *args, **kwargs)

    def error(self, msg, *args, **kwargs):
        self._log('error', msg, *args, **kwargs)


def setup_logger(
    name: str,
    level: Optional[str] = None,
    log_file: Optional[Path] = None,
    use_colors: bool = True
) -> StructuredLogger:
    """
    Set up a logger with console and optional file output

    Args:
        name: Logger name (usually __name__)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for logging
        use_colors: Whether to use colored output

    Returns:
        StructuredLogger instance
    """
    from ..config.settings import get_config
    config = get_config()

    if level is None:
        level = config.system.log_level
    if log_file is None:
        log_file = config.system.log_file

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Remove existing handlers
    logger.handlers = []

    console_handler = logging.StreamHandler(sys.stderr)
    console_format = "%(timestamp)s [%(levelname)s] %(name)s%(context_str)s: %(message)s"
    console_handler.setFormatter(ColoredFormatter(console_format, use_colors=use_colors))
    logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    logger.propagate = False

    return StructuredLogger(logger)


def get_logger(name: str) -> StructuredLogger:
    """
    Get or create a logger instance

    Args:
        name: Logger name (usually __name__)

    Returns:
        StructuredLogger instance
    """
    return setup_logger(name)


def log_async_performance(logger: Optional[StructuredLogger] = None):
    """Decorator to log async function duration"""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            nonlocal logger
            if logger is None:
                logger = get_logger(func.__module__)

            start_time = time.time()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                elapsed = time.time() - start_time
                logger.error(
                    f"Failed async {func.__name__} after {int(elapsed * 1000)}ms: {e}",
                    exc_info=True
                )
                raise
            elapsed = time.time() - start_time
            logger.debug(f"Completed async {func.__name__} in {int(elapsed * 1000)}ms")
            return result

        return wrapper
    return decorator
