import logging
import sys
import time
import traceback
from contextlib import contextmanager
from datetime import datetime

from app.config.settings import settings

LOGGER_NAME = "o9-generator"


class ErrorTraceFormatter(logging.Formatter):
    """Appends the traceback (or call stack) to error records."""

    def format(self, record):
        message = super().format(record)
        if record.exc_info:
            return f"{message}\nFull traceback:\n{''.join(traceback.format_exception(*record.exc_info))}"
        if record.stack_info:
            return f"{message}\nCall stack:\n{record.stack_info}"
        return message


def setup_logging() -> logging.Logger:
    """
    One file per process start under LOGS_DIR, plus the console in dev.
    Calling it again returns the already configured logger.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, settings.log_level.upper(), logging.DEBUG))
    formatter = ErrorTraceFormatter(settings.log_format)

    settings.logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = settings.logs_dir / f"o9_generator_{datetime.now().strftime('%Y-%m-%d_%H-%M-%S')}.log"
    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if settings.env.lower() == "dev":
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    logger.propagate = False
    return logger


def error_with_trace(msg, *args, **kwargs):
    kwargs["stack_info"] = True
    if sys.exc_info()[0] is not None:
        kwargs["exc_info"] = sys.exc_info()
    logger.error(msg, *args, **kwargs)


@contextmanager
def timed(operation: str):
    """Log how long the wrapped block took, also when it raises."""
    start = time.perf_counter()
    try:
        yield
    finally:
        logger.info(f"{operation} took {(time.perf_counter() - start) * 1000:.0f}ms")


logger = setup_logging()

debug = logger.debug
info = logger.info
warning = logger.warning
error = error_with_trace
critical = logger.critical

__all__ = ["logger", "debug", "info", "warning", "error", "critical", "timed"]
