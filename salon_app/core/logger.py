import sys
import logging
from typing import Optional

from loguru import logger

from salon_app.core.config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[service]}</magenta> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[service]} | {name}:{function}:{line} - {message}"

# Third-party loggers that only add noise at INFO
QUIET_LOGGERS = ("uvicorn.access", "httpx", "hpack", "postgrest")


class InterceptHandler(logging.Handler):
    """Forwards standard-library records (uvicorn, httpx, supabase) to loguru."""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip logging's own frames so loguru reports the real caller
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: Optional[str] = None, error_log: Optional[str] = None, json_logs: Optional[bool] = None):
    """
    Configures loguru for the booking service.
    Defaults come from settings: LOG_LEVEL, LOG_ERROR_FILE and JSON output in production.
    Passing an empty `error_log` disables the error file.
    """
    level = level or settings.LOG_LEVEL
    error_log = settings.LOG_ERROR_FILE if error_log is None else error_log
    if json_logs is None:
        json_logs = settings.ENVIRONMENT == "production"

    logger.remove()
    logger.configure(extra={"service": settings.PROJECT_NAME})

    if json_logs:
        logger.add(sys.stdout, level=level, serialize=True)
    else:
        logger.add(sys.stdout, level=level, format=CONSOLE_FORMAT)

    if error_log:
        logger.add(
            error_log,
            level="ERROR",
            rotation="10 MB",
            retention="1 month",
            compression="zip",
            format=FILE_FORMAT,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["logger", "setup_logging"]
