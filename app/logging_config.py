"""
logging_config.py — Centralized Logging Configuration

Sets up Loguru as the single logging backend. Intercepts Python's stdlib
logging module so every logging.getLogger(__name__) call in services and
routers lands in Loguru, alongside uvicorn and SQLAlchemy output.

Business Rules:
- All logs go through Loguru (no print())
- JSON lines in production (APP_ENV=production), colored text otherwise
- Production also writes a rotated file: 50MB files, 7-day retention
- Best-effort bookkeeping failures (audit log, notifications) log at WARNING

Called by: app/main.py (lifespan startup)
Depends on: app/config.py (app_env, log_level, log_file)
"""

import logging
import sys

from loguru import logger

from .config import settings

_DEV_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)

_NOISY_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "botocore")


def setup_logging() -> None:
    """Configure Loguru and route stdlib logging into it. Safe to call twice."""
    logger.remove()

    log_level = settings.log_level.upper()

    if settings.is_production:
        logger.add(sys.stdout, level=log_level, format="{message}", serialize=True)
        logger.add(
            settings.log_file,
            level=log_level,
            rotation="50 MB",
            retention="7 days",
            compression="gz",
            serialize=True,
        )
    else:
        logger.add(sys.stdout, level=log_level, format=_DEV_FORMAT, colorize=True)

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info("Logging configured", level=log_level, production=settings.is_production)


class _InterceptHandler(logging.Handler):
    """Forward stdlib log records to Loguru, keeping the original caller."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Walk past logging's own frames so Loguru reports the real caller
        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())
