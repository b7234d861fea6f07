"""Centralized logging setup using loguru."""
import sys
from pathlib import Path

from loguru import logger

from printshop.core.config import settings

_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)

# Modules whose records also go to the cron audit log
_JOB_MODULES = ("printshop.finance.recurring",)


def _is_job_record(record) -> bool:
    return record["name"].startswith(_JOB_MODULES)


def setup_logging() -> None:
    """
    Console sink always; with LOG_FILE set, a rotating application log plus
    ``recurring.log`` next to it holding only the recurring-expense job output.
    """
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL, format=_CONSOLE_FORMAT, colorize=True)

    if not settings.LOG_FILE:
        return

    log_file = Path(settings.LOG_FILE)
    logger.add(
        log_file,
        level=settings.LOG_LEVEL,
        rotation="10 MB",
        retention="30 days",
        compression="zip",
    )
    logger.add(
        log_file.with_name("recurring.log"),
        level="INFO",
        filter=_is_job_record,
        rotation="1 MB",
        retention="90 days",
    )
