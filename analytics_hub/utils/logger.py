"""
Logging configuration

One console sink plus two rotating file sinks under ``settings.log_dir``:
everything at INFO and above, and a longer-lived errors-only file.
"""
from pathlib import Path
import sys

from loguru import logger

from analytics_hub.config import get_settings

settings = get_settings()

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def setup_logger(log_dir: str = settings.log_dir):
    """Configure the shared loguru logger and return it"""
    logger.remove()

    logger.add(sys.stdout, colorize=True, format=CONSOLE_FORMAT, level=settings.log_level)

    base = Path(log_dir)
    logger.add(
        base / "analytics_hub_{time:YYYY-MM-DD}.log",
        rotation="00:00",
        retention="30 days",
        compression="zip",
        level="INFO",
    )
    logger.add(
        base / "errors_{time:YYYY-MM-DD}.log",
        rotation="00:00",
        retention="90 days",
        level="ERROR",
    )

    return logger


log = setup_logger()
