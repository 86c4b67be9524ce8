from loguru import logger
import sys

from app.core.config import settings

def setup_logging(level: str | None = None):
    if level is None:
        level = "DEBUG" if settings.MONGODB_DEBUG else settings.LOG_LEVEL
    logger.remove()
    logger.add(sys.stdout, level=level.upper())
    return logger
