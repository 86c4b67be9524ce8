from __future__ import annotations

from typing import List, Optional

from loguru import logger
from pymongo import AsyncMongoClient, monitoring
from pymongo.asynchronous.database import AsyncDatabase

from app.core.config import settings
from app.utils.mongo_uri import database_from_uri, redact_mongo_uri

DEFAULT_DB = "test"

_client: Optional[AsyncMongoClient] = None


class CommandLogger(monitoring.CommandListener):
    """Logs every command the driver sends (enabled with MONGODB_DEBUG)."""

    def started(self, event):
        logger.debug(
            "mongo > {} {}.{} request_id={}",
            event.command_name,
            event.database_name,
            event.command.get(event.command_name),
            event.request_id,
        )

    def succeeded(self, event):
        logger.debug(
            "mongo < {} ok in {}us request_id={}",
            event.command_name,
            event.duration_micros,
            event.request_id,
        )

    def failed(self, event):
        logger.debug(
            "mongo ! {} failed in {}us request_id={}: {}",
            event.command_name,
            event.duration_micros,
            event.request_id,
            event.failure,
        )


def _event_listeners() -> List[monitoring.CommandListener]:
    return [CommandLogger()] if settings.MONGODB_DEBUG else []


def get_client() -> AsyncMongoClient:
    global _client
    if _client is None:
        _client = AsyncMongoClient(
            settings.MONGODB_URI,
            serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
            event_listeners=_event_listeners(),
        )
    return _client


def get_db_name() -> str:
    return settings.MONGODB_DB or database_from_uri(settings.MONGODB_URI) or DEFAULT_DB


def get_db() -> AsyncDatabase:
    return get_client()[get_db_name()]


async def connect() -> AsyncMongoClient:
    """Create the client and make sure the server answers."""
    client = get_client()
    try:
        await client.admin.command("ping")
    except Exception as e:
        logger.error("Could not connect to MongoDB at {}: {}", redact_mongo_uri(settings.MONGODB_URI), e)
        raise
    logger.info("Connected to MongoDB at {} (db={})", redact_mongo_uri(settings.MONGODB_URI), get_db_name())
    return client


async def close() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None
        logger.info("MongoDB connection closed")
