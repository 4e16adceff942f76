import logging
from contextlib import contextmanager
from typing import Iterator

import pymongo
from pymongo.database import Database

from .config import Settings

logger = logging.getLogger(__name__)


@contextmanager
def open_database(connection_string: str, database_name: str, settings: Settings) -> Iterator[Database]:
    """Open a dedicated client for one request and close it when the block exits."""
    client = pymongo.MongoClient(
        connection_string,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        connectTimeoutMS=settings.connect_timeout_ms,
        socketTimeoutMS=settings.socket_timeout_ms,
        maxPoolSize=settings.max_pool_size,
    )
    try:
        client.admin.command("ping")
        logger.info("MongoDB connection established")
        yield client[database_name]
    finally:
        client.close()
