"""Database connectivity layer for the knowledge store."""

from __future__ import annotations

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection

from knowledge_intake.core.config import settings

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Lazily establishes the MongoDB connection backing the knowledge store."""

    def __init__(self) -> None:
        self.mongodb: Optional[AsyncIOMotorClient] = None

    async def initialize(self) -> None:
        if self.mongodb is not None:
            return
        logger.info("Connecting to MongoDB at %s", settings.MONGODB_URL.host)
        self.mongodb = AsyncIOMotorClient(str(settings.MONGODB_URL))

    def knowledge_collection(self) -> Optional[AsyncIOMotorCollection]:
        if self.mongodb is None:
            return None
        return self.mongodb[settings.MONGODB_DATABASE][settings.KNOWLEDGE_COLLECTION]

    async def close(self) -> None:
        if self.mongodb is not None:
            logger.info("Closing database connections")
            self.mongodb.close()
            self.mongodb = None


# Singleton instance used by the application lifespan
database_manager = DatabaseManager()
