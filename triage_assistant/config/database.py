"""MongoDB database connection and management."""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from typing import Optional
from triage_assistant.config.settings import settings
import logging

logger = logging.getLogger(__name__)


class Database:
    """MongoDB database connection manager."""

    client: Optional[AsyncIOMotorClient] = None
    database: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB and make sure the conversation indexes exist."""
        try:
            cls.client = AsyncIOMotorClient(settings.mongodb_uri)
            cls.database = cls.client[settings.mongodb_database]

            # Test connection
            await cls.client.admin.command("ping")
            logger.info(f"Connected to MongoDB: {settings.mongodb_database}")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

        conversations = cls.get_collection(settings.mongodb_collection_conversations)
        await conversations.create_index("conversation_id", unique=True)
        await conversations.create_index([("user_id", 1), ("last_activity", -1)])

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection."""
        if cls.client:
            cls.client.close()
            cls.client = None
            cls.database = None
            logger.info("Closed MongoDB connection")

    @classmethod
    def get_database(cls) -> AsyncIOMotorDatabase:
        """Get database instance."""
        if cls.database is None:
            raise RuntimeError("Database not initialized. Call connect_db() first.")
        return cls.database

    @classmethod
    def get_collection(cls, collection_name: str):
        """Get a collection from the database."""
        db = cls.get_database()
        return db[collection_name]


def get_conversations_collection():
    """Get triage_conversations collection."""
    return Database.get_collection(settings.mongodb_collection_conversations)
