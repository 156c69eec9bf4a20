"""
MongoDB connection for the service-local projection store
"""

from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from energy_sync.core.config import config
from energy_sync.core.logger import logger


class Database:
    """Database connection manager"""

    client: Optional[AsyncIOMotorClient] = None
    database: Optional[AsyncIOMotorDatabase] = None


db = Database()


async def connect_to_mongo() -> AsyncIOMotorDatabase:
    """
    Create database client

    The driver reconnects on its own, so an unreachable server at startup is
    logged rather than raised: consumers requeue their messages until the
    store is back.
    """
    logger.info("Connecting to MongoDB...")

    db.client = AsyncIOMotorClient(config.mongodb_url, tz_aware=True)
    db.database = db.client[config.mongodb_database]

    try:
        await db.client.admin.command("ping")
        logger.info(
            f"Successfully connected to MongoDB database '{config.mongodb_database}'",
            metadata={
                "event": "mongodb_connected",
                "database": config.mongodb_database,
                "host": config.mongodb_host,
                "port": config.mongodb_port,
            },
        )
    except PyMongoError as e:
        logger.error(
            f"Could not reach MongoDB: {e}",
            metadata={"event": "mongodb_connection_error", "host": config.mongodb_host},
        )

    return db.database


async def close_mongo_connection():
    """Close database connection"""
    logger.info("Closing connection to MongoDB...")
    if db.client is not None:
        db.client.close()
        db.client = None
        db.database = None
