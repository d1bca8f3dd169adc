from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from support_bridge.config import settings
from support_bridge.core.logging_config import get_logger

logger = get_logger(__name__)

_client: Optional[AsyncIOMotorClient] = None


def get_client() -> AsyncIOMotorClient:
    """
    Return the process-wide Motor client, creating it on first use.

    Connection pool configuration:
    - maxPoolSize=50: Maximum number of connections (prevents exhaustion)
    - minPoolSize=5: Pre-allocated connections (reduces latency)
    - maxIdleTimeMS=45000: Close idle connections after 45s
    - serverSelectionTimeoutMS=5000: Fail fast if MongoDB is down
    """
    global _client
    if _client is None:
        _client = AsyncIOMotorClient(
            settings.MONGODB_URL,
            maxPoolSize=50,
            minPoolSize=5,
            maxIdleTimeMS=45000,
            serverSelectionTimeoutMS=5000,
            retryWrites=True,
            retryReads=True,
            tz_aware=True,
        )
    return _client


def get_database() -> AsyncIOMotorDatabase:
    return get_client()[settings.DATABASE_NAME]


async def init_db():
    """Create the client and verify connectivity."""
    try:
        client = get_client()
        await client.admin.command('ping')
        logger.info("mongodb_connected", database=settings.DATABASE_NAME)
    except Exception as e:
        logger.error("mongodb_connection_failed", error=str(e))
        raise


async def close_db():
    """Close database connection."""
    global _client
    if _client is not None:
        _client.close()
        _client = None
        logger.info("mongodb_connection_closed")
