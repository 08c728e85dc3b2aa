import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from marketchat.config.settings import Config


logger = logging.getLogger(__name__)

_client: AsyncIOMotorClient | None = None


async def connect_to_mongo() -> None:
    global _client
    if _client is not None:
        return
    _client = AsyncIOMotorClient(Config.MONGODB_URL, tz_aware=True)
    logger.info("Connected to MongoDB database %s", Config.MONGODB_DB)


async def close_mongo_connection() -> None:
    global _client
    if _client is None:
        return
    _client.close()
    _client = None
    logger.info("Closed MongoDB connection")


def get_database() -> AsyncIOMotorDatabase:
    if _client is None:
        raise RuntimeError("MongoDB client is not initialised; call connect_to_mongo() first")
    return _client[Config.MONGODB_DB]


async def mongo_db_dependency() -> AsyncIOMotorDatabase:
    return get_database()
