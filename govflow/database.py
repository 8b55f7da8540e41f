import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING

from govflow.config import settings

logger = logging.getLogger(__name__)


class MongoDB:
    client: AsyncIOMotorClient = None
    database: AsyncIOMotorDatabase = None


db = MongoDB()


async def connect_to_mongo():
    """Create database connection and the indexes the stores rely on"""
    db.client = AsyncIOMotorClient(settings.mongodb_url)
    db.database = db.client[settings.mongodb_db_name]
    await db.client.admin.command('ping')
    await create_indexes(db.database)
    logger.info(f"Connected to MongoDB database '{settings.mongodb_db_name}'")


async def create_indexes(database: AsyncIOMotorDatabase):
    """Unique keys back the stores' duplicate detection"""
    await database.form_sessions.create_index([("session_id", ASCENDING)], unique=True)
    await database.form_sessions.create_index(
        [("user_id", ASCENDING), ("service_id", ASCENDING), ("updated_at", DESCENDING)]
    )
    await database.applications.create_index([("application_id", ASCENDING)], unique=True)
    await database.applications.create_index([("idempotency_key", ASCENDING)], unique=True)
    await database.applications.create_index([("session_id", ASCENDING)])


async def close_mongo_connection():
    """Close database connection"""
    if db.client:
        db.client.close()
        db.client = None
        db.database = None


def get_database() -> AsyncIOMotorDatabase:
    return db.database
