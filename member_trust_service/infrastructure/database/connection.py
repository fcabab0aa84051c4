from member_trust_service.app.config import settings
import logging
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

logger = logging.getLogger(__name__)

# Managed by the hosting process (API startup/shutdown or the sweep runner).
# The workflows never reach for these globals: they receive the db handle explicitly.
client: Optional[AsyncIOMotorClient] = None
db: Optional[AsyncIOMotorDatabase] = None

async def connect_to_mongo():
    global client, db
    if client is not None and db is not None:
        logger.info("MongoDB connection already established.")
        return

    try:
        logger.info(f"Attempting to connect to MongoDB database '{settings.DB_NAME}'...")
        client = AsyncIOMotorClient(settings.MONGO_DETAILS, tz_aware=True)
        # Verify connection by pinging the admin database
        await client.admin.command('ping')
        db = client[settings.DB_NAME]
        logger.info(f"Successfully connected to MongoDB and database '{settings.DB_NAME}' is set.")
    except Exception as e:
        logger.error(f"Failed to connect to MongoDB: {e}", exc_info=True)
        client = None
        db = None
        raise ConnectionError(f"Failed to connect to MongoDB: {e}")

def close_mongo_connection():
    global client, db
    if client:
        client.close()
        client = None
        db = None
        logger.info("MongoDB connection closed.")

async def get_db():
    if db is None:
        logger.warning("Database not initialized. Attempting to connect via get_db().")
        await connect_to_mongo()

    if db is None:
        logger.error("Failed to get database instance in get_db.")
        raise ConnectionError("Database client is not available. Connection might have failed or was not established.")

    # Connection lifecycle belongs to application startup/shutdown, not to the request.
    yield db
