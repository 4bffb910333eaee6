"""
app/db/mongo.py

Purpose: MongoDB connection setup

- Initializes the Motor client with connection pooling
- Single collection: users (one onboarding profile per WhatsApp number)
- Startup retry with backoff, health checks
- Connection lifecycle management
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError
from typing import Optional
import asyncio
from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

USERS_COLLECTION = "users"

_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo(max_retries: int = 3, retry_delay: float = 2):
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup; raises ConnectionError when every
    attempt fails so the process does not start half-configured.
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(f"Connecting to MongoDB (attempt {attempt}/{max_retries})")

            client = AsyncIOMotorClient(
                settings.MONGODB_URL,
                maxPoolSize=50,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
                retryWrites=True,
                retryReads=True,
            )
            await client.admin.command("ping")

            _client = client
            _database = client[settings.MONGODB_DB_NAME]
            logger.info(f"✅ Connected to MongoDB: {settings.MONGODB_DB_NAME}")
            return

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(f"MongoDB connection failed (attempt {attempt}/{max_retries}): {e}")

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e


async def close_mongo_connection():
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    global _client, _database

    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None


async def check_database_health() -> bool:
    """
    Checks if the database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    if _client is None:
        logger.error("MongoDB client not initialized")
        return False

    try:
        await _client.admin.command("ping")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the MongoDB database instance.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database


def get_users_collection() -> AsyncIOMotorCollection:
    """
    Returns the users collection.

    Documents are camelCase and shared with the onboarding web app:
    - phone: str (unique)
    - firstName, lastName, fullName, email, dob
    - kycBasicCompleted, fundingCompleted, verifyCompleted, cardActive
    - fundedAmount, balance
    - virtualAccount: {bankName, accountNumber, accountName, rate}
    - card: {number, expiry, cvv, billingDescriptor}
    - congratsSent, congratsSentAt, waitlist, waitlistPosition
    - appliedEvents: list[str] (completion events already applied)
    """
    return get_database()[USERS_COLLECTION]
