"""
app/db/indexes.py

Purpose: Database index management

- Unique index on the user handle
- Compound index backing the completion sweeper query
"""

from app.db.mongo import get_users_collection
from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        users = get_users_collection()

        # Unique index on phone (the WhatsApp user handle)
        await users.create_index("phone", unique=True, sparse=True, name="phone_unique")
        logger.debug("Created unique index on users.phone")

        # Sweeper: fully onboarded users not yet congratulated
        await users.create_index(
            [
                ("congratsSent", 1),
                ("kycBasicCompleted", 1),
                ("fundingCompleted", 1),
                ("verifyCompleted", 1),
            ],
            name="completion_sweep_idx"
        )
        logger.debug("Created completion sweep index on users")

        await users.create_index("createdAt", name="created_at_idx")

        user_indexes = await users.index_information()
        logger.info(f"✅ Database indexes ready: users={len(user_indexes)}")

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    import asyncio
    from app.db.mongo import connect_to_mongo, close_mongo_connection

    async def main():
        await connect_to_mongo()
        await create_indexes()
        await close_mongo_connection()

    asyncio.run(main())
