"""
app/services/profile_repository.py

Purpose: User profile persistence

- Reads and creates profile documents
- Applies step completions as one atomic, event-guarded update
- Write-once collection account and card records
- Queries and flags used by the completion sweeper
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo.errors import DuplicateKeyError

from app.db.mongo import get_users_collection
from app.models.profile import UserProfile
from app.core.logging import get_logger

logger = get_logger(__name__)


class ProfileRepository:
    """Motor-backed access to the users collection."""

    def __init__(self, collection=None):
        self._collection = collection

    @property
    def collection(self):
        if self._collection is None:
            self._collection = get_users_collection()
        return self._collection

    async def get(self, phone: str) -> Optional[UserProfile]:
        document = await self.collection.find_one({"phone": phone})
        return UserProfile.from_document(document)

    async def create(self, profile: UserProfile) -> UserProfile:
        """
        Inserts a new profile; if another request created it first, the
        stored one is returned instead.
        """
        # Absent rather than null: $inc rejects null fields
        document = {key: value for key, value in profile.to_document().items() if value is not None}
        if document.get("createdAt") is None:
            document["createdAt"] = datetime.utcnow()

        try:
            await self.collection.insert_one(document)
            logger.info("Profile created", extra={"user_id": profile.phone})
            return UserProfile.from_document(document)
        except DuplicateKeyError:
            logger.info("Profile already exists", extra={"user_id": profile.phone})
            return await self.get(profile.phone)

    async def apply_completion(
        self,
        phone: str,
        event_id: str,
        set_fields: Dict[str, Any],
        inc_fields: Optional[Dict[str, float]] = None,
        write_once: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Applies one completion event atomically.

        The update only matches while `event_id` is not yet recorded and every
        write-once field is still empty, so redelivered events change nothing.

        Args:
            phone: User handle
            event_id: Idempotency key of the completion event
            set_fields: Flags and fields to set
            inc_fields: Amounts to add
            write_once: Records to set only if absent (card, virtualAccount)

        Returns:
            True if the document was modified
        """
        write_once = write_once or {}
        query = {"phone": phone, "appliedEvents": {"$ne": event_id}}
        for field in write_once:
            query[field] = None

        update: Dict[str, Any] = {
            "$set": {**set_fields, **write_once, "updatedAt": datetime.utcnow()},
            "$push": {"appliedEvents": event_id},
        }
        if inc_fields:
            update["$inc"] = inc_fields

        result = await self.collection.update_one(query, update)
        return result.modified_count > 0

    async def set_collection_account_once(self, phone: str, account: Dict[str, Any]) -> bool:
        result = await self.collection.update_one(
            {"phone": phone, "virtualAccount": None},
            {"$set": {"virtualAccount": account, "updatedAt": datetime.utcnow()}},
        )
        return result.modified_count > 0

    async def find_pending_congratulations(self, limit: int = 100) -> List[UserProfile]:
        """Fully onboarded users who have not been congratulated yet."""
        cursor = self.collection.find({
            "kycBasicCompleted": True,
            "fundingCompleted": True,
            "verifyCompleted": True,
            "congratsSent": {"$ne": True},
            "phone": {"$exists": True, "$nin": [None, ""]},
        }).limit(limit)
        documents = await cursor.to_list(length=limit)
        return [UserProfile.from_document(document) for document in documents]

    async def mark_congratulated(self, phone: str) -> bool:
        result = await self.collection.update_one(
            {"phone": phone, "congratsSent": {"$ne": True}},
            {"$set": {"congratsSent": True, "congratsSentAt": datetime.utcnow()}},
        )
        return result.modified_count > 0


_profile_repository: Optional[ProfileRepository] = None


def get_profile_repository() -> ProfileRepository:
    """Get or create the global profile repository."""
    global _profile_repository
    if _profile_repository is None:
        _profile_repository = ProfileRepository()
    return _profile_repository
