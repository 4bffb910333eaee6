"""
app/services/profile_service.py

Purpose: Profile lookup for the conversation engine

- Read-through: cache, then MongoDB, then the account backend
- A user known only to the backend is saved locally on first lookup
- Negative lookups are not cached
"""

from typing import Optional

from app.models.profile import UserProfile
from app.services.backend_client import AccountBackendClient, get_backend_client
from app.services.profile_cache import ProfileCache, get_profile_cache
from app.services.profile_repository import ProfileRepository, get_profile_repository
from app.core.logging import get_logger

logger = get_logger(__name__)


class ProfileService:

    def __init__(self, repository: ProfileRepository, cache: ProfileCache, backend: AccountBackendClient):
        self.repository = repository
        self.cache = cache
        self.backend = backend

    async def get_profile(self, phone: str, use_cache: bool = True) -> Optional[UserProfile]:
        """
        Loads a user's profile.

        Args:
            phone: User handle
            use_cache: False for write paths that must see the stored state

        Returns:
            UserProfile, or None if neither store knows the user

        Raises:
            UpstreamTimeout: local miss and the backend is unreachable
        """
        if use_cache:
            cached = self.cache.get(phone)
            if cached is not None:
                return cached

        generation = self.cache.generation(phone)
        profile = await self.repository.get(phone)

        if profile is None:
            document = await self.backend.get_user(phone)
            if document:
                document = {**document, "phone": phone}
                logger.info("Profile confirmed by backend, saving locally", extra={"user_id": phone})
                profile = await self.repository.create(UserProfile.model_validate(document))

        if profile is not None:
            problems = profile.check_invariants()
            if problems:
                logger.warning(f"Inconsistent profile: {'; '.join(problems)}", extra={"user_id": phone})
            self.cache.set(phone, profile, generation=generation)

        return profile


_profile_service: Optional[ProfileService] = None


def get_profile_service() -> ProfileService:
    """Get or create the global profile service."""
    global _profile_service
    if _profile_service is None:
        _profile_service = ProfileService(
            repository=get_profile_repository(),
            cache=get_profile_cache(),
            backend=get_backend_client(),
        )
    return _profile_service
