"""
app/services/profile_cache.py

Purpose: Short-lived read-through cache of profile snapshots

- Keyed by user handle (phone)
- Entries expire after a TTL
- Every writer of profile state must call invalidate() before reporting
  success, so a snapshot is never served after a known mutation
"""

import time
from typing import Callable, Dict, Optional, Tuple

from app.models.profile import UserProfile
from app.core.logging import get_logger

logger = get_logger(__name__)


class ProfileCache:
    """
    In-process TTL cache. Access happens on the event loop thread only, so
    no locking is needed.
    """

    def __init__(self, ttl_seconds: float = 30, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, Tuple[float, UserProfile]] = {}
        # Bumped by invalidate(); a read that started under an older
        # generation must not repopulate the entry
        self._generations: Dict[str, int] = {}

    def get(self, phone: str) -> Optional[UserProfile]:
        entry = self._entries.get(phone)
        if entry is None:
            return None

        stored_at, profile = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[phone]
            return None

        # Copies keep callers from mutating the cached snapshot
        return profile.model_copy(deep=True)

    def generation(self, phone: str) -> int:
        """Token to capture before a store read and pass back to set()."""
        return self._generations.get(phone, 0)

    def set(self, phone: str, profile: UserProfile, generation: Optional[int] = None) -> bool:
        """
        Stores a snapshot.

        Returns False without storing when caching is off or when `phone`
        was invalidated since `generation` was captured.
        """
        if self.ttl_seconds <= 0:
            return False
        if generation is not None and generation != self.generation(phone):
            logger.debug("Stale profile read not cached", extra={"user_id": phone})
            return False
        self._entries[phone] = (self._clock(), profile.model_copy(deep=True))
        return True

    def invalidate(self, phone: str):
        self._generations[phone] = self.generation(phone) + 1
        if self._entries.pop(phone, None) is not None:
            logger.debug("Profile cache invalidated", extra={"user_id": phone})

    def __contains__(self, phone: str) -> bool:
        return self.get(phone) is not None

    def __len__(self) -> int:
        return len(self._entries)


_profile_cache: Optional[ProfileCache] = None


def get_profile_cache() -> ProfileCache:
    """Get or create the global profile cache."""
    global _profile_cache
    if _profile_cache is None:
        from app.core.config import settings
        _profile_cache = ProfileCache(ttl_seconds=settings.PROFILE_CACHE_TTL_SECONDS)
    return _profile_cache
