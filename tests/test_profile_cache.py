import asyncio

from app.core.exceptions import UpstreamTimeout
from app.flow.states import Intent
from app.models.profile import UserProfile
from app.services.profile_cache import ProfileCache

import pytest

PHONE = "+2348012345678"


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_entries_expire_after_ttl():
    clock = FakeClock()
    cache = ProfileCache(ttl_seconds=30, clock=clock)
    cache.set(PHONE, UserProfile(phone=PHONE))

    clock.now += 29
    assert cache.get(PHONE) is not None

    clock.now += 2
    assert cache.get(PHONE) is None
    assert len(cache) == 0


def test_cached_snapshot_cannot_be_mutated_by_callers():
    cache = ProfileCache()
    cache.set(PHONE, UserProfile(phone=PHONE))

    cache.get(PHONE).funding_completed = True

    assert cache.get(PHONE).funding_completed is False


def test_zero_ttl_disables_caching():
    cache = ProfileCache(ttl_seconds=0)
    cache.set(PHONE, UserProfile(phone=PHONE))
    assert PHONE not in cache


async def test_profile_read_through_and_backend_confirmation(profiles, backend, collection, cache):
    backend.users[PHONE] = {"firstName": "Ada", "kycBasicCompleted": True}

    profile = await profiles.get_profile(PHONE)

    assert profile.first_name == "Ada"
    assert collection.by_phone(PHONE)["kycBasicCompleted"] is True
    assert PHONE in cache


async def test_unknown_user_not_cached(profiles, cache):
    assert await profiles.get_profile(PHONE) is None
    assert PHONE not in cache


async def test_backend_down_on_local_miss(profiles, backend):
    backend.fail_with = UpstreamTimeout()
    with pytest.raises(UpstreamTimeout):
        await profiles.get_profile(PHONE)


async def test_cache_served_without_store(profiles, collection, cache):
    collection.seed(phone=PHONE, firstName="Ada")
    await profiles.get_profile(PHONE)
    collection.documents.clear()

    cached = await profiles.get_profile(PHONE)
    assert cached.first_name == "Ada"
    assert await profiles.get_profile(PHONE, use_cache=False) is None


def test_set_with_stale_generation_is_dropped():
    cache = ProfileCache()
    generation = cache.generation(PHONE)
    cache.invalidate(PHONE)

    assert cache.set(PHONE, UserProfile(phone=PHONE), generation=generation) is False
    assert PHONE not in cache
    assert cache.set(PHONE, UserProfile(phone=PHONE), generation=cache.generation(PHONE)) is True


async def test_step_applied_during_lookup_is_not_hidden_by_cache(collection, profiles, steps, cache):
    collection.seed(phone=PHONE, firstName="Ada")
    read_started = asyncio.Event()
    release = asyncio.Event()
    original_find_one = collection.find_one
    reads = []

    async def slow_first_read(query):
        snapshot = await original_find_one(query)
        reads.append(query)
        if len(reads) == 1:
            read_started.set()
            await release.wait()
        return snapshot

    collection.find_one = slow_first_read

    lookup = asyncio.create_task(profiles.get_profile(PHONE))
    await read_started.wait()
    await steps.apply(Intent.KYC, PHONE, {"eventId": "kyc-1"})
    release.set()

    in_flight = await lookup
    assert in_flight.kyc_basic_completed is False
    assert PHONE not in cache

    served = await profiles.get_profile(PHONE)
    assert served.kyc_basic_completed is True
