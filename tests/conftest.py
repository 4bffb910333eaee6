import pytest

from app.flow.classifier import IntentClassifier
from app.flow.dispatcher import MessageDispatcher
from app.services.profile_cache import ProfileCache
from app.services.profile_repository import ProfileRepository
from app.services.profile_service import ProfileService
from app.services.step_service import StepService
from app.services.sweeper import CompletionSweeper
from fakes import FakeBackend, FakeCardIssuer, FakeChannel, FakeCollection

WEBAPP_URL = "https://forms.tokicard.test"


@pytest.fixture
def collection():
    return FakeCollection()


@pytest.fixture
def repository(collection):
    return ProfileRepository(collection)


@pytest.fixture
def cache():
    return ProfileCache(ttl_seconds=30)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def issuer():
    return FakeCardIssuer()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def profiles(repository, cache, backend):
    return ProfileService(repository, cache, backend)


@pytest.fixture
def steps(repository, cache, backend, issuer):
    return StepService(repository, cache, backend, issuer, default_rate=1520.0)


@pytest.fixture
def dispatcher(profiles, steps, channel):
    return MessageDispatcher(
        classifier=IntentClassifier(),
        profiles=profiles,
        steps=steps,
        channel=channel,
        webapp_url=WEBAPP_URL,
    )


@pytest.fixture
def sweeper(repository, channel, cache):
    return CompletionSweeper(
        repository=repository,
        channel=channel,
        cache=cache,
        interval=60,
        start_delay=0,
        message_delay=0,
    )
