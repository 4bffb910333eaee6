import asyncio
import logging

import httpx
import pytest
from fastapi.testclient import TestClient

from app.core.logging import ContextFilter, LogContext, current_log_context, get_logger, setup_logging
from app.flow.classifier import IntentClassifier
from app.flow.dispatcher import MessageDispatcher
from app.main import app
from app.schemas.webhook import InboundMessage
from app.services.step_service import get_step_service
from app.services.sweeper import CompletionSweeper
from app.services.whatsapp_service import WhatsAppService, get_whatsapp_service

PHONE = "+2348012345678"
URL = "https://graph.facebook.test/v17.0/123/messages"

logger = get_logger(__name__)


class RecordingHandler(logging.Handler):
    def __init__(self):
        super().__init__(level=logging.DEBUG)
        self.records = []
        self.addFilter(ContextFilter())

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def records():
    handler = RecordingHandler()
    target = logging.getLogger(logger.name)
    previous_level = target.level
    target.setLevel(logging.DEBUG)
    target.addHandler(handler)
    yield handler.records
    target.removeHandler(handler)
    target.setLevel(previous_level)


@pytest.fixture
def configured_logging():
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    setup_logging()
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


@pytest.fixture
def posts():
    return []


@pytest.fixture
def whatsapp(posts):
    def handler(request):
        posts.append(request)
        return httpx.Response(200, json={"messages": [{"id": f"wamid.{len(posts)}"}]})

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WhatsAppService(token="tkn", messages_url=URL, timeout=1.0, client=http)


def test_context_fields_reach_records(records):
    with LogContext(user_id=PHONE, intent="fund"):
        logger.info("inside")
    logger.info("outside")

    inside, outside = records
    assert inside.user_id == PHONE and inside.intent == "fund"
    assert not hasattr(outside, "user_id")


def test_explicit_extra_wins_over_context(records):
    with LogContext(user_id=PHONE):
        logger.info("explicit", extra={"user_id": "+2349000000000"})

    (record,) = records
    assert record.user_id == "+2349000000000"


def test_nested_contexts_merge_and_unwind():
    with LogContext(user_id=PHONE):
        with LogContext(state="kyc"):
            assert current_log_context() == {"user_id": PHONE, "state": "kyc"}
        assert current_log_context() == {"user_id": PHONE}
    assert current_log_context() == {}


async def test_overlapping_turns_keep_their_own_context(records):
    async def turn(phone, delay):
        with LogContext(user_id=phone):
            await asyncio.sleep(delay)
            logger.info(f"turn {phone}")

    # The first turn finishes before the second
    await asyncio.gather(turn("+2341111111111", 0.01), turn("+2342222222222", 0.03))
    logger.info("unrelated")

    first, second, unrelated = records
    assert first.user_id == "+2341111111111"
    assert second.user_id == "+2342222222222"
    assert not hasattr(unrelated, "user_id")


@pytest.mark.usefixtures("configured_logging")
async def test_turn_sends_through_whatsapp_with_logging_configured(profiles, steps, whatsapp, posts):
    dispatcher = MessageDispatcher(
        classifier=IntentClassifier(),
        profiles=profiles,
        steps=steps,
        channel=whatsapp,
        webapp_url="https://forms.tokicard.test",
    )

    result = await dispatcher.dispatch_message(InboundMessage(phone=PHONE, text="hi"))

    assert result.error is None
    assert result.sent == 1
    assert len(posts) == 1


@pytest.mark.usefixtures("configured_logging")
async def test_fiat_funding_with_logging_configured(profiles, steps, whatsapp, posts, collection, backend):
    collection.seed(phone=PHONE, firstName="Ada", kycBasicCompleted=True)
    dispatcher = MessageDispatcher(
        classifier=IntentClassifier(),
        profiles=profiles,
        steps=steps,
        channel=whatsapp,
        webapp_url="https://forms.tokicard.test",
    )

    result = await dispatcher.dispatch_message(InboundMessage(phone=PHONE, text="bank transfer"))

    assert result.error is None
    assert result.sent == len(result.messages) == len(posts)
    assert backend.account_requests
    assert collection.by_phone(PHONE)["virtualAccount"]["accountNumber"] == "0123456789"


@pytest.mark.usefixtures("configured_logging")
def test_callback_applies_with_logging_configured(steps, whatsapp, posts, collection):
    app.dependency_overrides[get_step_service] = lambda: steps
    app.dependency_overrides[get_whatsapp_service] = lambda: whatsapp
    try:
        response = TestClient(app).post("/webhooks/registration", json={"phone": PHONE, "status": "completed"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert response.json()["status"] == "applied"
    assert collection.by_phone(PHONE) is not None


@pytest.mark.usefixtures("configured_logging")
async def test_sweeper_congratulates_with_logging_configured(repository, cache, whatsapp, posts, collection):
    collection.seed(
        phone=PHONE,
        firstName="Ada",
        kycBasicCompleted=True,
        fundingCompleted=True,
        verifyCompleted=True,
    )
    sweeper = CompletionSweeper(repository=repository, channel=whatsapp, cache=cache, start_delay=0, message_delay=0)

    result = await sweeper.run_once()

    assert result.notified == 1
    assert len(posts) == 3
    assert collection.by_phone(PHONE)["congratsSent"] is True
