import pytest
from fastapi.testclient import TestClient

from app.core.config import settings
from app.flow.dispatcher import get_message_dispatcher
from app.main import app

PREFIX = settings.API_PREFIX
PHONE = "+2348012345678"


def whatsapp_payload(message=None, **value):
    if message is not None:
        value["messages"] = [message]
        value.setdefault("contacts", [{"profile": {"name": "Ada"}, "wa_id": PHONE[1:]}])
    return {"object": "whatsapp_business_account", "entry": [{"changes": [{"value": value}]}]}


@pytest.fixture
def client(dispatcher):
    app.dependency_overrides[get_message_dispatcher] = lambda: dispatcher
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def verify_token(monkeypatch):
    monkeypatch.setattr(settings, "WHATSAPP_VERIFY_TOKEN", "s3cret")
    return "s3cret"


def test_verification_echoes_challenge(client, verify_token):
    response = client.get(
        f"{PREFIX}/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": verify_token, "hub.challenge": "1158201444"},
    )
    assert response.status_code == 200
    assert response.text == "1158201444"


def test_verification_rejects_wrong_token(client, verify_token):
    response = client.get(
        f"{PREFIX}/webhook",
        params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "1"},
    )
    assert response.status_code == 403
    assert response.json()["code"] == "AUTHENTICATION_FAILED"


def test_verification_rejects_wrong_mode(client, verify_token):
    response = client.get(
        f"{PREFIX}/webhook",
        params={"hub.mode": "unsubscribe", "hub.verify_token": verify_token, "hub.challenge": "1"},
    )
    assert response.status_code == 403


def test_verification_requires_mode_and_token(client, verify_token):
    response = client.get(f"{PREFIX}/webhook", params={"hub.challenge": "1"})
    assert response.status_code == 400


def test_text_message_is_dispatched(client, channel):
    payload = whatsapp_payload({"from": PHONE[1:], "id": "wamid.1", "type": "text", "text": {"body": "hi"}})

    response = client.post(f"{PREFIX}/webhook", json=payload)

    assert response.status_code == 200
    assert response.json()["intent"] == "greeting"
    assert len(channel.messages_to(PHONE)) == 1


def test_button_reply_is_dispatched(client, channel, collection):
    collection.seed(phone=PHONE, kycBasicCompleted=True)
    payload = whatsapp_payload({
        "from": PHONE[1:],
        "id": "wamid.2",
        "type": "interactive",
        "interactive": {"type": "button_reply", "button_reply": {"id": "fund", "title": "Fund"}},
    })

    response = client.post(f"{PREFIX}/webhook", json=payload)

    assert response.json()["intent"] == "fund"


def test_status_notification_is_ignored(client, channel):
    payload = whatsapp_payload(statuses=[{"id": "wamid.1", "status": "read"}])

    response = client.post(f"{PREFIX}/webhook", json=payload)

    assert response.status_code == 200
    assert response.json()["reason"] == "no_message"
    assert channel.sent == []


def test_malformed_payload_is_acknowledged(client, channel):
    response = client.post(f"{PREFIX}/webhook", json={"unexpected": True})

    assert response.status_code == 200
    assert response.json()["status"] == "ignored"
    assert channel.sent == []


def test_invalid_json_is_acknowledged(client):
    response = client.post(
        f"{PREFIX}/webhook", content=b"not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 200


def test_send_failures_still_acknowledged(client, channel):
    channel.fail_all = True
    payload = whatsapp_payload({"from": PHONE[1:], "id": "wamid.3", "type": "text", "text": {"body": "help"}})

    response = client.post(f"{PREFIX}/webhook", json=payload)

    assert response.status_code == 200
    assert response.json()["sent"] == 0


@pytest.mark.parametrize("value", [
    {"messages": {"0": {"from": PHONE[1:], "type": "text", "text": {"body": "hi"}}}},
    {"messages": ["not a message"]},
    {"messages": [{"from": 2348012345678, "type": "text", "text": {"body": "hi"}}]},
    {"messages": [{"from": "", "type": "text", "text": {"body": "hi"}}]},
    {"messages": [{"from": "whatsapp:", "type": "text", "text": {"body": "hi"}}]},
])
def test_structurally_broken_messages_are_acknowledged(client, channel, value):
    payload = {"object": "whatsapp_business_account", "entry": [{"changes": [{"value": value}]}]}

    response = client.post(f"{PREFIX}/webhook", json=payload)

    assert response.status_code == 200
    assert response.json() == {"status": "ignored", "reason": "invalid_payload"}
    assert channel.sent == []


@pytest.mark.parametrize("message", [
    {"from": PHONE[1:], "type": "text", "text": "hi"},
    {"from": PHONE[1:], "type": "text", "text": {"body": 42}},
    {"from": PHONE[1:], "type": "interactive", "interactive": "x"},
    {"from": PHONE[1:], "type": "interactive", "interactive": {"type": "button_reply", "button_reply": "fund"}},
    {"from": PHONE[1:], "type": "button", "button": ["payload"]},
])
def test_odd_message_bodies_are_treated_as_empty_text(client, channel, message):
    response = client.post(f"{PREFIX}/webhook", json=whatsapp_payload(message, contacts="Ada"))

    assert response.status_code == 200
    assert response.json()["status"] == "success"
    assert response.json()["intent"] == "none"
