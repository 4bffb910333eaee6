import json

import httpx
import pytest

from app.core.exceptions import TransportSendFailure, ValidationError
from app.flow.states import Intent
from app.schemas.outbound import OutboundMessage
from app.schemas.webhook import parse_whatsapp_payload
from app.services.whatsapp_service import WhatsAppService, build_payload

URL = "https://graph.facebook.test/v17.0/123/messages"
PHONE = "+2348012345678"


def make_service(handler):
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WhatsAppService(token="tkn", messages_url=URL, timeout=1.0, client=http)


async def test_send_posts_bearer_authenticated_payload():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"messages": [{"id": "wamid.9"}]})

    message_id = await make_service(handler).send(PHONE, OutboundMessage.text_message("hello"))

    assert message_id == "wamid.9"
    assert seen["auth"] == "Bearer tkn"
    assert seen["body"]["to"] == "2348012345678"
    assert seen["body"]["text"]["body"] == "hello"


async def test_send_failure_raises():
    service = make_service(lambda r: httpx.Response(400, json={"error": {"message": "bad"}}))
    with pytest.raises(TransportSendFailure):
        await service.send(PHONE, OutboundMessage.text_message("hello"))


async def test_send_timeout_raises():
    def handler(request):
        raise httpx.ConnectTimeout("timeout", request=request)

    with pytest.raises(TransportSendFailure):
        await make_service(handler).send(PHONE, OutboundMessage.text_message("hello"))


async def test_unreadable_success_body_raises_send_failure():
    service = make_service(lambda r: httpx.Response(200, content=b"<html>ok</html>"))
    with pytest.raises(TransportSendFailure):
        await service.send(PHONE, OutboundMessage.text_message("hello"))


async def test_success_without_message_id_returns_none():
    service = make_service(lambda r: httpx.Response(200, json={"messages": "queued"}))
    assert await service.send(PHONE, OutboundMessage.text_message("hello")) is None


def test_button_and_cta_payloads():
    buttons = build_payload(PHONE, OutboundMessage.buttons("Pick", Intent.CRYPTO_FUND, Intent.FIAT_FUND))
    assert buttons["interactive"]["type"] == "button"
    replies = [b["reply"] for b in buttons["interactive"]["action"]["buttons"]]
    assert replies[0] == {"id": "crypto_fund", "title": "Fund with Crypto"}

    cta = build_payload(PHONE, OutboundMessage.cta("Start", "https://x.test/kycBasic", "Start KYC"))
    assert cta["interactive"]["type"] == "cta_url"
    assert cta["interactive"]["action"]["parameters"]["url"] == "https://x.test/kycBasic"


def test_outbound_message_rejects_more_than_three_choices():
    with pytest.raises(ValueError):
        OutboundMessage.buttons("Too many", Intent.FUND, Intent.CARD, Intent.HELP, Intent.BALANCE)


def test_parse_text_and_button_reply():
    text = parse_whatsapp_payload({"entry": [{"changes": [{"value": {
        "messages": [{"from": "2348012345678", "id": "wamid.1", "type": "text", "text": {"body": "Hi"}}],
    }}]}]})
    assert text.phone == PHONE
    assert text.text == "Hi"
    assert not text.is_selection

    reply = parse_whatsapp_payload({"entry": [{"changes": [{"value": {
        "messages": [{
            "from": "2348012345678",
            "type": "interactive",
            "interactive": {"type": "list_reply", "list_reply": {"id": "balance", "title": "Check Balance"}},
        }],
    }}]}]})
    assert reply.selection_id == "balance"
    assert reply.text == "Check Balance"


def test_parse_rejects_malformed_payloads():
    with pytest.raises(ValidationError):
        parse_whatsapp_payload({"entry": []})
    with pytest.raises(ValidationError):
        parse_whatsapp_payload({"entry": [{"changes": [{"value": {"messages": [{"type": "text"}]}}]}]})
