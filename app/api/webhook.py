"""
app/api/webhook.py

Purpose: WhatsApp webhook endpoint

- GET: subscription handshake (echoes the challenge when the token matches)
- POST: receives message notifications, normalizes them and passes control
  to the dispatcher
- POST always acknowledges with 200 so WhatsApp does not redeliver
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import PlainTextResponse
from typing import Optional

from app.core.config import settings
from app.core.exceptions import AuthenticationError, ValidationError
from app.core.logging import get_logger
from app.flow.dispatcher import MessageDispatcher, get_message_dispatcher
from app.schemas.webhook import parse_whatsapp_payload

logger = get_logger(__name__)
router = APIRouter()


@router.get("/webhook", response_class=PlainTextResponse)
async def webhook_verification(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
):
    """
    Webhook verification handshake

    Returns the challenge only if mode is 'subscribe' and the token matches
    WHATSAPP_VERIFY_TOKEN.
    """
    if not mode or not token:
        raise HTTPException(status_code=400, detail="Missing hub.mode or hub.verify_token")

    if mode == "subscribe" and settings.WHATSAPP_VERIFY_TOKEN and token == settings.WHATSAPP_VERIFY_TOKEN:
        logger.info("✅ Webhook verified")
        return PlainTextResponse(content=challenge or "")

    logger.warning("Webhook verification failed")
    raise AuthenticationError("Webhook verification token mismatch")


@router.post("/webhook")
async def webhook_handler(
    request: Request,
    dispatcher: MessageDispatcher = Depends(get_message_dispatcher),
):
    """
    Receives WhatsApp Cloud API notifications.

    Malformed payloads and processing failures are logged and acknowledged.
    """
    try:
        payload = await request.json()
    except ValueError:
        logger.error("Webhook body is not valid JSON")
        return {"status": "ignored", "reason": "invalid_json"}

    try:
        message = parse_whatsapp_payload(payload)
    except ValidationError as e:
        logger.warning(f"Invalid webhook payload: {e.message}")
        return {"status": "ignored", "reason": "invalid_payload"}
    except Exception as e:
        logger.error(f"Unreadable webhook payload: {e}", exc_info=True)
        return {"status": "ignored", "reason": "invalid_payload"}

    if message is None:
        # Delivery/read status notifications
        return {"status": "ignored", "reason": "no_message"}

    logger.info(f"📱 WhatsApp message from {message.phone}: {message.text[:50]}")

    try:
        result = await dispatcher.dispatch_message(message)
    except Exception as e:
        logger.error(f"Webhook error: {e}", exc_info=True)
        return {"status": "error"}

    return {"status": "success", "intent": result.intent.value, "sent": result.sent}
