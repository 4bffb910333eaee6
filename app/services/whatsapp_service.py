"""
app/services/whatsapp_service.py

Purpose: WhatsApp message sending

- Sends OutboundMessage values via the WhatsApp Cloud API
- Text, reply-button and CTA-URL messages
- Failures raise TransportSendFailure; nothing is retried here
"""

import httpx
from typing import Dict, Any, Optional
from app.core.config import settings
from app.core.exceptions import TransportSendFailure
from app.core.logging import get_logger
from app.schemas.outbound import OutboundMessage
from utils.whatsapp_utils import create_button_message, create_cta_message, create_text_message

logger = get_logger(__name__)


def build_payload(phone: str, message: OutboundMessage) -> Dict[str, Any]:
    """Maps a channel-neutral message to a Cloud API payload."""
    if message.kind == "buttons":
        buttons = [{"id": c.id, "title": c.title} for c in message.choices]
        return create_button_message(phone, message.text, buttons)
    if message.kind == "cta":
        return create_cta_message(phone, message.text, message.url, message.url_label or "Open")
    return create_text_message(phone, message.text)


class WhatsAppService:
    """Service for sending WhatsApp messages via the Cloud API"""

    def __init__(
        self,
        token: Optional[str] = None,
        messages_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.token = token if token is not None else settings.WHATSAPP_TOKEN
        self.messages_url = messages_url or settings.whatsapp_messages_url
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def send(self, phone: str, message: OutboundMessage) -> Optional[str]:
        """
        Sends one message.

        Args:
            phone: Recipient phone (+2348012345678)
            message: Message to deliver

        Returns:
            Provider message id, if returned

        Raises:
            TransportSendFailure: on timeout, network error or non-2xx status
        """
        payload = build_payload(phone, message)

        logger.info(f"📤 Sending {message.kind} message", extra={"user_id": phone})

        try:
            response = await self.client.post(
                self.messages_url,
                json=payload,
                headers={"Authorization": f"Bearer {self.token}"},
            )
        except httpx.TimeoutException:
            logger.error("WhatsApp API timeout", extra={"user_id": phone})
            raise TransportSendFailure("WhatsApp API timeout")
        except httpx.RequestError as e:
            logger.error(f"WhatsApp API unreachable: {e}", extra={"user_id": phone})
            raise TransportSendFailure("WhatsApp API unreachable")

        if response.status_code not in (200, 201):
            logger.error(
                f"❌ WhatsApp API error: {response.status_code} - {response.text}",
                extra={"user_id": phone},
            )
            raise TransportSendFailure(
                f"WhatsApp API error: {response.status_code}",
                details={"status": response.status_code},
            )

        try:
            body = response.json()
        except ValueError:
            logger.error("WhatsApp API returned a non-JSON body", extra={"user_id": phone})
            raise TransportSendFailure("WhatsApp API returned an unreadable response")

        messages = body.get("messages") if isinstance(body, dict) else None
        if not isinstance(messages, list) or not messages or not isinstance(messages[0], dict):
            messages = [{}]
        message_id = messages[0].get("id")
        logger.info(f"✅ Message sent: id={message_id}", extra={"user_id": phone})
        return message_id

    def is_configured(self) -> bool:
        """Check if the Cloud API credentials are set"""
        return bool(self.token and settings.WHATSAPP_PHONE_ID)

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None


_whatsapp_service: Optional[WhatsAppService] = None


def get_whatsapp_service() -> WhatsAppService:
    """Get or create the global WhatsApp service."""
    global _whatsapp_service
    if _whatsapp_service is None:
        _whatsapp_service = WhatsAppService()
    return _whatsapp_service


async def close_whatsapp_service():
    global _whatsapp_service
    if _whatsapp_service:
        await _whatsapp_service.close()
        _whatsapp_service = None
