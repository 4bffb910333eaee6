"""
app/schemas/webhook.py

Purpose: WhatsApp webhook payload schemas and parsers

- Validates incoming WhatsApp Cloud API notifications
- Normalizes text messages and button taps into InboundMessage
- Status-only notifications (delivered/read) yield no message
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime

from app.core.exceptions import ValidationError
from utils.whatsapp_utils import get_message_text, normalize_phone, parse_button_response


class InboundMessage(BaseModel):
    """
    Normalized message format for internal processing
    """
    phone: str = Field(..., min_length=1, description="User's phone number in E.164 format")
    text: str = Field(default="", description="Message text, or the tapped button's title")
    name: Optional[str] = Field(default=None, description="User's WhatsApp display name")
    message_id: Optional[str] = Field(default=None, description="Provider message identifier")
    timestamp: datetime = Field(default_factory=datetime.utcnow)

    # Set when the user tapped a button or list row
    selection_id: Optional[str] = None
    selection_title: Optional[str] = None

    model_config = {
        "json_schema_extra": {
            "example": {
                "phone": "+2348012345678",
                "text": "show my card",
                "message_id": "wamid.abc123",
            }
        }
    }

    @property
    def is_selection(self) -> bool:
        return self.selection_id is not None


def parse_whatsapp_payload(payload: Dict[str, Any]) -> Optional[InboundMessage]:
    """
    Parses a WhatsApp Cloud API webhook notification

    Format (JSON):
    {
        "object": "whatsapp_business_account",
        "entry": [{
            "changes": [{
                "value": {
                    "contacts": [{"profile": {"name": "Ada"}, "wa_id": "2348012345678"}],
                    "messages": [{
                        "from": "2348012345678",
                        "id": "wamid.abc123",
                        "type": "text",
                        "text": {"body": "Hi"}
                    }]
                }
            }]
        }]
    }

    Returns:
        InboundMessage for the first message, or None for status updates

    Raises:
        ValidationError: payload does not have the notification structure
    """
    if not isinstance(payload, dict):
        raise ValidationError("Webhook payload must be a JSON object")

    try:
        value = payload["entry"][0]["changes"][0]["value"]
    except (KeyError, IndexError, TypeError):
        raise ValidationError("Webhook payload has no entry/changes/value")

    if not isinstance(value, dict):
        raise ValidationError("Webhook value must be an object")

    messages = value.get("messages") or []
    if not isinstance(messages, list):
        raise ValidationError("Webhook messages must be a list")
    if not messages:
        return None

    message = messages[0]
    if not isinstance(message, dict):
        raise ValidationError("Webhook message must be an object")

    sender = message.get("from")
    if not isinstance(sender, str) or not sender:
        raise ValidationError("Webhook message has no sender")
    try:
        phone = normalize_phone(sender)
    except ValueError as e:
        raise ValidationError(str(e))

    name = None
    contacts = value.get("contacts")
    if isinstance(contacts, list) and contacts and isinstance(contacts[0], dict):
        contact_profile = contacts[0].get("profile")
        if isinstance(contact_profile, dict) and isinstance(contact_profile.get("name"), str):
            name = contact_profile["name"]

    message_id = message.get("id")
    selection = parse_button_response(message)

    return InboundMessage(
        phone=phone,
        text=get_message_text(message) or "",
        name=name,
        message_id=message_id if isinstance(message_id, str) else None,
        selection_id=selection["id"] if selection else None,
        selection_title=selection["title"] if selection else None,
    )
