"""
utils/whatsapp_utils.py

Purpose: WhatsApp Cloud API message builders and parsers

- Constructs text, reply-button and CTA-URL payloads
- Extracts text and button ids from inbound webhook messages
"""

from typing import List, Dict, Optional, Any

MAX_BUTTONS = 3
MAX_BUTTON_TITLE = 20
MAX_CTA_LABEL = 20


def normalize_recipient(phone: str) -> str:
    """Cloud API expects digits only, without '+' or 'whatsapp:' prefix."""
    phone = phone.replace("whatsapp:", "")
    return "".join(ch for ch in phone if ch.isdigit())


def normalize_phone(handle: str) -> str:
    """
    Canonical user handle: '+' followed by digits only.

    Accepts '2348012345678', '+234 801 234 5678' and 'whatsapp:+2348012345678'.

    Raises:
        ValueError: if the handle holds no digits
    """
    digits = normalize_recipient(handle)
    if not digits:
        raise ValueError(f"Not a phone number: {handle!r}")
    return f"+{digits}"


def create_text_message(to: str, text: str, preview_url: bool = False) -> Dict[str, Any]:
    """
    Creates a simple text message payload.

    Args:
        to: Recipient phone
        text: Message text (supports WhatsApp markdown)
        preview_url: Whether to show URL preview
    """
    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": normalize_recipient(to),
        "type": "text",
        "text": {"body": text, "preview_url": preview_url},
    }


def create_button_message(
    to: str,
    text: str,
    buttons: List[Dict[str, str]],
    footer: Optional[str] = None
) -> Dict[str, Any]:
    """
    Creates an interactive quick-reply button message.

    Args:
        to: Recipient phone
        text: Body text
        buttons: List of dicts with 'id' and 'title' keys
                 Max 3 buttons, each title max 20 chars
        footer: Optional footer text

    Example:
        buttons = [
            {"id": "kyc", "title": "Verify Identity"},
            {"id": "help", "title": "Help"}
        ]
    """
    if len(buttons) > MAX_BUTTONS:
        raise ValueError(f"WhatsApp allows at most {MAX_BUTTONS} reply buttons")

    payload = {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": normalize_recipient(to),
        "type": "interactive",
        "interactive": {
            "type": "button",
            "body": {"text": text},
            "action": {
                "buttons": [
                    {
                        "type": "reply",
                        "reply": {
                            "id": btn["id"],
                            "title": btn["title"][:MAX_BUTTON_TITLE]
                        }
                    }
                    for btn in buttons
                ]
            }
        }
    }

    if footer:
        payload["interactive"]["footer"] = {"text": footer}

    return payload


def create_cta_message(to: str, text: str, url: str, label: str) -> Dict[str, Any]:
    """
    Creates an interactive call-to-action message that opens a URL.

    Args:
        to: Recipient phone
        text: Body text
        url: Link opened by the button
        label: Button label (max 20 chars)
    """
    return {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": normalize_recipient(to),
        "type": "interactive",
        "interactive": {
            "type": "cta_url",
            "body": {"text": text},
            "action": {
                "name": "cta_url",
                "parameters": {
                    "display_text": label[:MAX_CTA_LABEL],
                    "url": url
                }
            }
        }
    }


def parse_button_response(message: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """
    Parses a button or list selection from a webhook message.

    Returns:
        {"id": ..., "title": ...} of the tapped option, or None
    """
    if message.get("type") == "interactive":
        interactive = _as_dict(message.get("interactive"))
        reply_type = interactive.get("type")
        if reply_type in ("button_reply", "list_reply"):
            reply = _as_dict(interactive.get(reply_type))
            if reply.get("id"):
                return {"id": str(reply["id"]), "title": _as_text(reply.get("title"))}

    # Template quick-reply buttons arrive as type "button"
    if message.get("type") == "button":
        button = _as_dict(message.get("button"))
        if button.get("payload") or button.get("text"):
            return {"id": _as_text(button.get("payload")), "title": _as_text(button.get("text"))}

    return None


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def get_message_text(message: Dict[str, Any]) -> Optional[str]:
    """
    Extracts text content from any message type.

    Args:
        message: Webhook message payload

    Returns:
        Message text content (button title for selections)
    """
    msg_type = message.get("type")

    if msg_type == "text":
        body = _as_dict(message.get("text")).get("body")
        return body if isinstance(body, str) else None

    selection = parse_button_response(message)
    if selection:
        return selection["title"]

    return None
