"""
app/schemas/outbound.py

Purpose: Channel-neutral outbound message schema

- Plain text, reply-button and call-to-action (link) messages
- Enforces the WhatsApp limit of 3 quick-reply choices per message
"""

from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from app.flow.states import Intent
from utils.constants import BUTTON_TITLES

MAX_CHOICES = 3


class Choice(BaseModel):
    """Quick-reply option; `id` is the intent value the tap resolves to."""
    id: str
    title: str = Field(..., max_length=20)


class OutboundMessage(BaseModel):
    kind: Literal["text", "buttons", "cta"] = "text"
    text: str
    choices: List[Choice] = Field(default_factory=list)
    url: Optional[str] = None
    url_label: Optional[str] = None

    @field_validator("choices")
    @classmethod
    def validate_choice_count(cls, v):
        if len(v) > MAX_CHOICES:
            raise ValueError(f"At most {MAX_CHOICES} choices per message")
        return v

    @model_validator(mode="after")
    def validate_kind(self):
        if self.kind == "buttons" and not self.choices:
            raise ValueError("Button messages need at least one choice")
        if self.kind == "cta" and not self.url:
            raise ValueError("CTA messages need a url")
        return self

    @classmethod
    def text_message(cls, text: str) -> "OutboundMessage":
        return cls(kind="text", text=text)

    @classmethod
    def buttons(cls, text: str, *intents: Intent) -> "OutboundMessage":
        return cls(kind="buttons", text=text, choices=[make_choice(i) for i in intents])

    @classmethod
    def cta(cls, text: str, url: str, label: str) -> "OutboundMessage":
        return cls(kind="cta", text=text, url=url, url_label=label)


def make_choice(intent: Intent) -> Choice:
    return Choice(id=intent.value, title=BUTTON_TITLES[intent.value])
