"""
app/flow/handlers/base.py

Purpose: Shared types for intent handlers

- TurnContext: everything one handler invocation may read
- Handlers run after the gate has allowed the intent and return the
  ordered messages to send
"""

from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from app.flow.composer import ComposeContext
from app.flow.states import Intent
from app.models.profile import UserProfile
from app.schemas.outbound import OutboundMessage
from app.schemas.webhook import InboundMessage
from app.services.step_service import StepService


@dataclass
class TurnContext:
    message: InboundMessage
    intent: Intent
    profile: Optional[UserProfile]
    compose_context: ComposeContext
    steps: Optional[StepService] = None
    free_activation_rule: str = "waitlist_position"
    free_activation_limit: int = 500

    @property
    def phone(self) -> str:
        return self.message.phone


Handler = Callable[[TurnContext], Awaitable[List[OutboundMessage]]]
