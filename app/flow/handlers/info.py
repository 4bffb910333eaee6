"""
app/flow/handlers/info.py

Handles: greeting, help, about, features, how-it-works, security, fees,
referral, acknowledgements, follow-ups and unrecognized input

- Pure composition, no side effects
"""

from typing import List

from app.flow.composer import compose
from app.flow.handlers.base import TurnContext
from app.schemas.outbound import OutboundMessage


async def handle_info(turn: TurnContext) -> List[OutboundMessage]:
    return compose(turn.intent, turn.profile, turn.compose_context)
