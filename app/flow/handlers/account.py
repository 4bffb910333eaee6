"""
app/flow/handlers/account.py

Handles: balance and card details
"""

from typing import List

from app.flow.composer import compose
from app.flow.handlers.base import TurnContext
from app.flow.states import Intent
from app.schemas.outbound import OutboundMessage


async def handle_balance(turn: TurnContext) -> List[OutboundMessage]:
    return compose(Intent.BALANCE, turn.profile, turn.compose_context)


async def handle_card(turn: TurnContext) -> List[OutboundMessage]:
    return compose(Intent.CARD, turn.profile, turn.compose_context)
