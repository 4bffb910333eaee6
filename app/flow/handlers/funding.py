"""
app/flow/handlers/funding.py

Handles: funding menu, crypto deposit and NGN bank transfer

- Bank transfer allocates the user's collection account on first use
"""

from typing import List

from app.core.logging import get_logger
from app.flow.composer import compose
from app.flow.handlers.base import TurnContext
from app.flow.states import Intent
from app.schemas.outbound import OutboundMessage

logger = get_logger(__name__)


async def handle_fund(turn: TurnContext) -> List[OutboundMessage]:
    return compose(Intent.FUND, turn.profile, turn.compose_context)


async def handle_crypto_fund(turn: TurnContext) -> List[OutboundMessage]:
    return compose(Intent.CRYPTO_FUND, turn.profile, turn.compose_context)


async def handle_fiat_fund(turn: TurnContext) -> List[OutboundMessage]:
    ctx = turn.compose_context
    ctx.collection_account = await turn.steps.ensure_collection_account(turn.profile)
    return compose(Intent.FIAT_FUND, turn.profile, ctx)
