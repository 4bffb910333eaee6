"""
app/flow/handlers/onboarding.py

Handles: registration, KYC and card activation

- Registration and KYC link out to the onboarding web app
- Activation is granted for free to eligible waitlist members; everyone
  else is sent to the activation-fee payment page
"""

from typing import List

from app.core.logging import get_logger, LogContext
from app.flow.composer import compose
from app.flow.handlers.base import TurnContext
from app.flow.states import Intent
from app.schemas.outbound import OutboundMessage
from app.services.step_service import free_activation_eligible

logger = get_logger(__name__)


async def handle_register(turn: TurnContext) -> List[OutboundMessage]:
    return compose(Intent.REGISTER, turn.profile, turn.compose_context)


async def handle_kyc(turn: TurnContext) -> List[OutboundMessage]:
    return compose(Intent.KYC, turn.profile, turn.compose_context)


async def handle_activate(turn: TurnContext) -> List[OutboundMessage]:
    """
    Activates the card for free when the waitlist rule allows it.

    The free activation uses a per-user event id, so repeated requests
    apply it once.
    """
    profile = turn.profile
    ctx = turn.compose_context

    with LogContext(user_id=turn.phone, intent=Intent.ACTIVATE.value):
        if not profile.card_active and free_activation_eligible(
            profile, turn.free_activation_rule, turn.free_activation_limit
        ):
            delta = await turn.steps.apply(
                Intent.ACTIVATE,
                turn.phone,
                {"eventId": f"activate:free:{turn.phone}", "free": True},
            )
            logger.info(f"Free activation applied={delta.applied}")
            # Pre-activation snapshot, so the user sees the free-activation copy
            ctx.free_activation = True

        return compose(Intent.ACTIVATE, profile, ctx)
