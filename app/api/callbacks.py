"""
app/api/callbacks.py

Purpose: Collaborator step-completion webhooks

- Onboarding form (registration), identity provider (KYC, verification),
  payment provider (activation fee, card funding)
- Approved/confirmed statuses apply the step and notify the user
- Errors go through the app's exception handlers: retryable failures
  answer 503 so the provider redelivers, permanent ones 404/409/422
"""

from dataclasses import dataclass
from typing import FrozenSet, Optional

from fastapi import APIRouter, Depends

from app.core.exceptions import TransportSendFailure
from app.core.logging import get_logger, LogContext
from app.flow.composer import format_amount
from app.flow.states import Intent
from app.schemas.callbacks import (
    CollaboratorCallback,
    KYC_APPROVED_STATUSES,
    PAYMENT_CONFIRMED_STATUSES,
    REGISTRATION_COMPLETED_STATUSES,
)
from app.schemas.outbound import OutboundMessage
from app.services.step_service import CompletionStep, StepService, get_step_service
from app.services.whatsapp_service import WhatsAppService, get_whatsapp_service
from utils import constants as c

logger = get_logger(__name__)
router = APIRouter()


@dataclass(frozen=True)
class CallbackRoute:
    step: CompletionStep
    accepted_statuses: FrozenSet[str]
    message: str
    next_intent: Optional[Intent] = None


CALLBACK_ROUTES = {
    "registration": CallbackRoute(
        CompletionStep.REGISTER, REGISTRATION_COMPLETED_STATUSES, c.REGISTRATION_CONFIRMED_MESSAGE, Intent.KYC
    ),
    "kyc": CallbackRoute(
        CompletionStep.KYC, KYC_APPROVED_STATUSES, c.KYC_APPROVED_MESSAGE, Intent.FUND
    ),
    "verification": CallbackRoute(
        CompletionStep.VERIFY, KYC_APPROVED_STATUSES, c.VERIFICATION_APPROVED_MESSAGE
    ),
    "payment": CallbackRoute(
        CompletionStep.ACTIVATE, PAYMENT_CONFIRMED_STATUSES, c.PAYMENT_CONFIRMED_MESSAGE, Intent.CARD
    ),
    "funding": CallbackRoute(
        CompletionStep.FUND, PAYMENT_CONFIRMED_STATUSES, c.FUNDING_CONFIRMED_MESSAGE, Intent.BALANCE
    ),
}


def notification_for(route: CallbackRoute, amount: Optional[float] = None) -> OutboundMessage:
    text = route.message
    if "{amount}" in text:
        text = text.format(amount=format_amount(amount))
    if route.next_intent is None:
        return OutboundMessage.text_message(text)
    return OutboundMessage.buttons(text, route.next_intent, Intent.HELP)


async def handle_callback(
    name: str,
    callback: CollaboratorCallback,
    steps: StepService,
    channel: WhatsAppService,
) -> dict:
    route = CALLBACK_ROUTES[name]

    with LogContext(user_id=callback.phone, state=route.step.value):
        status = callback.normalized_status
        if status not in route.accepted_statuses:
            logger.info(f"{name} callback with status '{status}', nothing to apply")
            return {"status": "ignored", "reason": f"status_{status}"}

        delta = await steps.apply(route.step, callback.phone, callback.to_step_payload())
        if not delta.applied:
            return {"status": "duplicate", "eventId": delta.event_id}

        try:
            amount = delta.amount_added or callback.amount
            await channel.send(callback.phone, notification_for(route, amount))
        except TransportSendFailure as e:
            # The step is applied; the user still sees it on the next message
            logger.error(f"Confirmation not delivered: {e.message}")

        return {"status": "applied", "eventId": delta.event_id}


@router.post("/webhooks/registration")
async def registration_callback(
    callback: CollaboratorCallback,
    steps: StepService = Depends(get_step_service),
    channel: WhatsAppService = Depends(get_whatsapp_service),
):
    """Onboarding form submitted."""
    return await handle_callback("registration", callback, steps, channel)


@router.post("/webhooks/kyc")
async def kyc_callback(
    callback: CollaboratorCallback,
    steps: StepService = Depends(get_step_service),
    channel: WhatsAppService = Depends(get_whatsapp_service),
):
    """Basic KYC decided by the identity provider."""
    return await handle_callback("kyc", callback, steps, channel)


@router.post("/webhooks/verification")
async def verification_callback(
    callback: CollaboratorCallback,
    steps: StepService = Depends(get_step_service),
    channel: WhatsAppService = Depends(get_whatsapp_service),
):
    """Full identity verification decided by the identity provider."""
    return await handle_callback("verification", callback, steps, channel)


@router.post("/webhooks/payment")
async def payment_callback(
    callback: CollaboratorCallback,
    steps: StepService = Depends(get_step_service),
    channel: WhatsAppService = Depends(get_whatsapp_service),
):
    """Activation fee paid."""
    return await handle_callback("payment", callback, steps, channel)


@router.post("/webhooks/funding")
async def funding_callback(
    callback: CollaboratorCallback,
    steps: StepService = Depends(get_step_service),
    channel: WhatsAppService = Depends(get_whatsapp_service),
):
    """Deposit credited to the card."""
    return await handle_callback("funding", callback, steps, channel)
