"""
app/flow/dispatcher.py

Purpose: Central message dispatcher

- Receives normalized messages from the webhook
- Classifies the intent, loads the profile and runs the dialogue gate
- Routes allowed intents to their handler, blocked ones to a redirect prompt
- Sends the composed messages through the WhatsApp channel
- Never raises: every failure degrades to a fallback message
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from app.core.exceptions import TokiError, TransportSendFailure, UpstreamTimeout
from app.core.logging import get_logger, LogContext
from app.flow.classifier import IntentClassifier, get_intent_classifier
from app.flow.composer import ComposeContext, compose_error, compose_prompt
from app.flow.gate import authorize
from app.flow.handlers.account import handle_balance, handle_card
from app.flow.handlers.base import Handler, TurnContext
from app.flow.handlers.funding import handle_crypto_fund, handle_fiat_fund, handle_fund
from app.flow.handlers.info import handle_info
from app.flow.handlers.onboarding import handle_activate, handle_kyc, handle_register
from app.flow.states import Intent, OPEN_INTENTS
from app.schemas.outbound import OutboundMessage
from app.schemas.webhook import InboundMessage
from app.services.profile_service import ProfileService, get_profile_service
from app.services.step_service import StepService, get_step_service

logger = get_logger(__name__)


# Intent to handler mapping; anything absent is pure information
HANDLERS: Dict[Intent, Handler] = {
    Intent.REGISTER: handle_register,
    Intent.KYC: handle_kyc,
    Intent.ACTIVATE: handle_activate,
    Intent.FUND: handle_fund,
    Intent.CRYPTO_FUND: handle_crypto_fund,
    Intent.FIAT_FUND: handle_fiat_fund,
    Intent.BALANCE: handle_balance,
    Intent.CARD: handle_card,
}


@dataclass
class DispatchResult:
    intent: Intent
    allowed: bool
    messages: List[OutboundMessage] = field(default_factory=list)
    sent: int = 0
    error: Optional[str] = None


class MessageDispatcher:

    def __init__(
        self,
        classifier: IntentClassifier,
        profiles: ProfileService,
        steps: StepService,
        channel,
        webapp_url: str,
        default_rate: float = 1520.0,
        free_activation_rule: str = "waitlist_position",
        free_activation_limit: int = 500,
    ):
        self.classifier = classifier
        self.profiles = profiles
        self.steps = steps
        self.channel = channel
        self.webapp_url = webapp_url
        self.default_rate = default_rate
        self.free_activation_rule = free_activation_rule
        self.free_activation_limit = free_activation_limit

    async def dispatch_message(self, message: InboundMessage) -> DispatchResult:
        """
        Handles one inbound message end to end.

        Args:
            message: Normalized inbound message

        Returns:
            DispatchResult describing what was decided and sent
        """
        classification = self.classifier.resolve(message.text, message.selection_id)
        intent = classification.intent

        with LogContext(user_id=message.phone, intent=intent.value, match_type=classification.match_type):
            logger.info(f"📨 Classified message as '{intent.value}'")

            result = DispatchResult(intent=intent, allowed=False)
            try:
                result.messages, result.allowed = await self._respond(message, intent)
            except TokiError as e:
                logger.warning(f"Turn failed: {e.code}: {e.message}")
                result.error = e.code
                result.messages = compose_error(e)
            except Exception as e:
                logger.error(f"❌ Dispatcher error: {e}", exc_info=True)
                result.error = "INTERNAL_ERROR"
                result.messages = compose_error(TokiError(str(e)))

            result.sent = await self._send_all(message.phone, result.messages)
            return result

    async def _respond(self, message: InboundMessage, intent: Intent):
        try:
            profile = await self.profiles.get_profile(message.phone)
        except UpstreamTimeout:
            if intent not in OPEN_INTENTS:
                raise
            # Information is still useful while the backend is down
            logger.warning("Profile lookup timed out, answering as unknown user")
            profile = None

        decision = authorize(intent, profile)
        if not decision.allowed:
            logger.info(f"🚧 Gate blocked intent: {decision.redirect_prompt.reason}")
            return compose_prompt(decision.redirect_prompt), False

        turn = TurnContext(
            message=message,
            intent=intent,
            profile=profile,
            compose_context=ComposeContext(
                phone=message.phone,
                webapp_url=self.webapp_url,
                default_rate=self.default_rate,
            ),
            steps=self.steps,
            free_activation_rule=self.free_activation_rule,
            free_activation_limit=self.free_activation_limit,
        )
        handler = HANDLERS.get(intent, handle_info)
        return await handler(turn), True

    async def _send_all(self, phone: str, messages: List[OutboundMessage]) -> int:
        """Sends in order; stops at the first failure so later messages never arrive out of context."""
        sent = 0
        for outbound in messages:
            try:
                await self.channel.send(phone, outbound)
            except TransportSendFailure as e:
                logger.error(f"Send failed after {sent}/{len(messages)} messages: {e.message}")
                break
            sent += 1
        return sent


_dispatcher: Optional[MessageDispatcher] = None


def get_message_dispatcher() -> MessageDispatcher:
    """Get or create the global dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        from app.core.config import settings
        from app.services.whatsapp_service import get_whatsapp_service

        _dispatcher = MessageDispatcher(
            classifier=get_intent_classifier(),
            profiles=get_profile_service(),
            steps=get_step_service(),
            channel=get_whatsapp_service(),
            webapp_url=settings.ONBOARDING_WEBAPP_URL,
            default_rate=settings.DEFAULT_NGN_RATE,
            free_activation_rule=settings.FREE_ACTIVATION_RULE,
            free_activation_limit=settings.FREE_ACTIVATION_WAITLIST_LIMIT,
        )
    return _dispatcher
