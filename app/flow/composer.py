"""
app/flow/composer.py

Purpose: Response composer

- Builds the ordered outbound messages for an allowed intent
- Attaches up to 3 follow-up choices relevant to the intent
- Renders gate redirects and error fallbacks
- Never touches the profile store, so re-composing after a failed send is safe
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from app.core.exceptions import TokiError, NotFoundError, UpstreamRejection
from app.flow.gate import PromptSpec
from app.flow.states import Intent, first_missing_step, get_step_metadata
from app.models.profile import CollectionAccount, UserProfile
from app.schemas.outbound import OutboundMessage
from utils import constants as c


@dataclass
class ComposeContext:
    """External data a composer may need beyond the profile."""
    phone: str
    webapp_url: str
    default_rate: float = 1520.0
    collection_account: Optional[CollectionAccount] = None
    free_activation: bool = False

    def link(self, path: str, with_phone: bool = True) -> str:
        url = f"{self.webapp_url.rstrip('/')}/{path.lstrip('/')}"
        if with_phone:
            url += f"?phone={self.phone}"
        return url


Composer = Callable[[Optional[UserProfile], ComposeContext], List[OutboundMessage]]


def format_amount(value: Optional[float]) -> str:
    """Two-decimal rendering; a missing amount counts as 0."""
    return f"{float(value or 0):.2f}"


def _next_step_intent(profile: Optional[UserProfile]) -> Optional[Intent]:
    step = first_missing_step(profile)
    if step is None:
        return None
    return get_step_metadata(step).start_intent


# ============================================================
# INFORMATION
# ============================================================

def compose_greeting(profile, ctx):
    if profile is None:
        return [OutboundMessage.buttons(c.WELCOME_MESSAGE, Intent.REGISTER, Intent.FUND, Intent.HELP)]

    next_intent = _next_step_intent(profile)
    if next_intent is None:
        choices = (Intent.BALANCE, Intent.CARD, Intent.HELP)
    else:
        choices = (next_intent, Intent.HELP)
    return [OutboundMessage.buttons(c.WELCOME_BACK_MESSAGE.format(name=profile.display_name), *choices)]


def compose_help(profile, ctx):
    if profile is None:
        return [OutboundMessage.buttons(c.HELP_MESSAGE, Intent.REGISTER, Intent.ABOUT)]
    return [OutboundMessage.buttons(c.HELP_MESSAGE, Intent.FUND, Intent.BALANCE, Intent.CARD)]


def compose_about(profile, ctx):
    return [OutboundMessage.buttons(c.ABOUT_MESSAGE, Intent.REGISTER, Intent.FEATURES)]


def compose_features(profile, ctx):
    return [OutboundMessage.buttons(c.FEATURES_MESSAGE, Intent.REGISTER, Intent.HELP)]


def compose_how(profile, ctx):
    return [OutboundMessage.buttons(c.HOW_IT_WORKS_MESSAGE, Intent.REGISTER, Intent.HELP)]


def compose_security(profile, ctx):
    return [OutboundMessage.buttons(c.SECURITY_MESSAGE, Intent.ABOUT, Intent.HELP)]


def compose_fees(profile, ctx):
    return [OutboundMessage.buttons(c.FEES_MESSAGE, Intent.REGISTER, Intent.HELP)]


def compose_referral(profile, ctx):
    return [OutboundMessage.buttons(c.REFERRAL_MESSAGE, Intent.HELP)]


def compose_acknowledge(profile, ctx):
    return [OutboundMessage.buttons(c.ACKNOWLEDGE_MESSAGE, Intent.HELP)]


def compose_followup(profile, ctx):
    next_intent = _next_step_intent(profile)
    if next_intent is None:
        return [OutboundMessage.buttons(
            c.ALL_STEPS_DONE_MESSAGE.format(name=profile.display_name),
            Intent.BALANCE, Intent.CARD,
        )]
    step = first_missing_step(profile)
    return [OutboundMessage.buttons(
        c.NEXT_STEP_MESSAGE.format(next_step=get_step_metadata(step).display_name),
        next_intent, Intent.HELP,
    )]


def compose_fallback(profile, ctx):
    return [OutboundMessage.buttons(c.FALLBACK_MESSAGE, Intent.HELP, Intent.REGISTER, Intent.FUND)]


# ============================================================
# ONBOARDING
# ============================================================

def compose_register(profile, ctx):
    if profile is None:
        return [OutboundMessage.cta(
            c.REGISTER_MESSAGE, ctx.link("emailform", with_phone=False), c.CTA_ACTIVATE_CARD
        )]
    return compose_followup_for_registered(profile)


def compose_followup_for_registered(profile: UserProfile) -> List[OutboundMessage]:
    step = first_missing_step(profile)
    if step is None:
        return [OutboundMessage.buttons(
            c.ALL_STEPS_DONE_MESSAGE.format(name=profile.display_name),
            Intent.BALANCE, Intent.CARD,
        )]
    meta = get_step_metadata(step)
    return [OutboundMessage.buttons(
        c.ALREADY_REGISTERED_MESSAGE.format(name=profile.display_name, next_step=meta.display_name),
        meta.start_intent, Intent.HELP,
    )]


def compose_kyc(profile, ctx):
    if profile.kyc_basic_completed:
        return [OutboundMessage.buttons(c.KYC_DONE_MESSAGE.format(name=profile.display_name), Intent.FUND)]
    return [OutboundMessage.cta(c.KYC_MESSAGE, ctx.link("kycBasic"), c.CTA_START_KYC)]


def compose_activate(profile, ctx):
    if profile.card_active:
        return [OutboundMessage.buttons(c.ACTIVATION_DONE_MESSAGE, Intent.CARD, Intent.BALANCE)]
    if ctx.free_activation:
        return [OutboundMessage.buttons(
            c.ACTIVATION_FREE_MESSAGE.format(name=profile.display_name), Intent.CARD, Intent.BALANCE
        )]
    return [OutboundMessage.cta(c.ACTIVATION_FEE_MESSAGE, ctx.link("activation"), c.CTA_PAY_ACTIVATION)]


# ============================================================
# FUNDING
# ============================================================

def compose_fund(profile, ctx):
    return [OutboundMessage.buttons(c.FUND_OPTIONS_MESSAGE, Intent.CRYPTO_FUND, Intent.FIAT_FUND)]


def compose_crypto_fund(profile, ctx):
    return [OutboundMessage.cta(c.CRYPTO_FUND_MESSAGE, ctx.link("crypto-deposit"), c.CTA_CRYPTO_DEPOSIT)]


def compose_fiat_fund(profile, ctx):
    account = ctx.collection_account or (profile.virtual_account if profile else None)
    if account is None:
        raise ValueError("fiat funding needs a collection account in the context")

    rate = account.rate if account.rate else ctx.default_rate
    details = c.COLLECTION_ACCOUNT_MESSAGE.format(
        bank_name=account.bank_name,
        account_number=account.account_number,
        account_name=account.account_name,
        rate=format_amount(rate),
    )
    return [
        OutboundMessage.text_message(details),
        OutboundMessage.buttons(c.FUNDING_HELP_MESSAGE, Intent.BALANCE, Intent.HELP),
    ]


# ============================================================
# ACCOUNT
# ============================================================

def compose_balance(profile, ctx):
    balance = profile.balance if profile.balance is not None else 0
    text = c.BALANCE_MESSAGE.format(amount=format_amount(balance))
    if balance < c.LOW_BALANCE_THRESHOLD:
        text += "\n\n" + c.LOW_BALANCE_HINT
    return [OutboundMessage.buttons(text, Intent.FUND, Intent.CARD)]


def compose_card(profile, ctx):
    card = profile.card
    descriptor = ""
    if card.billing_descriptor:
        descriptor = c.CARD_DESCRIPTOR_LINE.format(descriptor=card.billing_descriptor)

    # The number travels alone in the second message so WhatsApp's
    # auto-formatting cannot regroup digits inside the details text
    return [
        OutboundMessage.buttons(
            c.CARD_DETAILS_MESSAGE.format(expiry=card.expiry, cvv=card.cvv, descriptor=descriptor),
            Intent.FUND, Intent.HELP,
        ),
        OutboundMessage.text_message(c.CARD_NUMBER_MESSAGE.format(number=card.number)),
    ]


COMPOSERS: Dict[Intent, Composer] = {
    Intent.GREETING: compose_greeting,
    Intent.HELP: compose_help,
    Intent.ABOUT: compose_about,
    Intent.FEATURES: compose_features,
    Intent.HOW: compose_how,
    Intent.SECURITY: compose_security,
    Intent.FEES: compose_fees,
    Intent.REFERRAL: compose_referral,
    Intent.ACKNOWLEDGE: compose_acknowledge,
    Intent.FOLLOWUP: compose_followup,
    Intent.NONE: compose_fallback,
    Intent.REGISTER: compose_register,
    Intent.KYC: compose_kyc,
    Intent.ACTIVATE: compose_activate,
    Intent.FUND: compose_fund,
    Intent.CRYPTO_FUND: compose_crypto_fund,
    Intent.FIAT_FUND: compose_fiat_fund,
    Intent.BALANCE: compose_balance,
    Intent.CARD: compose_card,
}


def compose(intent: Intent, profile: Optional[UserProfile], context: ComposeContext) -> List[OutboundMessage]:
    """
    Builds the outbound messages for an intent the gate has allowed.

    Args:
        intent: Allowed intent
        profile: Profile snapshot (None for unknown users)
        context: URLs and external data

    Returns:
        Ordered list of messages to send
    """
    return COMPOSERS.get(intent, compose_fallback)(profile, context)


def compose_prompt(prompt: PromptSpec) -> List[OutboundMessage]:
    """Renders a gate redirect."""
    return [OutboundMessage.buttons(prompt.text, *prompt.choices)]


def compose_error(error: TokiError) -> List[OutboundMessage]:
    """Maps a failure to the message the user should see."""
    if isinstance(error, NotFoundError):
        return [OutboundMessage.buttons(
            c.REGISTER_FIRST_MESSAGE.format(action=c.DEFAULT_GATE_ACTION), Intent.REGISTER
        )]
    if isinstance(error, UpstreamRejection):
        return [OutboundMessage.buttons(c.REJECTED_MESSAGE.format(reason=error.message), Intent.HELP)]
    return [OutboundMessage.buttons(c.TRY_AGAIN_MESSAGE, Intent.HELP)]
