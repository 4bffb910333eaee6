"""
app/flow/gate.py

Purpose: Dialogue state gate

- Decides whether an intent is permitted for the user's current profile
- Builds the corrective prompt when a prerequisite step is missing
- Pure decision over (intent, profile snapshot); never mutates state
"""

from dataclasses import dataclass, field
from typing import List, Optional

from app.flow.states import (
    Intent,
    OnboardingStep,
    OPEN_INTENTS,
    INTENT_PREREQUISITES,
    first_missing_step,
    get_step_metadata,
)
from app.models.profile import UserProfile
from utils.constants import (
    REGISTER_FIRST_MESSAGE,
    KYC_FIRST_MESSAGE,
    FUND_FIRST_MESSAGE,
    CARD_PENDING_MESSAGE,
    GATE_ACTIONS,
    DEFAULT_GATE_ACTION,
)


@dataclass(frozen=True)
class PromptSpec:
    """Corrective prompt: why the intent was blocked and what to tap next."""
    reason: str
    text: str
    choices: List[Intent] = field(default_factory=list)
    missing_step: Optional[OnboardingStep] = None


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    redirect_prompt: Optional[PromptSpec] = None


ALLOW = GateDecision(allowed=True)

_MISSING_STEP_TEXT = {
    OnboardingStep.REGISTER: REGISTER_FIRST_MESSAGE,
    OnboardingStep.KYC: KYC_FIRST_MESSAGE,
    OnboardingStep.FUND: FUND_FIRST_MESSAGE,
}


def authorize(intent: Intent, profile: Optional[UserProfile]) -> GateDecision:
    """
    Checks an intent against the user's onboarding progress.

    Args:
        intent: Resolved intent
        profile: Current profile snapshot, None if the user is unknown

    Returns:
        GateDecision; when blocked, redirect_prompt names the earliest
        missing step and offers a button to start it
    """
    if intent in OPEN_INTENTS:
        return ALLOW

    required = INTENT_PREREQUISITES.get(intent, OnboardingStep.REGISTER)
    missing = first_missing_step(profile, up_to=required)
    if missing is not None:
        return GateDecision(allowed=False, redirect_prompt=missing_step_prompt(intent, missing))

    if intent == Intent.CARD and not profile.has_card:
        return GateDecision(
            allowed=False,
            redirect_prompt=PromptSpec(
                reason="card_pending",
                text=CARD_PENDING_MESSAGE,
                choices=[Intent.CARD, Intent.HELP],
            ),
        )

    return ALLOW


def missing_step_prompt(intent: Intent, step: OnboardingStep) -> PromptSpec:
    meta = get_step_metadata(step)
    action = GATE_ACTIONS.get(intent.value, DEFAULT_GATE_ACTION)
    return PromptSpec(
        reason=f"missing_{step.value}",
        text=_MISSING_STEP_TEXT[step].format(action=action),
        choices=[meta.start_intent],
        missing_step=step,
    )
