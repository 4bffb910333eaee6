"""
app/flow/states.py

Purpose: Defines the intent catalog and onboarding steps

- Enum of every intent the bot understands
- Enum of onboarding steps in journey order
- Metadata for each step (profile flag, how to start it)
- Prerequisite table: which step an intent needs first
"""

from enum import Enum
from typing import Dict, Optional
from dataclasses import dataclass


class Intent(str, Enum):
    """
    Closed set of symbolic intents resolved from inbound messages.
    Values double as reply-button ids.
    """

    # Journey
    REGISTER = "register"
    KYC = "kyc"
    FUND = "fund"
    CRYPTO_FUND = "crypto_fund"
    FIAT_FUND = "fiat_fund"
    ACTIVATE = "activate"
    BALANCE = "balance"
    CARD = "card"

    # Information
    HELP = "help"
    ABOUT = "about"
    HOW = "how"
    SECURITY = "security"
    FEES = "fees"
    FEATURES = "features"
    REFERRAL = "referral"

    # Small talk
    ACKNOWLEDGE = "acknowledge"
    FOLLOWUP = "followup"
    GREETING = "greeting"
    NONE = "none"


class OnboardingStep(str, Enum):
    """Onboarding steps in the order a user completes them."""

    REGISTER = "register"
    KYC = "kyc"
    FUND = "fund"


@dataclass(frozen=True)
class StepMetadata:
    """
    Metadata associated with each onboarding step.
    """
    name: OnboardingStep
    display_name: str
    order: int
    profile_flag: Optional[str]  # None means "a profile exists"
    start_intent: Intent


STEP_METADATA: Dict[OnboardingStep, StepMetadata] = {
    OnboardingStep.REGISTER: StepMetadata(
        name=OnboardingStep.REGISTER,
        display_name="card activation",
        order=1,
        profile_flag=None,
        start_intent=Intent.REGISTER,
    ),
    OnboardingStep.KYC: StepMetadata(
        name=OnboardingStep.KYC,
        display_name="KYC verification",
        order=2,
        profile_flag="kyc_basic_completed",
        start_intent=Intent.KYC,
    ),
    OnboardingStep.FUND: StepMetadata(
        name=OnboardingStep.FUND,
        display_name="card funding",
        order=3,
        profile_flag="funding_completed",
        start_intent=Intent.FUND,
    ),
}


# Intents usable without any profile
OPEN_INTENTS = frozenset({
    Intent.REGISTER,
    Intent.ABOUT,
    Intent.HELP,
    Intent.HOW,
    Intent.SECURITY,
    Intent.FEES,
    Intent.FEATURES,
    Intent.GREETING,
})


# Latest step each intent depends on; earlier steps are implied
INTENT_PREREQUISITES: Dict[Intent, OnboardingStep] = {
    Intent.KYC: OnboardingStep.REGISTER,
    Intent.FUND: OnboardingStep.KYC,
    Intent.CRYPTO_FUND: OnboardingStep.KYC,
    Intent.FIAT_FUND: OnboardingStep.KYC,
    Intent.BALANCE: OnboardingStep.FUND,
    Intent.CARD: OnboardingStep.FUND,
    Intent.ACTIVATE: OnboardingStep.FUND,
    Intent.REFERRAL: OnboardingStep.REGISTER,
    Intent.ACKNOWLEDGE: OnboardingStep.REGISTER,
    Intent.FOLLOWUP: OnboardingStep.REGISTER,
    Intent.NONE: OnboardingStep.REGISTER,
}


def get_step_metadata(step: OnboardingStep) -> StepMetadata:
    return STEP_METADATA[step]


def ordered_steps():
    """Steps sorted in journey order."""
    return sorted(STEP_METADATA.values(), key=lambda meta: meta.order)


def is_step_complete(step: OnboardingStep, profile) -> bool:
    """
    Checks whether a profile has completed a step.

    Args:
        step: Onboarding step
        profile: UserProfile or None for unknown users

    Returns:
        True if the step is done
    """
    if profile is None:
        return False
    flag = STEP_METADATA[step].profile_flag
    if flag is None:
        return True
    return bool(getattr(profile, flag, False))


def first_missing_step(profile, up_to: Optional[OnboardingStep] = None) -> Optional[OnboardingStep]:
    """
    Returns the earliest incomplete step, optionally limited to steps at or
    before `up_to`.
    """
    limit = STEP_METADATA[up_to].order if up_to else None
    for meta in ordered_steps():
        if limit is not None and meta.order > limit:
            break
        if not is_step_complete(meta.name, profile):
            return meta.name
    return None
