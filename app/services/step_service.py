"""
app/services/step_service.py

Purpose: Applies completed journey steps to a user's profile

- Registration, KYC approval, identity verification, funding, activation
- One idempotent update per completion event: flags, payload fields and
  amounts are written together, guarded by the event id
- Card and collection-account records are obtained at most once per user
- Invalidates the cached profile before returning
"""

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from app.core.exceptions import NotFoundError, UpstreamRejection, ValidationError
from app.core.logging import get_logger, LogContext
from app.flow.states import Intent
from app.models.profile import CardRecord, CollectionAccount, UserProfile
from app.schemas.callbacks import StepPayload
from app.services.backend_client import (
    AccountBackendClient,
    CardIssuerClient,
    get_backend_client,
    get_card_issuer,
)
from app.services.profile_cache import ProfileCache, get_profile_cache
from app.services.profile_repository import ProfileRepository, get_profile_repository

logger = get_logger(__name__)


class CompletionStep(str, Enum):
    REGISTER = "register"
    KYC = "kyc"
    VERIFY = "verify"
    FUND = "fund"
    ACTIVATE = "activate"


_INTENT_STEPS = {
    Intent.REGISTER: CompletionStep.REGISTER,
    Intent.KYC: CompletionStep.KYC,
    Intent.FUND: CompletionStep.FUND,
    Intent.CRYPTO_FUND: CompletionStep.FUND,
    Intent.FIAT_FUND: CompletionStep.FUND,
    Intent.ACTIVATE: CompletionStep.ACTIVATE,
}

# Payment events: each carries its own provider id
MONEY_STEPS = frozenset({CompletionStep.FUND, CompletionStep.ACTIVATE})


@dataclass
class ProfileDelta:
    """What one apply() call changed."""
    phone: str
    step: CompletionStep
    event_id: str
    applied: bool
    changes: Dict[str, Any] = field(default_factory=dict)
    amount_added: float = 0.0
    profile: Optional[UserProfile] = None


def resolve_step(step: Union[Intent, CompletionStep, str]) -> CompletionStep:
    if isinstance(step, Intent):
        if step not in _INTENT_STEPS:
            raise ValidationError(f"Intent '{step.value}' is not a completion step")
        return _INTENT_STEPS[step]
    try:
        return CompletionStep(step)
    except ValueError:
        pass
    try:
        return resolve_step(Intent(step))
    except ValueError:
        raise ValidationError(f"Unknown completion step '{step}'")


def derive_event_id(step: CompletionStep, phone: str, payload: StepPayload) -> str:
    """Deterministic id for events that arrive without one, so redeliveries collide."""
    body = payload.model_dump(exclude_none=True, exclude={"event_id"}, mode="json")
    raw = json.dumps({"step": step.value, "phone": phone, **body}, sort_keys=True)
    return f"{step.value}:{hashlib.sha256(raw.encode('utf-8')).hexdigest()[:32]}"


def free_activation_eligible(profile: UserProfile, rule: str, waitlist_limit: int) -> bool:
    """
    Business rule for free card activation.

    any_waitlist: every waitlist member.
    waitlist_position: waitlist members whose position is below the limit.
    """
    if not profile.waitlist:
        return False
    if rule == "any_waitlist":
        return True
    return profile.waitlist_position is not None and profile.waitlist_position < waitlist_limit


class StepService:
    """Side-effect dispatcher for completed journey steps."""

    def __init__(
        self,
        repository: ProfileRepository,
        cache: ProfileCache,
        backend: AccountBackendClient,
        card_issuer: CardIssuerClient,
        default_rate: float = 1520.0,
    ):
        self.repository = repository
        self.cache = cache
        self.backend = backend
        self.card_issuer = card_issuer
        self.default_rate = default_rate

    async def apply(
        self,
        step: Union[Intent, CompletionStep, str],
        phone: str,
        payload: Union[StepPayload, Dict[str, Any], None] = None,
    ) -> ProfileDelta:
        """
        Applies one completion event.

        Args:
            step: Intent or step name of the completed step
            phone: User handle
            payload: Event parameters (StepPayload or its dict form)

        Returns:
            ProfileDelta; applied=False when the event was already applied

        Raises:
            ValidationError: malformed payload, nothing attempted
            NotFoundError: user unknown (permanent)
            UpstreamRejection: step not allowed in the user's state (permanent)
            UpstreamTimeout: backend/issuer unreachable (retryable, no state written)
        """
        step = resolve_step(step)
        payload = self._validate(step, payload)
        event_id = payload.event_id or derive_event_id(step, phone, payload)

        with LogContext(user_id=phone, state=step.value, event_id=event_id):
            try:
                profile = await self.repository.get(phone)

                if profile is None:
                    if step != CompletionStep.REGISTER:
                        raise NotFoundError(f"No profile for {phone}")
                    return await self._register_new(phone, event_id, payload)

                if event_id in profile.applied_events:
                    logger.info("Completion event already applied")
                    return ProfileDelta(phone, step, event_id, applied=False, profile=profile)

                self._check_state(step, profile)

                await self.backend.complete_step(phone, step.value, self._backend_params(payload, event_id))

                set_fields, inc_fields, write_once = await self._build_update(step, profile, payload)
                applied = await self.repository.apply_completion(phone, event_id, set_fields, inc_fields, write_once)

                if not applied:
                    # Lost a race: event already recorded, or a write-once record appeared
                    current = await self.repository.get(phone)
                    if current is None:
                        raise NotFoundError(f"No profile for {phone}")
                    if event_id in current.applied_events:
                        return ProfileDelta(phone, step, event_id, applied=False, profile=current)
                    write_once = {
                        key: value for key, value in write_once.items()
                        if not _record_present(current, key)
                    }
                    applied = await self.repository.apply_completion(
                        phone, event_id, set_fields, inc_fields, write_once
                    )
            finally:
                # Readers must never see a snapshot older than this attempt
                self.cache.invalidate(phone)

            fresh = await self.repository.get(phone)
            amount_added = (inc_fields or {}).get("fundedAmount", 0.0) if applied else 0.0
            logger.info(f"Step '{step.value}' applied={applied}")

            return ProfileDelta(
                phone=phone,
                step=step,
                event_id=event_id,
                applied=applied,
                changes={**set_fields, **write_once} if applied else {},
                amount_added=amount_added,
                profile=fresh,
            )

    async def ensure_collection_account(self, profile: UserProfile) -> CollectionAccount:
        """
        Returns the user's collection account, allocating it on first use.
        The stored record is never replaced once assigned.
        """
        if profile.virtual_account is not None:
            return profile.virtual_account

        phone = profile.phone
        name = " ".join(part for part in (profile.first_name, profile.last_name) if part) or profile.display_name
        data = await self.backend.create_collection_account(phone, f"TOKI-{name}")

        try:
            account = CollectionAccount.model_validate(data)
        except PydanticValidationError as e:
            raise UpstreamRejection("Backend returned an invalid collection account", details=str(e))
        if account.rate is None:
            account.rate = self.default_rate

        stored = await self.repository.set_collection_account_once(phone, account.model_dump(by_alias=True))
        self.cache.invalidate(phone)

        if not stored:
            current = await self.repository.get(phone)
            if current is None:
                raise NotFoundError(f"No profile for {phone}")
            if current.virtual_account is not None:
                return current.virtual_account

        logger.info("Collection account assigned", extra={"user_id": phone})
        return account

    # ------------------------------------------------------------------

    def _validate(self, step: CompletionStep, payload) -> StepPayload:
        if payload is None:
            payload = StepPayload()
        elif not isinstance(payload, StepPayload):
            try:
                payload = StepPayload.model_validate(payload)
            except PydanticValidationError as e:
                raise ValidationError("Invalid step payload", details=e.errors(include_context=False))

        if step == CompletionStep.FUND and not payload.amount:
            raise ValidationError("Funding completion needs a positive amount")
        # Two identical deposits would hash to the same derived id
        if step in MONEY_STEPS and not (payload.event_id or payload.reference):
            raise ValidationError(f"'{step.value}' completion needs an eventId or reference")
        return payload

    def _check_state(self, step: CompletionStep, profile: UserProfile):
        if step == CompletionStep.FUND and not profile.kyc_basic_completed:
            raise UpstreamRejection("KYC verification must be completed before funding")
        if step == CompletionStep.ACTIVATE and not profile.funding_completed:
            raise UpstreamRejection("Card must be funded before activation")

    def _backend_params(self, payload: StepPayload, event_id: str) -> Dict[str, Any]:
        params = {"eventId": event_id}
        if payload.amount is not None:
            params["amount"] = payload.amount
        if payload.reference:
            params["reference"] = payload.reference
        if payload.free:
            params["free"] = True
        return params

    async def _build_update(self, step: CompletionStep, profile: UserProfile, payload: StepPayload):
        set_fields: Dict[str, Any] = dict(payload.contact_fields())
        inc_fields: Dict[str, float] = {}
        write_once: Dict[str, Any] = {}

        if step == CompletionStep.KYC:
            set_fields["kycBasicCompleted"] = True

        elif step == CompletionStep.VERIFY:
            set_fields["verifyCompleted"] = True

        elif step == CompletionStep.FUND:
            set_fields["fundingCompleted"] = True
            inc_fields["fundedAmount"] = payload.amount
            inc_fields["balance"] = payload.amount
            if not profile.has_card:
                card = payload.card or await self._issue_card(profile)
                write_once["card"] = card.model_dump(by_alias=True)

        elif step == CompletionStep.ACTIVATE:
            set_fields["cardActive"] = True
            set_fields["annualFeePaid"] = not payload.free

        if payload.virtual_account is not None and profile.virtual_account is None:
            write_once["virtualAccount"] = payload.virtual_account.model_dump(by_alias=True)

        return set_fields, inc_fields, write_once

    async def _issue_card(self, profile: UserProfile) -> CardRecord:
        data = await self.card_issuer.issue_card(profile.phone, profile.full_name or profile.display_name)
        try:
            return CardRecord.model_validate(data)
        except PydanticValidationError as e:
            raise UpstreamRejection("Card issuer returned an invalid card", details=str(e))

    async def _register_new(self, phone: str, event_id: str, payload: StepPayload) -> ProfileDelta:
        await self.backend.complete_step(phone, CompletionStep.REGISTER.value, self._backend_params(payload, event_id))

        contact = payload.contact_fields()
        profile = UserProfile.model_validate({**contact, "phone": phone, "appliedEvents": [event_id]})
        created = await self.repository.create(profile)

        applied = event_id in created.applied_events and created.created_at is not None
        logger.info("Registration applied")
        return ProfileDelta(
            phone=phone,
            step=CompletionStep.REGISTER,
            event_id=event_id,
            applied=applied,
            changes=contact if applied else {},
            profile=created,
        )


def _record_present(profile: UserProfile, key: str) -> bool:
    if key == "card":
        return profile.has_card
    if key == "virtualAccount":
        return profile.virtual_account is not None
    return False


_step_service: Optional[StepService] = None


def get_step_service() -> StepService:
    """Get or create the global step service."""
    global _step_service
    if _step_service is None:
        from app.core.config import settings
        _step_service = StepService(
            repository=get_profile_repository(),
            cache=get_profile_cache(),
            backend=get_backend_client(),
            card_issuer=get_card_issuer(),
            default_rate=settings.DEFAULT_NGN_RATE,
        )
    return _step_service
