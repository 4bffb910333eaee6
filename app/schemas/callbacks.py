"""
app/schemas/callbacks.py

Purpose: Step-completion payloads

- StepPayload: parameters of one completion event (amount, card, account,
  contact details)
- Collaborator webhook bodies (registration form, KYC/identity provider,
  payment provider)
"""

from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.models.profile import CardRecord, CollectionAccount
from utils.whatsapp_utils import normalize_phone

KYC_APPROVED_STATUSES = frozenset({"approved", "verified", "completed"})
PAYMENT_CONFIRMED_STATUSES = frozenset({"confirmed", "success", "successful", "completed"})
REGISTRATION_COMPLETED_STATUSES = frozenset({"completed", "registered", "success", "successful"})


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class StepPayload(CamelModel):
    """Parameters carried by a completion event. All optional; steps check what they need."""
    event_id: Optional[str] = None
    amount: Optional[float] = Field(default=None, ge=0)
    currency: Optional[str] = None
    reference: Optional[str] = None
    free: bool = False

    card: Optional[CardRecord] = None
    virtual_account: Optional[CollectionAccount] = None

    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    dob: Optional[str] = None
    waitlist: Optional[bool] = None
    waitlist_position: Optional[int] = Field(default=None, ge=0)

    def contact_fields(self) -> dict:
        """Contact/bookkeeping fields present in the payload, camelCased."""
        names = ("first_name", "last_name", "full_name", "email", "dob", "waitlist", "waitlist_position")
        return {
            to_camel(name): getattr(self, name)
            for name in names
            if getattr(self, name) is not None
        }


class CollaboratorCallback(StepPayload):
    """
    Body posted by the onboarding form, identity provider or payment provider.
    `phone` also accepts the providers' `userId`.
    """
    phone: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("phone", "userId", "user_id"),
    )
    status: str = Field(..., min_length=1)

    @field_validator("phone")
    @classmethod
    def canonical_phone(cls, v: str) -> str:
        """Same '+digits' handle the WhatsApp webhook uses."""
        return normalize_phone(v)

    @property
    def normalized_status(self) -> str:
        return self.status.strip().lower()

    def to_step_payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude={"phone", "status"}, exclude_none=True)
