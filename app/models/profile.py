"""
app/models/profile.py

Purpose: User profile document model

- Onboarding step flags (registration, KYC, funding, identity verification)
- Contact details and funded amounts
- Personal collection account and issued card records
- Bookkeeping for the completion sweeper
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Document(BaseModel):
    # Stored documents use the camelCase names shared with the onboarding web app
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class CollectionAccount(_Document):
    """Per-user NGN deposit account used for bank-transfer funding."""
    bank_name: str
    account_number: str
    account_name: str
    rate: Optional[float] = None


class CardRecord(_Document):
    """Issued virtual card as returned by the issuing partner."""
    number: str
    expiry: str
    cvv: str
    billing_descriptor: Optional[str] = None


class UserProfile(_Document):
    """
    Persisted onboarding/funding state of one WhatsApp user.

    Invariants: funding implies basic KYC; a card implies funding.
    """
    phone: str

    # Contact
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: Optional[str] = None
    email: Optional[str] = None
    dob: Optional[str] = None

    # Steps
    kyc_basic_completed: bool = False
    funding_completed: bool = False
    verify_completed: bool = False
    card_active: bool = False
    annual_fee_paid: bool = False

    # Money
    funded_amount: float = 0.0
    balance: Optional[float] = None

    virtual_account: Optional[CollectionAccount] = None
    card: Optional[CardRecord] = None

    # Bookkeeping
    congrats_sent: bool = False
    congrats_sent_at: Optional[datetime] = None
    waitlist: bool = False
    waitlist_position: Optional[int] = None
    created_at: Optional[datetime] = None
    applied_events: List[str] = Field(default_factory=list)

    @classmethod
    def from_document(cls, document: Optional[dict]) -> Optional["UserProfile"]:
        if not document:
            return None
        return cls.model_validate(document)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)

    @property
    def display_name(self) -> str:
        return self.first_name or self.full_name or "there"

    @property
    def has_card(self) -> bool:
        return self.card is not None and bool(self.card.number)

    def check_invariants(self) -> List[str]:
        """Returns a description of every violated invariant (empty if consistent)."""
        problems = []
        if self.funding_completed and not self.kyc_basic_completed:
            problems.append("funding completed before basic KYC")
        if self.has_card and not self.funding_completed:
            problems.append("card issued before funding completed")
        return problems
