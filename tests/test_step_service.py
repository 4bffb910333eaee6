import pytest

from app.core.exceptions import NotFoundError, UpstreamRejection, UpstreamTimeout, ValidationError
from app.flow.states import Intent
from app.services.step_service import CompletionStep, free_activation_eligible, resolve_step
from app.models.profile import UserProfile

PHONE = "+2348012345678"


def seed_kyc_done(collection, **fields):
    return collection.seed(phone=PHONE, firstName="Ada", fullName="Ada Obi", kycBasicCompleted=True, **fields)


async def test_funding_twice_with_same_event_adds_once(collection, steps, issuer):
    seed_kyc_done(collection)

    first = await steps.apply(Intent.FUND, PHONE, {"eventId": "dep-1", "amount": 5})
    second = await steps.apply(Intent.FUND, PHONE, {"eventId": "dep-1", "amount": 5})

    assert first.applied
    assert not second.applied
    stored = collection.by_phone(PHONE)
    assert stored["fundedAmount"] == 5
    assert stored["balance"] == 5
    assert stored["appliedEvents"].count("dep-1") == 1
    assert len(issuer.requests) == 1


async def test_redelivery_without_event_id_is_deduplicated(collection, steps, backend):
    seed_kyc_done(collection)
    payload = {"amount": 20, "reference": "tx-99"}

    first = await steps.apply("fund", PHONE, payload)
    second = await steps.apply("fund", PHONE, payload)

    assert first.applied and not second.applied
    assert first.event_id == second.event_id
    assert collection.by_phone(PHONE)["fundedAmount"] == 20
    # Duplicate short-circuits before calling the backend
    assert len(backend.completed) == 1


async def test_distinct_deposits_accumulate_and_card_issued_once(collection, steps, issuer):
    seed_kyc_done(collection)

    await steps.apply(Intent.FUND, PHONE, {"eventId": "dep-1", "amount": 10})
    delta = await steps.apply(Intent.FUND, PHONE, {"eventId": "dep-2", "amount": 2.5})

    assert delta.amount_added == 2.5
    assert delta.profile.funded_amount == 12.5
    assert delta.profile.card.number == "4111 2222 3333 4444"
    assert len(issuer.requests) == 1


async def test_card_from_payload_is_used_instead_of_issuer(collection, steps, issuer):
    seed_kyc_done(collection)
    card = {"number": "5555 0000 1111 2222", "expiry": "01/30", "cvv": "999"}

    delta = await steps.apply(Intent.FUND, PHONE, {"eventId": "dep-1", "amount": 10, "card": card})

    assert delta.profile.card.number == "5555 0000 1111 2222"
    assert issuer.requests == []


async def test_funding_requires_kyc(collection, steps, backend):
    collection.seed(phone=PHONE)

    with pytest.raises(UpstreamRejection):
        await steps.apply(Intent.FUND, PHONE, {"eventId": "dep-1", "amount": 5})

    assert backend.completed == []
    assert collection.by_phone(PHONE)["appliedEvents"] == []


async def test_funding_needs_positive_amount(collection, steps):
    seed_kyc_done(collection)

    with pytest.raises(ValidationError):
        await steps.apply(Intent.FUND, PHONE, {"eventId": "dep-1"})
    with pytest.raises(ValidationError):
        await steps.apply(Intent.FUND, PHONE, {"eventId": "dep-1", "amount": -3})


async def test_unknown_user_is_not_found(steps):
    with pytest.raises(NotFoundError):
        await steps.apply(Intent.KYC, PHONE, {"eventId": "kyc-1"})


async def test_registration_creates_profile_once(collection, steps):
    payload = {"eventId": "reg-1", "firstName": "Ada", "email": "ada@example.com"}

    first = await steps.apply(Intent.REGISTER, PHONE, payload)
    second = await steps.apply(Intent.REGISTER, PHONE, payload)

    assert first.applied
    assert not second.applied
    assert len(collection.documents) == 1
    stored = collection.by_phone(PHONE)
    assert stored["firstName"] == "Ada"
    assert "balance" not in stored


async def test_kyc_sets_flag_and_contact_fields(collection, steps):
    collection.seed(phone=PHONE)

    delta = await steps.apply(Intent.KYC, PHONE, {"eventId": "kyc-1", "dob": "1990-01-01"})

    assert delta.applied
    assert delta.profile.kyc_basic_completed
    assert delta.profile.dob == "1990-01-01"


async def test_backend_timeout_writes_nothing(collection, steps, backend):
    seed_kyc_done(collection)
    backend.fail_with = UpstreamTimeout()

    with pytest.raises(UpstreamTimeout):
        await steps.apply(Intent.FUND, PHONE, {"eventId": "dep-1", "amount": 5})

    assert "fundedAmount" not in collection.by_phone(PHONE)

    backend.fail_with = None
    delta = await steps.apply(Intent.FUND, PHONE, {"eventId": "dep-1", "amount": 5})
    assert delta.applied


async def test_apply_invalidates_cache(collection, steps, profiles, cache):
    seed_kyc_done(collection)
    await profiles.get_profile(PHONE)
    assert PHONE in cache

    await steps.apply(Intent.FUND, PHONE, {"eventId": "dep-1", "amount": 5})

    assert PHONE not in cache
    fresh = await profiles.get_profile(PHONE)
    assert fresh.funding_completed


async def test_collection_account_assigned_once(collection, steps, backend):
    seed_kyc_done(collection, lastName="Obi")
    user = UserProfile.from_document(collection.by_phone(PHONE))

    first = await steps.ensure_collection_account(user)
    second = await steps.ensure_collection_account(UserProfile.from_document(collection.by_phone(PHONE)))

    assert first.account_number == second.account_number == "0123456789"
    assert backend.account_requests == [(PHONE, "TOKI-Ada Obi")]


async def test_collection_account_race_keeps_first_record(collection, steps, backend):
    seed_kyc_done(collection)
    stale = UserProfile.from_document(collection.by_phone(PHONE))
    collection.by_phone(PHONE)["virtualAccount"] = {
        "bankName": "Providus", "accountNumber": "999", "accountName": "TOKI-Ada",
    }

    account = await steps.ensure_collection_account(stale)

    assert account.account_number == "999"
    assert collection.by_phone(PHONE)["virtualAccount"]["accountNumber"] == "999"


async def test_activation_records_fee(collection, steps):
    seed_kyc_done(collection, fundingCompleted=True)

    paid = await steps.apply(Intent.ACTIVATE, PHONE, {"eventId": "pay-1", "amount": 3})
    assert paid.profile.card_active
    assert paid.profile.annual_fee_paid


async def test_activation_requires_funding(collection, steps):
    seed_kyc_done(collection)
    with pytest.raises(UpstreamRejection):
        await steps.apply(Intent.ACTIVATE, PHONE, {"eventId": "pay-1"})


def test_resolve_step():
    assert resolve_step(Intent.CRYPTO_FUND) == CompletionStep.FUND
    assert resolve_step("verify") == CompletionStep.VERIFY
    assert resolve_step("fiat_fund") == CompletionStep.FUND
    with pytest.raises(ValidationError):
        resolve_step(Intent.BALANCE)
    with pytest.raises(ValidationError):
        resolve_step("teleport")


def test_free_activation_rules():
    early = UserProfile(phone=PHONE, waitlist=True, waitlist_position=12)
    late = UserProfile(phone=PHONE, waitlist=True, waitlist_position=900)
    outsider = UserProfile(phone=PHONE)

    assert free_activation_eligible(early, "waitlist_position", 500)
    assert not free_activation_eligible(late, "waitlist_position", 500)
    assert free_activation_eligible(late, "any_waitlist", 500)
    assert not free_activation_eligible(outsider, "any_waitlist", 500)


async def test_payment_events_need_their_own_id(collection, steps, backend):
    seed_kyc_done(collection, fundingCompleted=True)

    with pytest.raises(ValidationError):
        await steps.apply(Intent.FUND, PHONE, {"amount": 5})
    with pytest.raises(ValidationError):
        await steps.apply(Intent.ACTIVATE, PHONE, {"amount": 3})

    assert backend.completed == []
    assert collection.by_phone(PHONE)["appliedEvents"] == []


async def test_same_amount_deposits_with_distinct_references_both_count(collection, steps):
    seed_kyc_done(collection)

    await steps.apply(Intent.FUND, PHONE, {"amount": 5, "reference": "tx-1"})
    await steps.apply(Intent.FUND, PHONE, {"amount": 5, "reference": "tx-2"})

    assert collection.by_phone(PHONE)["fundedAmount"] == 10
