"""
app/flow/phrases.py

Purpose: Intent phrase registry

- Declarative phrase lists per intent (lowercase, single-spaced)
- Substring priority order (specific intents before catch-alls)
- Greeting phrases matched independently of the catalog

Bump PHRASE_REGISTRY_VERSION whenever phrases or ordering change.
"""

from typing import Dict, Tuple

from app.flow.states import Intent

PHRASE_REGISTRY_VERSION = "3"


INTENT_PHRASES: Dict[Intent, Tuple[str, ...]] = {
    Intent.REGISTER: (
        "activate card", "activate", "register", "signup", "sign up",
        "create account", "start", "open registration", "registration",
        "get started",
    ),
    Intent.KYC: (
        "kyc", "verify", "identity", "verification", "id verification",
        "start kyc",
    ),
    Intent.FUND: (
        "fund", "top up", "deposit", "add money", "recharge", "fund my card",
    ),
    Intent.CRYPTO_FUND: (
        "fund with crypto", "crypto funding", "stablecoin", "crypto", "usdt",
        "usdc", "bitcoin", "btc", "cryptocurrency", "start crypto deposit",
    ),
    Intent.FIAT_FUND: (
        "bank transfer (ngn)", "fund with bank", "ngn funding", "fiat",
        "bank transfer", "naira",
    ),
    Intent.ACTIVATE: (
        "card activation", "activation fee", "pay activation",
        "free activation", "annual fee",
    ),
    Intent.BALANCE: (
        "balance", "wallet", "check balance", "my balance",
    ),
    Intent.CARD: (
        "show card", "card details", "show card details", "my card",
        "virtual card", "card info", "show my card", "view card", "see card",
        "card number",
    ),
    Intent.HELP: (
        "help", "support", "assist", "commands",
    ),
    Intent.ABOUT: (
        "about", "what is toki", "information", "tell me more",
    ),
    Intent.HOW: (
        "how", "how it works", "guide", "tutorial",
    ),
    Intent.SECURITY: (
        "safe", "secure", "trust", "security", "is it safe",
    ),
    Intent.FEES: (
        "cost", "fee", "fees", "charges", "price", "pricing",
    ),
    Intent.FEATURES: (
        "features", "benefits", "what can", "advantages",
    ),
    Intent.REFERRAL: (
        "refer", "invite", "referral", "refer friend",
    ),
    Intent.ACKNOWLEDGE: (
        "ok", "okay", "cool", "thanks", "thank you", "got it",
    ),
    Intent.FOLLOWUP: (
        "what next", "continue", "next", "then", "what now",
    ),
}


# Substring matching walks intents in this order; the first intent with a
# phrase inside the text wins.
SUBSTRING_PRIORITY: Tuple[Intent, ...] = (
    Intent.CRYPTO_FUND,
    Intent.FIAT_FUND,
    Intent.ACTIVATE,
    Intent.ABOUT,
    Intent.FEES,
    Intent.SECURITY,
    Intent.FEATURES,
    Intent.REFERRAL,
    Intent.FUND,
    Intent.CARD,
    Intent.BALANCE,
    Intent.KYC,
    Intent.REGISTER,
    Intent.HOW,
    Intent.HELP,
    Intent.FOLLOWUP,
    Intent.ACKNOWLEDGE,
)


GREETING_PHRASES: Tuple[str, ...] = (
    "hi", "hello", "hey", "hi there", "hello there", "greetings",
    "good morning", "good afternoon", "good evening",
)
