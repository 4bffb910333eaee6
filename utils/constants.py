"""
utils/constants.py

Purpose: Centralized static content

- All user-facing messages
- Button labels
- Business thresholds shown to users

(Prevents hardcoding across the codebase)
"""

# ============================================================
# BUTTONS (max 20 characters, keyed by intent value)
# ============================================================

BUTTON_TITLES = {
    "register": "Activate Card",
    "kyc": "KYC",
    "fund": "Fund",
    "crypto_fund": "Fund with Crypto",
    "fiat_fund": "Bank Transfer (NGN)",
    "activate": "Card Activation",
    "balance": "Check Balance",
    "card": "Show Card",
    "help": "Help",
    "about": "About",
    "features": "Features",
    "followup": "What Next",
}

CTA_ACTIVATE_CARD = "Activate Card"
CTA_START_KYC = "Start KYC"
CTA_CRYPTO_DEPOSIT = "Start Crypto Deposit"
CTA_PAY_ACTIVATION = "Pay Activation Fee"

LOW_BALANCE_THRESHOLD = 10.0

# ============================================================
# WELCOME & INFORMATION
# ============================================================

WELCOME_MESSAGE = """Welcome to *Toki Card*! 👋

What would you like to do?"""

WELCOME_BACK_MESSAGE = """Welcome back, {name}! 👋

What would you like to do?"""

REGISTER_MESSAGE = """🎉 *Welcome to Toki Card!*

Your virtual USD card for seamless global payments.

✅ Fund with crypto (USDT, BTC)
✅ Spend anywhere online
✅ Instant card creation

Click below to activate your card now! 👇"""

ALREADY_REGISTERED_MESSAGE = """✅ You're already registered, {name}!

Next step: *{next_step}*."""

ALL_STEPS_DONE_MESSAGE = """✅ You're all set, {name}! Your card is funded and ready to use."""

HELP_MESSAGE = """🤖 *Toki Card Bot - Commands*

*Getting Started:*
• Activate Card - Create your account
• KYC - Verify your identity

*Card Management:*
• Fund - Add money to your card
• Balance - Check your balance
• Show Card - View card details

*Information:*
• About - Learn about Toki Card
• Features - See what we offer

Just type any command or click a button!"""

ABOUT_MESSAGE = """*About Toki Card* 💳

Toki Card is your virtual USD card for seamless global payments.

✅ Fund with crypto (USDT, BTC)
✅ Spend anywhere online
✅ Instant card creation
✅ Secure & reliable

Ready to get started?"""

FEATURES_MESSAGE = """✨ *Toki Card Features*

🌍 Global Acceptance
💸 Low Fees
⚡ Instant Deposits
🔒 Bank-Level Security
💳 Virtual Card
📱 Easy Management

Get your card today!"""

HOW_IT_WORKS_MESSAGE = """📚 *How Toki Card Works*

*Step 1:* Activate your card (quick sign-up)
*Step 2:* Complete basic KYC
*Step 3:* Fund with crypto or a bank transfer
*Step 4:* Get your virtual USD card instantly

Shop anywhere online that accepts USD cards. 🌍"""

SECURITY_MESSAGE = """🔒 *Your money is safe with Toki*

• Bank-level encryption on every transaction
• Identity verified through licensed KYC partners
• Card details are only shown to you, in this chat

Never share your CVV with anyone."""

FEES_MESSAGE = """💸 *Toki Card Fees*

• Card activation: one-time annual fee (free for early waitlist members)
• Crypto deposits: no Toki fee
• NGN bank transfers: converted at the rate shown with your account

No hidden charges."""

REFERRAL_MESSAGE = """🎁 *Invite your friends*

Share Toki Card with friends and help them get a virtual USD card.
Referral rewards are coming soon!"""

ACKNOWLEDGE_MESSAGE = "Great! 👍 Type *help* if you need anything else."

FALLBACK_MESSAGE = """🤔 I didn't understand that.

Type *help* to see what I can do, or click a button below."""

# ============================================================
# ONBOARDING STEPS
# ============================================================

KYC_MESSAGE = """📋 *Complete your KYC verification*

This is required before you can fund your card."""

KYC_DONE_MESSAGE = """✅ Your KYC is already verified, {name}. You can fund your card now."""

NEXT_STEP_MESSAGE = """👉 Your next step: *{next_step}*."""

# Gate redirects: {action} describes what the user was trying to do
REGISTER_FIRST_MESSAGE = "Please *activate your card first* {action}."
KYC_FIRST_MESSAGE = "⚠️ You must complete *KYC verification* first {action}."
FUND_FIRST_MESSAGE = "💳 Please *fund your card* first {action}."
CARD_PENDING_MESSAGE = """⏳ Your card is being created.

Please try again in a few minutes."""

GATE_ACTIONS = {
    "kyc": "before starting KYC",
    "fund": "before funding",
    "crypto_fund": "before funding",
    "fiat_fund": "before funding",
    "balance": "to check your balance",
    "card": "before viewing it",
    "activate": "before activating it",
    "referral": "before inviting friends",
}
DEFAULT_GATE_ACTION = "to continue"

# ============================================================
# FUNDING
# ============================================================

FUND_OPTIONS_MESSAGE = "💳 *Choose your funding method:*"

CRYPTO_FUND_MESSAGE = """🪙 *Crypto Funding*

We support:
• USDT (TRC20) - Min: $10
• USDC - Min: $10
• CTNG - Min: $5

💡 Deposits are processed *instantly*!"""

COLLECTION_ACCOUNT_MESSAGE = """🏦 *Your Personal Bank Account*

*Bank:* {bank_name}
*Account Number:* {account_number}
*Account Name:* {account_name}

📌 *How to fund:*
1. Transfer NGN to the account above
2. Funds convert automatically to USD
3. Card gets funded within minutes

💡 *Current Rate:* ₦{rate}/$1

_These are your permanent details. Save them!_"""

FUNDING_HELP_MESSAGE = "Need help?"

# ============================================================
# ACCOUNT
# ============================================================

BALANCE_MESSAGE = """💰 *Your Balance*

${amount} USD"""

LOW_BALANCE_HINT = "Low balance. Consider funding your account!"

CARD_DETAILS_MESSAGE = """*Your Toki USD Virtual Card* 💳

• *Expiry:* {expiry}
• *CVV:* {cvv}{descriptor}

Your card number is below ⬇️"""

CARD_DESCRIPTOR_LINE = "\n• *Billing name:* {descriptor}"

CARD_NUMBER_MESSAGE = """*Card Number:*
`{number}`

_Tap & hold to copy_"""

# ============================================================
# ACTIVATION
# ============================================================

ACTIVATION_DONE_MESSAGE = "✅ Your card is already active. Enjoy spending! 🚀"

ACTIVATION_FREE_MESSAGE = """🎁 *Good news, {name}!*

As an early waitlist member, your card activation is *free*.
Your card has been activated. 🚀"""

ACTIVATION_FEE_MESSAGE = """💳 *Activate your card*

Pay the one-time annual fee to activate your Toki Card."""

# ============================================================
# COLLABORATOR NOTIFICATIONS
# ============================================================

REGISTRATION_CONFIRMED_MESSAGE = "🎉 Registration received! Next, complete your KYC."
KYC_APPROVED_MESSAGE = "✅ KYC approved! You can now fund your card."
VERIFICATION_APPROVED_MESSAGE = "✅ Identity verification complete."
FUNDING_CONFIRMED_MESSAGE = "💰 Deposit of ${amount} confirmed! Your card has been funded."
PAYMENT_CONFIRMED_MESSAGE = "💳 Payment of ${amount} confirmed! Your card is now active."

# ============================================================
# COMPLETION SWEEPER
# ============================================================

CONGRATS_MESSAGE = """🎉 *Congratulations {first_name}!*

Your Toki Card account is now fully activated!

*Your Registration Details:*
👤 Full Name: {full_name}
📧 Email: {email}
📅 Date of Birth: {dob}
✅ KYC Status: Verified

You're all set to start using your virtual USD card! 🚀"""

CONGRATS_FUNDING_INTRO_MESSAGE = """💳 *Next Step: Fund Your Card*

To start spending, you need to add funds to your card.

We offer two convenient funding methods:"""

CONGRATS_FUNDING_OPTIONS_MESSAGE = """*Choose Your Funding Method:*

🪙 *Crypto (Stablecoins)*
   • USDT (TRC20)
   • USDC
   • CTNG
   ⚡ Instant deposits

🏦 *Bank Transfer (NGN)*
   • Fund with local banks
   • Get personal account details
   💵 Easy & familiar"""

# ============================================================
# ERRORS
# ============================================================

TRY_AGAIN_MESSAGE = """⚠️ We're having trouble reaching our servers.

Please try again in a moment."""

REJECTED_MESSAGE = """⚠️ We couldn't complete that: {reason}

Type *help* to see your options."""

NOT_AVAILABLE = "N/A"
