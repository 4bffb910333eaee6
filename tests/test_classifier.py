import pytest

from app.flow.classifier import IntentClassifier, normalize_text
from app.flow.phrases import GREETING_PHRASES, INTENT_PHRASES
from app.flow.states import Intent

classifier = IntentClassifier()


@pytest.mark.parametrize("text,intent", [
    ("hi", Intent.GREETING),
    ("  HELLO  ", Intent.GREETING),
    ("Show my card", Intent.CARD),
    ("fund", Intent.FUND),
    ("Bank Transfer (NGN)", Intent.FIAT_FUND),
    ("what is toki", Intent.ABOUT),
    ("thanks", Intent.ACKNOWLEDGE),
])
def test_exact_and_greeting_matches(text, intent):
    assert classifier.classify(text) == intent


def test_greeting_only_short_circuits_whole_message():
    result = classifier.resolve("hi there can you help")
    assert result.intent == Intent.HELP
    assert result.match_type == "substring"


def test_substring_follows_priority_order():
    assert classifier.classify("I want to fund with crypto please") == Intent.CRYPTO_FUND
    assert classifier.classify("tell me about fees") == Intent.ABOUT
    assert classifier.classify("how do I show my card") == Intent.CARD


def test_substring_requires_whole_words():
    # "how" must not match inside "shows"
    result = classifier.resolve("check my balance please")
    assert result.intent == Intent.BALANCE
    assert classifier.resolve("shows nothing useful xyz").intent != Intent.HOW


def test_fuzzy_match_for_typos():
    result = classifier.resolve("registr")
    assert result.intent == Intent.REGISTER
    assert result.match_type == "fuzzy"
    assert result.score > 0.85


def test_unrecognized_text_is_none():
    assert classifier.classify("xyzzy plugh") == Intent.NONE
    assert classifier.classify("") == Intent.NONE
    assert classifier.classify(None) == Intent.NONE


def test_fuzzy_threshold_is_strict():
    phrases = {Intent.HELP: ("abcd",)}
    # ratio("abce", "abcd") == 0.75
    at_threshold = IntentClassifier(phrases=phrases, priority=(), greetings=(), fuzzy_threshold=0.75)
    below_threshold = IntentClassifier(phrases=phrases, priority=(), greetings=(), fuzzy_threshold=0.74)

    assert at_threshold.classify("abce") == Intent.NONE
    assert below_threshold.classify("abce") == Intent.HELP


def test_selection_id_wins_over_text():
    result = classifier.resolve("Fund with Crypto", selection_id="crypto_fund")
    assert result.intent == Intent.CRYPTO_FUND
    assert result.match_type == "selection"


def test_unknown_selection_falls_back_to_title():
    result = classifier.resolve("Bank Transfer (NGN)", selection_id="btn_42")
    assert result.intent == Intent.FIAT_FUND


def test_foreign_selection_id_matching_a_phrase():
    assert classifier.classify("", selection_id="show_card") == Intent.NONE
    assert classifier.classify("", selection_id="show card") == Intent.CARD


def test_phrases_are_unique_across_intents():
    seen = {}
    for intent, phrases in INTENT_PHRASES.items():
        for phrase in phrases:
            key = normalize_text(phrase)
            assert key not in seen, f"'{phrase}' registered for {seen.get(key)} and {intent}"
            seen[key] = intent
    for greeting in GREETING_PHRASES:
        assert normalize_text(greeting) not in seen


def test_classification_is_deterministic():
    texts = ["show my card", "registr", "I want usdt", "hmm"]
    first = [classifier.resolve(t) for t in texts]
    second = [IntentClassifier().resolve(t) for t in texts]
    assert first == second


def test_module_level_classify_uses_configured_classifier():
    from app.flow.classifier import classify
    assert classify("check balance") == Intent.BALANCE


@pytest.mark.parametrize("phrase,intent", [
    (phrase, intent)
    for intent, phrases in INTENT_PHRASES.items()
    for phrase in phrases
])
def test_every_registered_phrase_classifies_to_its_intent(phrase, intent):
    result = classifier.resolve(phrase)
    assert result.intent == intent
    assert result.match_type == "exact"


@pytest.mark.parametrize("greeting", GREETING_PHRASES)
def test_every_greeting_classifies_as_greeting(greeting):
    assert classifier.classify(greeting) == Intent.GREETING
