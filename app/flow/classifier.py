"""
app/flow/classifier.py

Purpose: Intent classification

- Normalizes inbound text
- Resolves one Intent per message using, in order:
  exact phrase match, greeting short-circuit, whole-word substring match
  in priority order, then fuzzy similarity above a threshold
- Pure: same (text, selection id, registry) always yields the same intent
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

from rapidfuzz import fuzz

from app.flow.phrases import (
    INTENT_PHRASES,
    SUBSTRING_PRIORITY,
    GREETING_PHRASES,
    PHRASE_REGISTRY_VERSION,
)
from app.flow.states import Intent
from app.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_FUZZY_THRESHOLD = 0.85

_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: Optional[str]) -> str:
    """Trims, collapses inner whitespace and lowercases."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip().lower()


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one message."""
    intent: Intent
    match_type: str  # selection | exact | greeting | substring | fuzzy | none
    phrase: Optional[str] = None
    score: float = 1.0


class IntentClassifier:
    """
    Rule-based classifier over a declarative phrase registry.

    Args:
        phrases: intent -> phrases, in catalog order
        priority: substring matching order
        greetings: phrases that short-circuit to Intent.GREETING
        fuzzy_threshold: similarity (0-1) a fuzzy match must exceed
    """

    def __init__(
        self,
        phrases: Dict[Intent, Tuple[str, ...]] = INTENT_PHRASES,
        priority: Iterable[Intent] = SUBSTRING_PRIORITY,
        greetings: Iterable[str] = GREETING_PHRASES,
        fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
    ):
        self.fuzzy_threshold = fuzzy_threshold
        self.greetings = frozenset(normalize_text(g) for g in greetings)

        self._exact: Dict[str, Intent] = {}
        for intent, intent_phrases in phrases.items():
            for phrase in intent_phrases:
                self._exact.setdefault(normalize_text(phrase), intent)

        priority = list(priority)
        # Intents missing from the priority list are tried last, in catalog order
        priority += [intent for intent in phrases if intent not in priority]
        self._substring: List[Tuple[Intent, str, Pattern]] = [
            (intent, phrase, _word_pattern(phrase))
            for intent in priority
            for phrase in phrases.get(intent, ())
        ]

        self._fuzzy_candidates: List[Tuple[str, Intent]] = list(self._exact.items())
        self._fuzzy_candidates += [(greeting, Intent.GREETING) for greeting in sorted(self.greetings)]

    def classify(self, text: Optional[str], selection_id: Optional[str] = None) -> Intent:
        return self.resolve(text, selection_id).intent

    def resolve(self, text: Optional[str], selection_id: Optional[str] = None) -> Classification:
        """
        Classifies a message.

        Args:
            text: Free text, or the tapped label for button/list replies
            selection_id: Reply id when the message is a structured selection

        Returns:
            Classification with the resolved intent and how it matched
        """
        normalized = normalize_text(text)
        selection = normalize_text(selection_id)

        if not normalized and not selection:
            return Classification(Intent.NONE, "none", score=0.0)

        if selection:
            # Our own buttons carry the intent value as their id
            try:
                return Classification(Intent(selection), "selection", selection)
            except ValueError:
                pass
            if selection in self._exact:
                return Classification(self._exact[selection], "selection", selection)

        if normalized in self._exact:
            return Classification(self._exact[normalized], "exact", normalized)

        if not selection and normalized in self.greetings:
            return Classification(Intent.GREETING, "greeting", normalized)

        hit = self._match_substring(normalized)
        if hit:
            return hit

        return self._match_fuzzy(normalized)

    def _match_substring(self, text: str) -> Optional[Classification]:
        if not text:
            return None
        for intent, phrase, pattern in self._substring:
            if pattern.search(text):
                return Classification(intent, "substring", phrase)
        return None

    def _match_fuzzy(self, text: str) -> Classification:
        if not text:
            return Classification(Intent.NONE, "none", score=0.0)

        best_intent, best_phrase, best_score = Intent.NONE, None, 0.0
        for phrase, intent in self._fuzzy_candidates:
            score = fuzz.ratio(text, phrase) / 100.0
            # Strict comparison keeps the earliest candidate on ties
            if score > best_score:
                best_intent, best_phrase, best_score = intent, phrase, score

        if best_score > self.fuzzy_threshold:
            return Classification(best_intent, "fuzzy", best_phrase, best_score)
        return Classification(Intent.NONE, "none", score=best_score)


def _word_pattern(phrase: str) -> Pattern:
    # Phrase must stand as whole words so "how" does not fire inside "show"
    return re.compile(r"(?<!\w)" + re.escape(normalize_text(phrase)) + r"(?!\w)")


_default_classifier: Optional[IntentClassifier] = None


def get_intent_classifier() -> IntentClassifier:
    """Get or create the global classifier configured from settings."""
    global _default_classifier
    if _default_classifier is None:
        from app.core.config import settings
        _default_classifier = IntentClassifier(fuzzy_threshold=settings.FUZZY_MATCH_THRESHOLD)
        logger.info(
            f"Intent classifier ready (phrase registry v{PHRASE_REGISTRY_VERSION}, "
            f"fuzzy threshold {settings.FUZZY_MATCH_THRESHOLD})"
        )
    return _default_classifier


def classify(text: Optional[str], selection_id: Optional[str] = None) -> Intent:
    return get_intent_classifier().classify(text, selection_id)
