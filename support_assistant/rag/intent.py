"""
Intent pre-classification.

Runs before any embedding or search work: greetings and thanks get a canned
reply, everything else goes through retrieval.
"""

from enum import Enum
from typing import List, Pattern, Tuple
import random
import re


class Intent(Enum):
    GREETING = "greeting"
    THANKS = "thanks"
    SUBSTANTIVE = "substantive"


def _anchored(words: List[str]) -> Pattern:
    return re.compile(r'^\s*(?:' + '|'.join(words) + r')\b', re.IGNORECASE)


def _contains(words: List[str]) -> Pattern:
    return re.compile(r'\b(?:' + '|'.join(words) + r')\b', re.IGNORECASE)


GREETING_WORDS = [
    r'hi+', r'hai', r'hiya', r'hello', r'helo', r'hallo', r'hey+', r'heya',
    r'good\s+(?:morning|afternoon|evening|day)',
]

THANKS_WORDS = [
    r'thank\s*you', r'thanks', r'thx', r'good\s+job', r'well\s+done',
    r'great', r'appreciate[ds]?', r'super',
]

# Checked in order; first match wins, so greetings take precedence.
INTENT_VOCABULARY: Tuple[Tuple[Intent, Pattern], ...] = (
    (Intent.GREETING, _anchored(GREETING_WORDS)),
    (Intent.THANKS, _contains(THANKS_WORDS)),
)

GREETING_RESPONSES = [
    "Hi, How can I help you?",
    "Hello! How can I assist you today?",
    "Hi there! What can I help you with?",
    "Hey! Do you need any help?",
]

THANKS_RESPONSE = "You're welcome!"


def classify(message: str) -> Intent:
    """Classify a raw user message. Pure: no I/O."""
    text = (message or '').strip()
    for intent, pattern in INTENT_VOCABULARY:
        if pattern.search(text):
            return intent
    return Intent.SUBSTANTIVE


def canned_reply(intent: Intent, rng: random.Random = None) -> str:
    """Template reply for a short-circuit intent."""
    if intent is Intent.GREETING:
        return (rng or random).choice(GREETING_RESPONSES)
    if intent is Intent.THANKS:
        return THANKS_RESPONSE
    raise ValueError(f"No canned reply for {intent}")
