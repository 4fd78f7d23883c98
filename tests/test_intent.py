"""Tests for greeting/thanks pre-classification."""

import random

import pytest

from support_assistant.rag.intent import (
    GREETING_RESPONSES, THANKS_RESPONSE, Intent, canned_reply, classify,
)


@pytest.mark.parametrize("message", [
    "Hello there!", "hi", "Hiii", "hey, quick one", "Good morning", "  HELLO  ",
])
def test_greetings(message):
    assert classify(message) is Intent.GREETING


@pytest.mark.parametrize("message", [
    "thanks a lot", "Thank you!", "thx", "that was great", "Well done", "I appreciate it",
])
def test_thanks(message):
    assert classify(message) is Intent.THANKS


@pytest.mark.parametrize("message", [
    "What is the maximum voltage?",
    "history of firmware versions",
    "Which pins does the heater use?",
    "reset the device",
    "",
])
def test_substantive(message):
    assert classify(message) is Intent.SUBSTANTIVE


def test_greeting_takes_precedence_over_thanks():
    assert classify("Hello, thanks for the help") is Intent.GREETING


def test_greeting_word_must_lead():
    assert classify("Say hello to the new menu") is Intent.SUBSTANTIVE


def test_canned_replies():
    assert canned_reply(Intent.GREETING, random.Random(1)) in GREETING_RESPONSES
    assert canned_reply(Intent.THANKS) == THANKS_RESPONSE
    with pytest.raises(ValueError):
        canned_reply(Intent.SUBSTANTIVE)
