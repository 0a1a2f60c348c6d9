"""Unit tests for completion intent detection."""

import pytest

from memoir_engine.generation.intents import detect_completion_intent, phrase_detector


@pytest.mark.parametrize("text,phrase", [
    ("I'm done for today", "i'm done"),
    ("I’m done, thank you", "i'm done"),
    ("OK. Let's stop here.", "let's stop"),
    ("Goodbye!", "goodbye"),
    ("That's   all for today.", "that's all for today"),
])
def test_stop_phrases_detected(text, phrase):
    intent = detect_completion_intent(text)
    assert intent.should_stop is True
    assert intent.matched_phrase == phrase


@pytest.mark.parametrize("text", [
    None,
    "",
    "We kept bees behind the shed.",
    "The goodbyes at the station were hard.",
    "I'm doneness-curious",
])
def test_no_stop_phrase(text):
    intent = detect_completion_intent(text)
    assert intent.should_stop is False
    assert intent.matched_phrase is None


def test_phrase_detector_binds_phrases():
    detector = phrase_detector(["all done"])

    assert detector("We are all done now").should_stop is True
    assert detector("I'm done").should_stop is False


def test_blank_phrases_ignored():
    assert detect_completion_intent("anything", phrases=["", "  "]).should_stop is False
