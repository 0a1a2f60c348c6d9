"""Completion intent detection: has the user asked to wrap up?"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from memoir_engine.config.settings import DEFAULT_COMPLETION_PHRASES


@dataclass
class CompletionIntent:
    """Result of scanning an utterance for a stop request."""
    should_stop: bool
    matched_phrase: Optional[str] = None


CompletionDetector = Callable[[str], CompletionIntent]


def _normalize(text: str) -> str:
    text = text.lower().replace("’", "'").replace("‘", "'")
    return re.sub(r"\s+", " ", text).strip()


def detect_completion_intent(text: Optional[str], phrases: Optional[Iterable[str]] = None) -> CompletionIntent:
    """
    Look for a known stop phrase in ``text``.

    Phrases match on word boundaries, case-insensitively, with curly
    apostrophes treated as straight ones.
    """
    if not text or not text.strip():
        return CompletionIntent(should_stop=False)

    normalized = _normalize(text)
    for phrase in phrases if phrases is not None else DEFAULT_COMPLETION_PHRASES:
        needle = _normalize(phrase)
        if not needle:
            continue
        if re.search(r"(?<!\w)" + re.escape(needle) + r"(?!\w)", normalized):
            return CompletionIntent(should_stop=True, matched_phrase=phrase)
    return CompletionIntent(should_stop=False)


def phrase_detector(phrases: Iterable[str]) -> CompletionDetector:
    """Bind a phrase list into a detector callable."""
    bound = list(phrases)

    def detector(text: str) -> CompletionIntent:
        return detect_completion_intent(text, bound)

    return detector
