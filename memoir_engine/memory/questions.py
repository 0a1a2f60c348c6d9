"""
Question memory: normalization, interrogative detection and fallback questions.

Every dedup decision in the engine compares ``normalize_question`` keys, so
two questions differing only in case, punctuation or spacing count as the
same question.
"""

import re
from typing import Iterable, List, Optional, Sequence

from memoir_engine.config.settings import QuestionSettings
from .schemas import QuestionRecord, Session, EPOCH


_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+|\n+")

QUESTION_LEADS = (
    r"what|when|where|who|whom|whose|why|how|which",
    r"(?:do|did|does|can|could|would|will|have|had|were|are|should)\s+you",
    r"(?:is|was)\s+there",
)
_QUESTION_LEAD = re.compile(r"^(?:%s)\b" % "|".join(QUESTION_LEADS), re.IGNORECASE)


def normalize_question(text: Optional[str]) -> str:
    """
    Canonicalize a question into a comparison key.

    Lowercases, strips punctuation (the trailing question mark included) and
    collapses whitespace. Empty input yields an empty key.
    """
    if not text:
        return ""
    lowered = text.lower()
    stripped = _PUNCTUATION.sub("", lowered)
    return _WHITESPACE.sub(" ", stripped).strip()


def split_sentences(text: Optional[str]) -> List[str]:
    """Split text into trimmed sentences on terminal punctuation and newlines."""
    if not text:
        return []
    # Newlines are boundaries, so only collapse runs of horizontal whitespace
    flattened = re.sub(r"[ \t\r\f\v]+", " ", text)
    parts = _SENTENCE_BOUNDARY.split(flattened)
    return [part.strip() for part in parts if part and part.strip()]


def is_question(sentence: str) -> bool:
    """
    Classify a single sentence as interrogative.

    A sentence counts when it ends with "?" or opens with a recognized
    question lead. Questions with neither marker are not detected.
    """
    candidate = sentence.strip()
    if not candidate:
        return False
    if candidate.endswith("?"):
        return True
    return bool(_QUESTION_LEAD.match(candidate))


def extract_questions(text: Optional[str]) -> List[str]:
    """Return the interrogative sentences of ``text`` in reading order."""
    return [sentence for sentence in split_sentences(text) if is_question(sentence)]


def collect_asked_questions(sessions: Iterable[Session]) -> List[str]:
    """Scan every assistant turn, in session order then turn order."""
    questions: List[str] = []
    for session in sessions:
        for turn in session.turns:
            if turn.role != "assistant":
                continue
            questions.extend(extract_questions(turn.text))
    return questions


def collect_question_records(sessions: Iterable[Session]) -> List[QuestionRecord]:
    """Same scan as ``collect_asked_questions`` with provenance attached."""
    records: List[QuestionRecord] = []
    for session in sessions:
        for turn in session.turns:
            if turn.role != "assistant":
                continue
            for question in extract_questions(turn.text):
                records.append(
                    QuestionRecord(
                        raw_text=question,
                        normalized_key=normalize_question(question),
                        session_id=session.id,
                        asked_at=turn.created_at or session.created_at,
                    )
                )
    return records


def dedupe_questions(questions: Iterable[str], limit: Optional[int] = None) -> List[str]:
    """Keep the first occurrence of each normalized key, skipping empty keys."""
    unique: List[str] = []
    seen = set()
    for question in questions:
        key = normalize_question(question)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(question)
        if limit is not None and len(unique) >= limit:
            break
    return unique


def avoidance_questions(records: Sequence[QuestionRecord], limit: int) -> List[str]:
    """
    Build the capped list of questions the provider must not repeat.

    Args:
        records: Question records in any order
        limit: Maximum number of questions to keep

    Returns:
        Unique questions, oldest to newest. When over the cap the oldest
        questions are the ones dropped.
    """
    if limit <= 0:
        return []

    indexed = list(enumerate(records))
    # Newest first, so the first occurrence of each key is its latest asking
    indexed.sort(key=lambda item: (item[1].asked_at or EPOCH, item[0]), reverse=True)

    kept = []
    seen = set()
    for position, record in indexed:
        key = record.normalized_key or normalize_question(record.raw_text)
        if not key or key in seen:
            continue
        seen.add(key)
        kept.append((position, record))
        if len(kept) >= limit:
            break

    kept.reverse()
    return [record.raw_text for _, record in kept]


_FIRST_PERSON = re.compile(r"^I(?:['’]\w+)?$")


def lower_initial(phrase: str) -> str:
    """
    Lowercase the first letter of ``phrase`` so it reads mid-sentence.

    Leaves "I" and its contractions, acronyms and words with inner capitals
    ("McKenzie") alone, as well as capitalized words the phrase repeats
    later on, which are taken to be names.
    """
    if not phrase:
        return phrase
    first = phrase.split(" ", 1)[0].strip(".,;:!?\"()")
    if not first or not first[0].isupper():
        return phrase
    if _FIRST_PERSON.match(first) or any(c.isupper() for c in first[1:]):
        return phrase
    if re.search(r"\b%s\b" % re.escape(first), phrase[len(first):]):
        return phrase
    return phrase[0].lower() + phrase[1:]


def _detail_phrase(detail: str) -> str:
    phrase = _WHITESPACE.sub(" ", detail).strip().rstrip(".!?…,;:").strip()
    return lower_initial(phrase)


def pick_fallback_question(
    asked_questions: Iterable[str],
    highlight_detail: Optional[str] = None,
    settings: Optional[QuestionSettings] = None,
) -> str:
    """
    Choose a question that has not been asked before.

    Templates are tried in order; those mentioning ``{detail}`` only when a
    highlight detail is available. Once every template is used up the
    universal template is numbered upward until its key is unused, so this
    always returns.

    Args:
        asked_questions: Questions already asked of this person
        highlight_detail: Optional remembered detail to personalize with
        settings: Question configuration (templates, universal template)

    Returns:
        A question whose normalized key is not in ``asked_questions``
    """
    settings = settings or QuestionSettings()
    asked = {normalize_question(question) for question in asked_questions}
    asked.discard("")
    detail = _detail_phrase(highlight_detail) if highlight_detail else ""

    for template in settings.templates:
        if "{detail}" in template:
            if not detail:
                continue
            candidate = template.replace("{detail}", detail)
        else:
            candidate = template
        key = normalize_question(candidate)
        if key and key not in asked:
            return candidate

    counter = 1
    while True:
        candidate = settings.universal_template.replace("{n}", str(counter))
        key = normalize_question(candidate)
        if key and key not in asked:
            return candidate
        if "{n}" not in settings.universal_template:
            # A template without a counter can never change; number it explicitly
            candidate = f"{candidate.rstrip('?')} (story {counter})?"
            if normalize_question(candidate) not in asked:
                return candidate
        counter += 1


def soften_question(question: Optional[str]) -> str:
    """Turn "X?" into an optional invitation: "If you'd like, you could share x?"."""
    if not question:
        return ""
    trimmed = question.strip()
    if not trimmed:
        return ""
    without_mark = re.sub(r"\?+$", "", trimmed)
    if not without_mark:
        return ""
    lowered = without_mark[0].lower() + without_mark[1:]
    return f"If you'd like, you could share {lowered}?"
