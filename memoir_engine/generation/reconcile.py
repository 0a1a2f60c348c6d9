"""
Reconciliation of provider output with conversation memory.

Decides what the user actually hears. Provider output is merged with the
precomputed fallback so that the reply is never empty and never ends on a
question that was already asked. Nothing raised in here reaches the
caller: any failure resolves to the deterministic fallback.
"""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Set

from memoir_engine.config.settings import FallbackTexts
from memoir_engine.memory.questions import extract_questions, is_question, normalize_question, split_sentences
from memoir_engine.memory.schemas import MemoryPrompt
from .fallback import FallbackPlan
from .intents import CompletionDetector, detect_completion_intent
from .provider import (
    ProviderError,
    ProviderException,
    ProviderResult,
    Structured,
    Unstructured,
    result_snippet,
    result_status,
)


logger = logging.getLogger(__name__)


class ReasonCode(str, Enum):
    """Which reconciliation path produced the reply (never shown to users)."""
    PROVIDER_SUCCESS = "provider_success"
    FALLBACK_GUARD = "fallback_guard"
    UNSTRUCTURED_RESPONSE = "unstructured_response"
    EMPTY_RESPONSE = "empty_response"
    PROVIDER_ERROR = "provider_error"
    EXCEPTION = "exception"


@dataclass
class ReconciledReply:
    """Final reply for one ask request."""
    reply: str
    transcript: str
    end_intent: bool
    reason: ReasonCode
    used_fallback: bool
    question_substituted: bool = False
    provider_status: Optional[int] = None
    provider_error: Optional[str] = None
    provider_snippet: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["reason"] = self.reason.value
        return data


@dataclass
class IntroReply:
    """Opening message for a recording session."""
    message: str
    reason: ReasonCode
    used_fallback: bool
    question_substituted: bool = False


def _text_field(fields: Mapping[str, Any], name: str) -> str:
    value = fields.get(name)
    if isinstance(value, str):
        return value.strip()
    return ""


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return False


def _asked_keys(questions: Iterable[str]) -> Set[str]:
    keys = {normalize_question(question) for question in questions}
    keys.discard("")
    return keys


def _drop_repeated_questions(text: str, asked: Set[str]) -> str:
    """Remove interrogative sentences of ``text`` that were already asked."""
    sentences = split_sentences(text)
    kept = [
        sentence for sentence in sentences
        if not (is_question(sentence) and normalize_question(sentence) in asked)
    ]
    if len(kept) == len(sentences):
        return text
    return " ".join(kept)


def _ends_on_repeat(text: str, asked: Set[str]) -> bool:
    questions = extract_questions(text)
    return bool(questions) and normalize_question(questions[-1]) in asked


def _fallback_reply(
    plan: Optional[FallbackPlan],
    texts: FallbackTexts,
    reason: ReasonCode,
    transcript: str,
    end_intent: bool,
    result: Optional[ProviderResult] = None,
    error: Optional[str] = None,
) -> ReconciledReply:
    reply = plan.reply if plan is not None and plan.reply.strip() else texts.provider_exception
    return ReconciledReply(
        reply=reply,
        transcript=transcript,
        end_intent=end_intent,
        reason=reason,
        used_fallback=True,
        provider_status=result_status(result) if result is not None else None,
        provider_error=error,
        provider_snippet=result_snippet(result) if result is not None else "",
    )


def _reconcile_structured(
    result: Structured,
    asked: Set[str],
    plan: FallbackPlan,
    user_text: str,
    detector: CompletionDetector,
    texts: FallbackTexts,
) -> ReconciledReply:
    fields = result.fields
    raw_reply = _text_field(fields, "reply")
    transcript_field = fields.get("transcript")
    transcript = transcript_field if isinstance(transcript_field, str) and transcript_field.strip() else user_text
    completion = detector(transcript or user_text)
    end_intent = _as_bool(fields.get("end_intent")) or completion.should_stop

    candidate = _text_field(fields, "question") or None
    if not candidate and raw_reply:
        in_reply = extract_questions(raw_reply)
        if in_reply:
            candidate = in_reply[-1]

    if not raw_reply and not candidate:
        return _fallback_reply(plan, texts, ReasonCode.FALLBACK_GUARD, transcript, end_intent, result)

    substituted = False
    reply = raw_reply
    if candidate and normalize_question(candidate) in asked:
        candidate = plan.question
        substituted = True
        reply = _drop_repeated_questions(reply, asked)

    if candidate:
        if not reply:
            reply = candidate
        elif candidate not in reply:
            reply = f"{reply} {candidate}".strip()
    elif plan.suggestion:
        reply = f"{reply} {plan.suggestion}".strip()

    reply = reply.strip() or plan.reply

    if _ends_on_repeat(reply, asked):
        reply = _drop_repeated_questions(reply, asked).strip()
        if plan.question not in reply:
            reply = f"{reply} {plan.question}".strip()
        substituted = True

    return ReconciledReply(
        reply=reply,
        transcript=transcript,
        end_intent=end_intent,
        reason=ReasonCode.PROVIDER_SUCCESS,
        used_fallback=False,
        question_substituted=substituted,
        provider_status=result.status,
        provider_snippet=result_snippet(result),
    )


def _reconcile_unstructured(
    result: Unstructured,
    asked: Set[str],
    plan: FallbackPlan,
    user_text: str,
    detector: CompletionDetector,
    texts: FallbackTexts,
) -> ReconciledReply:
    text = result.text
    if not text.strip():
        end_intent = detector(user_text).should_stop
        return _fallback_reply(plan, texts, ReasonCode.EMPTY_RESPONSE, user_text, end_intent, result)

    # Audio-only turns have no user text; the reply is then the only signal
    end_intent = detector(user_text or text).should_stop
    if normalize_question(text) in asked or _ends_on_repeat(text, asked):
        logger.info("Provider repeated an asked question; using fallback")
        return _fallback_reply(plan, texts, ReasonCode.FALLBACK_GUARD, user_text, end_intent, result)

    return ReconciledReply(
        reply=text,
        transcript=user_text,
        end_intent=end_intent,
        reason=ReasonCode.UNSTRUCTURED_RESPONSE,
        used_fallback=False,
        provider_status=result.status,
        provider_snippet=result_snippet(result),
    )


def reconcile(
    result: ProviderResult,
    memory: MemoryPrompt,
    plan: FallbackPlan,
    user_text: Optional[str] = "",
    detector: Optional[CompletionDetector] = None,
    texts: Optional[FallbackTexts] = None,
) -> ReconciledReply:
    """
    Merge one provider result with memory into the final reply.

    Args:
        result: Provider output, already classified
        memory: Memory prompt for this request (asked questions)
        plan: Precomputed fallback for this request
        user_text: The user's text input, if any
        detector: Completion intent detector
        texts: Fallback copy, used only when ``plan`` has no reply

    Returns:
        ReconciledReply with a non-empty reply and a reason code
    """
    detector = detector or detect_completion_intent
    texts = texts or FallbackTexts()
    user_text = user_text or ""

    try:
        asked = _asked_keys(memory.asked_questions)
        if isinstance(result, Structured):
            return _reconcile_structured(result, asked, plan, user_text, detector, texts)
        if isinstance(result, Unstructured):
            return _reconcile_unstructured(result, asked, plan, user_text, detector, texts)
        if isinstance(result, ProviderError):
            logger.warning(f"Provider error {result.status}: {result.message}")
            return _fallback_reply(
                plan, texts, ReasonCode.PROVIDER_ERROR, user_text, False, result, error=result.message
            )
        if isinstance(result, ProviderException):
            logger.warning(f"Provider exception: {result.message}")
            return _fallback_reply(
                plan, texts, ReasonCode.EXCEPTION, user_text, False, result, error=result.message
            )
        raise TypeError(f"Unsupported provider result: {type(result).__name__}")
    except Exception as e:
        logger.exception("Reconciliation failed; using fallback")
        return _fallback_reply(plan, texts, ReasonCode.EXCEPTION, user_text, False, error=str(e))


def reconcile_intro(
    result: ProviderResult,
    asked_questions: Iterable[str],
    fallback_message: str,
    fallback_question: str,
) -> IntroReply:
    """
    Reconcile the session-intro response shape {"message", "question"}.

    A repeated question is swapped for ``fallback_question``; a message
    without any question gets the fallback question appended.
    """
    try:
        if isinstance(result, Structured):
            message = _text_field(result.fields, "message")
            question = _text_field(result.fields, "question")
        elif isinstance(result, Unstructured):
            message, question = result.text.strip(), ""
        else:
            return IntroReply(message=fallback_message, reason=_failure_reason(result), used_fallback=True)

        if not message:
            return IntroReply(message=fallback_message, reason=ReasonCode.EMPTY_RESPONSE, used_fallback=True)

        asked = _asked_keys(asked_questions)
        substituted = False
        if question and normalize_question(question) in asked:
            question = fallback_question
            substituted = True
        if _ends_on_repeat(message, asked):
            message = _drop_repeated_questions(message, asked).strip()
            question = question or fallback_question
            substituted = True
        if question and question not in message:
            message = f"{message} {question}".strip()
        if "?" not in message:
            message = f"{message} {fallback_question}".strip()

        reason = ReasonCode.PROVIDER_SUCCESS if isinstance(result, Structured) else ReasonCode.UNSTRUCTURED_RESPONSE
        return IntroReply(message=message, reason=reason, used_fallback=False, question_substituted=substituted)
    except Exception:
        logger.exception("Intro reconciliation failed; using fallback")
        return IntroReply(message=fallback_message, reason=ReasonCode.EXCEPTION, used_fallback=True)


def _failure_reason(result: ProviderResult) -> ReasonCode:
    if isinstance(result, ProviderError):
        return ReasonCode.PROVIDER_ERROR
    return ReasonCode.EXCEPTION
