"""
Deterministic fallback replies.

Used whenever the provider is down, returns nothing usable, or tries to
repeat a question. The output never depends on provider state.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from memoir_engine.config.settings import FallbackTexts, Settings
from memoir_engine.memory.questions import lower_initial, pick_fallback_question, soften_question
from memoir_engine.memory.schemas import MemoryPrompt


class FallbackBasis(Enum):
    """Which row of the decision table produced the reply."""
    FIRST_SESSION = "first_session"
    RETURNING_WITH_HIGHLIGHT = "returning_with_highlight"
    RETURNING_DEFAULT = "returning_default"


@dataclass
class FallbackPlan:
    """Precomputed fallback for one request."""
    question: str
    suggestion: str
    reply: str
    basis: FallbackBasis


def _detail_clause(detail: str) -> str:
    clause = " ".join(detail.split()).rstrip(".!?…").strip()
    return lower_initial(clause)


def base_reply(memory: MemoryPrompt, texts: FallbackTexts) -> tuple:
    """Pick the statement that opens the fallback reply."""
    if not memory.has_prior_sessions and not memory.has_current_conversation:
        return texts.first_session_greeting, FallbackBasis.FIRST_SESSION
    if memory.highlight_detail and _detail_clause(memory.highlight_detail):
        text = texts.returning_with_highlight.replace("{detail}", _detail_clause(memory.highlight_detail))
        return text, FallbackBasis.RETURNING_WITH_HIGHLIGHT
    return texts.returning_default, FallbackBasis.RETURNING_DEFAULT


def plan_fallback(memory: MemoryPrompt, settings: Optional[Settings] = None) -> FallbackPlan:
    """
    Compute the fallback question, its softened form and the full reply.

    Args:
        memory: Memory prompt for this request
        settings: Application settings (texts, question templates)

    Returns:
        FallbackPlan whose reply is one statement followed by at most one question
    """
    settings = settings or Settings()
    question = pick_fallback_question(memory.asked_questions, memory.highlight_detail, settings.questions)
    suggestion = soften_question(question)
    opening, basis = base_reply(memory, settings.texts)
    reply = f"{opening} {suggestion}".strip() if suggestion else opening.strip()
    if not reply:
        reply = settings.texts.returning_default
    return FallbackPlan(question=question, suggestion=suggestion, reply=reply, basis=basis)


def compose_fallback(memory: MemoryPrompt, settings: Optional[Settings] = None) -> str:
    """Return the deterministic fallback reply for ``memory``."""
    return plan_fallback(memory, settings).reply


def _join_readable(items: Sequence[str]) -> str:
    if len(items) <= 1:
        return "".join(items)
    return ", ".join(items[:-1]) + f" and {items[-1]}"


def compose_intro_fallback(
    titles: Sequence[str],
    details: Sequence[str],
    question: str,
    has_history: bool,
    texts: Optional[FallbackTexts] = None,
) -> str:
    """
    Build the deterministic opening message for a recording session.

    Args:
        titles: Titles of previous sessions
        details: Remembered details, newest first
        question: Fallback question that has not been asked before
        has_history: Whether earlier sessions exist
        texts: Fallback copy

    Returns:
        Greeting, optional reminder, invitation and one closing question
    """
    texts = texts or FallbackTexts()
    parts: List[str] = []
    if has_history:
        greeting = texts.intro_returning
        if titles:
            greeting += f", picking up after {titles[0].strip()}"
        parts.append(greeting.rstrip(".") + ".")
    else:
        parts.append(texts.intro_first)

    clauses = [_detail_clause(detail) for detail in details[:2] if _detail_clause(detail)]
    if clauses:
        parts.append(texts.intro_reminder.replace("{details}", _join_readable(clauses)))

    parts.append(texts.intro_invitation_returning if has_history else texts.intro_invitation_first)
    closing = question.strip() or texts.intro_first_question
    parts.append(closing)
    return " ".join(part.strip() for part in parts if part.strip())
