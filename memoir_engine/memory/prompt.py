"""
Memory prompt assembly.

Turns a person's sessions and primer into the plain-text blocks that go
into a provider prompt and drive the fallback composer.
"""

from typing import List, Optional, Sequence

from memoir_engine.config.settings import Settings
from .details import collect_highlight_details, find_latest_user_details
from .primer import session_label
from .questions import avoidance_questions, collect_asked_questions, collect_question_records
from .schemas import MemoryPrompt, Session


MAX_PRIOR_SESSIONS = 4
MAX_RECENT_TURNS = 6


def build_memory_prompt(
    session_id: Optional[str],
    current: Optional[Session],
    sessions: Sequence[Session],
    primer_text: str = "",
    primer_handle: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> MemoryPrompt:
    """
    Build the per-request memory prompt.

    Args:
        session_id: Session being extended, None for an anonymous request
        current: The focus session if it could be loaded
        sessions: All sessions of the focus handle, newest first
        primer_text: Previously compiled primer markdown, or ""
        primer_handle: Handle key the primer belongs to
        settings: Application settings

    Returns:
        MemoryPrompt with history, avoidance and recent conversation blocks
    """
    if not session_id:
        return MemoryPrompt()

    settings = settings or Settings()
    min_length = settings.details.min_sentence_length

    asked_questions = collect_asked_questions(sessions)
    latest = find_latest_user_details(sessions, limit=1, min_length=min_length)
    highlight_detail = latest[0] if latest else None

    prior = [session for session in sessions if session.id != session_id]
    history_lines: List[str] = []
    if prior:
        history_lines.append("Highlights from previous sessions:")
        for session in prior[:MAX_PRIOR_SESSIONS]:
            detail = collect_highlight_details([session], limit=1, min_length=min_length)
            suffix = f" -> {detail[0].text}" if detail else ""
            history_lines.append(f"- {session_label(session)}{suffix}")

    current_turns = current.turns if current is not None else []
    conversation_lines: List[str] = []
    if current_turns:
        conversation_lines.append("Current session so far:")
        for turn in current_turns[-MAX_RECENT_TURNS:]:
            label = "You" if turn.role == "assistant" else "User"
            conversation_lines.append(f"{label}: {turn.text}")

    avoided = avoidance_questions(
        collect_question_records(sessions),
        settings.questions.max_avoided_questions,
    )
    if avoided:
        question_lines = ["Avoid repeating these prior questions:", *[f"- {q}" for q in avoided]]
    else:
        question_lines = ["No prior questions are on record."]

    return MemoryPrompt(
        history_text="\n".join(history_lines) if history_lines else "No previous transcript details are available yet.",
        question_text="\n".join(question_lines),
        recent_conversation="\n".join(conversation_lines),
        asked_questions=asked_questions,
        highlight_detail=highlight_detail,
        primer_text=(primer_text or "").strip(),
        primer_handle=primer_handle,
        has_prior_sessions=bool(prior),
        has_current_conversation=bool(current_turns),
    )
