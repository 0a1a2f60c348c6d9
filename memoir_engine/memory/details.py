"""
Highlight detail extraction from user turns.

Pulls short, recent facts the user shared so replies and primers can refer
back to them.
"""

import re
from typing import Iterable, List, Optional

from .questions import split_sentences
from .schemas import HighlightDetail, Session


def truncate_snippet(text: str, limit: int = 200) -> str:
    """
    Collapse whitespace and shorten ``text`` to at most ``limit`` characters.

    Cuts at the last word boundary when one exists past the 40th character.
    """
    cleaned = re.sub(r"\s+", " ", text or "").strip()
    if not cleaned:
        return ""
    if len(cleaned) <= limit:
        return cleaned
    head = cleaned[: limit - 1]
    last_space = head.rfind(" ")
    if last_space > 40:
        return f"{head[:last_space]}…"
    return f"{head}…"


def detail_sentences(text: str, min_length: int = 12) -> List[str]:
    """
    Sentences long enough to carry a fact and not themselves questions.

    Only a trailing "?" marks a question here; narration often opens with
    "When" or "How" and is still a statement.
    """
    return [
        sentence
        for sentence in split_sentences(text)
        if len(sentence) >= min_length and not sentence.endswith("?")
    ]


def sessions_newest_first(sessions: Iterable[Session]) -> List[Session]:
    return sorted(sessions, key=lambda session: session.sort_key(), reverse=True)


def collect_highlight_details(
    sessions: Iterable[Session],
    limit: Optional[int] = None,
    exclude_session_id: Optional[str] = None,
    min_length: int = 12,
    snippet_limit: int = 200,
) -> List[HighlightDetail]:
    """
    Collect the newest highlight details, one per qualifying user turn.

    Args:
        sessions: Sessions for one person, in any order
        limit: Maximum number of details (None for all)
        exclude_session_id: Session to skip, usually the one being recorded
        min_length: Minimum sentence length to count as a detail
        snippet_limit: Maximum characters kept per detail

    Returns:
        Details ordered newest first
    """
    if limit is not None and limit <= 0:
        return []

    details: List[HighlightDetail] = []
    for session in sessions_newest_first(sessions):
        if exclude_session_id and session.id == exclude_session_id:
            continue
        for index in range(len(session.turns) - 1, -1, -1):
            turn = session.turns[index]
            if turn.role != "user" or not turn.text.strip():
                continue
            sentences = detail_sentences(turn.text, min_length)
            if not sentences:
                continue
            snippet = truncate_snippet(sentences[0], snippet_limit)
            if not snippet:
                continue
            details.append(
                HighlightDetail(
                    text=snippet,
                    session_id=session.id,
                    turn_index=index,
                    created_at=turn.created_at or session.created_at,
                )
            )
            if limit is not None and len(details) >= limit:
                return details
    return details


def find_latest_user_details(
    sessions: Iterable[Session],
    limit: int = 1,
    exclude_session_id: Optional[str] = None,
    min_length: int = 12,
) -> List[str]:
    """Text of the newest highlight details, newest first, at most ``limit``."""
    return [
        detail.text
        for detail in collect_highlight_details(
            sessions,
            limit=limit,
            exclude_session_id=exclude_session_id,
            min_length=min_length,
        )
    ]
