"""
Memory primer compilation.

Folds every session recorded for a handle into one markdown biography,
filed by interview stage. The primer is rebuilt from scratch each time and
never patched, so the same sessions always render the same text.
"""

import re
from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Tuple

from memoir_engine.config.settings import PrimerSettings, Settings, StageDefinition
from .details import detail_sentences, truncate_snippet
from .schemas import HighlightDetail, MemoryPrimer, Session


UNASSIGNED_HANDLE = "unassigned"


def normalize_handle(value: Optional[str]) -> Optional[str]:
    """Lowercase a handle, drop a leading "@" and unsafe characters."""
    if not value or not isinstance(value, str):
        return None
    cleaned = value.strip().lstrip("@").lower()
    cleaned = re.sub(r"[^a-z0-9._-]+", "-", cleaned).strip("-")
    return cleaned or None


def primer_key_for_handle(handle: Optional[str]) -> str:
    return normalize_handle(handle) or UNASSIGNED_HANDLE


def format_timestamp(value: Optional[datetime]) -> str:
    if value is None:
        return "Unknown time"
    return value.astimezone(timezone.utc).strftime("%b %d, %Y %H:%M UTC")


def session_label(session: Session) -> str:
    if session.title and session.title.strip():
        return session.title.strip()
    if session.created_at is not None:
        return f"Session from {session.created_at.astimezone(timezone.utc).strftime('%b %d, %Y')}"
    return f"Session {session.id}"


@lru_cache(maxsize=256)
def _compile_keyword(pattern: str) -> Optional[Pattern[str]]:
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error:
        return None


def categorize_detail(
    detail: str,
    stages: Sequence[StageDefinition],
    other: StageDefinition,
) -> StageDefinition:
    """Return the first stage with a keyword found in ``detail``, else ``other``."""
    for stage in stages:
        for keyword in stage.keywords:
            compiled = _compile_keyword(keyword)
            if compiled is not None and compiled.search(detail):
                return stage
    return other


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:] if text else text


def _primer_sessions(sessions: Iterable[object]) -> List[Session]:
    """Validate and order sessions oldest first, skipping malformed ones."""
    usable = []
    for raw in sessions:
        session = Session.from_record(raw)
        if session is not None:
            usable.append(session)
    return sorted(usable, key=lambda session: session.sort_key())


def collect_stage_details(
    sessions: Sequence[Session],
    settings: Optional[Settings] = None,
) -> Dict[str, List[HighlightDetail]]:
    """
    File every user detail under its interview stage.

    Args:
        sessions: Sessions ordered oldest first
        settings: Application settings (taxonomy, thresholds, caps)

    Returns:
        Mapping of stage id to details, newest first within each stage
    """
    settings = settings or Settings()
    primer_cfg = settings.primer
    buckets: Dict[str, List[HighlightDetail]] = {}
    seen: Dict[str, set] = {}

    for session in reversed(sessions):
        for index in range(len(session.turns) - 1, -1, -1):
            turn = session.turns[index]
            if turn.role != "user" or not turn.text.strip():
                continue
            for sentence in detail_sentences(turn.text, settings.details.min_sentence_length):
                snippet = _capitalize(truncate_snippet(sentence, settings.details.snippet_limit))
                if not snippet:
                    continue
                stage = categorize_detail(snippet, primer_cfg.stages, primer_cfg.other_stage)
                stage_seen = seen.setdefault(stage.id, set())
                if snippet in stage_seen:
                    continue
                bucket = buckets.setdefault(stage.id, [])
                if len(bucket) >= primer_cfg.max_details_per_stage:
                    continue
                stage_seen.add(snippet)
                bucket.append(
                    HighlightDetail(
                        text=snippet,
                        session_id=session.id,
                        turn_index=index,
                        created_at=turn.created_at or session.created_at,
                        stage_id=stage.id,
                    )
                )
    return buckets


def _latest_highlights(
    latest: Optional[Session],
    buckets: Dict[str, List[HighlightDetail]],
    stage_order: Sequence[StageDefinition],
    limit: int,
) -> List[Tuple[str, str]]:
    if latest is None:
        return []
    highlights: List[Tuple[str, str]] = []
    for stage in stage_order:
        for detail in buckets.get(stage.id, []):
            if detail.session_id != latest.id:
                continue
            highlights.append((stage.title, detail.text))
            if len(highlights) >= limit:
                return highlights
    return highlights


def compile_primer(
    sessions: Iterable[object],
    handle: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> str:
    """
    Render the memory primer markdown for one handle.

    Output depends only on the sessions, the handle and the settings; no
    wall-clock time is rendered. Malformed sessions are skipped.

    Args:
        sessions: Sessions (models or raw records) belonging to the handle
        handle: Raw or normalized handle, None for the unassigned primer
        settings: Application settings

    Returns:
        Primer markdown text
    """
    settings = settings or Settings()
    primer_cfg: PrimerSettings = settings.primer
    ordered = _primer_sessions(sessions)
    latest = ordered[-1] if ordered else None
    buckets = collect_stage_details(ordered, settings)
    stage_order = [*primer_cfg.stages, primer_cfg.other_stage]

    normalized = normalize_handle(handle)
    display_handle = f"@{normalized}" if normalized else "Unassigned storyteller"

    lines: List[str] = [f"# Memory Primer: {display_handle}", ""]
    lines.append(
        "Use this biography snapshot before the next interview session. "
        "Details follow the interview guide stages, newest first, with the most recent one marked."
    )
    lines.append("")
    lines.append(f"Total recorded sessions: {len(ordered)}")
    lines.append(f"Latest session captured: {session_label(latest) if latest else 'None yet'}")
    if latest is not None and latest.created_at is not None:
        lines.append(f"Last session timestamp: {format_timestamp(latest.created_at)}")
    lines.append("")

    highlights = _latest_highlights(latest, buckets, stage_order, primer_cfg.max_latest_highlights)
    if highlights:
        lines.append("## Latest Session Highlights")
        for title, text in highlights:
            lines.append(f"- {title}: {text}")
        lines.append("")

    missing: List[StageDefinition] = []
    filled = [stage for stage in stage_order if buckets.get(stage.id)]
    if filled:
        lines.append("## Interview Guide Map")
        lines.append("")
    for stage in stage_order:
        details = buckets.get(stage.id)
        if not details:
            if stage.id != primer_cfg.other_stage.id:
                missing.append(stage)
            continue
        lines.append(f"### {stage.title}")
        for position, detail in enumerate(details):
            prefix = "Latest: " if position == 0 else ""
            lines.append(f"- {prefix}{detail.text}")
        lines.append("")

    if missing:
        lines.append("## Suggested Next Angles")
        for stage in missing:
            guide = f" {stage.fallback}" if stage.fallback else ""
            lines.append(f"- {stage.title}:{guide}")
        lines.append("")

    if not ordered:
        lines.append("No conversations have been recorded yet. Use the guide to plan the first session.")

    return "\n".join(lines).strip()


def build_memory_primer(
    sessions: Iterable[object],
    handle: Optional[str] = None,
    settings: Optional[Settings] = None,
    now: Optional[datetime] = None,
) -> MemoryPrimer:
    """Compile the primer and wrap it with its handle key and build time."""
    return MemoryPrimer(
        user_handle=primer_key_for_handle(handle),
        markdown_text=compile_primer(sessions, handle=handle, settings=settings),
        updated_at=now or datetime.now(timezone.utc),
    )
