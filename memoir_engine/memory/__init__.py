"""
Memory subsystem for cross-session interview continuity.

Provides:
- Question normalization, extraction and fallback question selection
- Highlight detail extraction from user turns
- Stage-organized memory primer compilation
- Memory prompt assembly
- Session/primer caches and storage adapters
"""

from .schemas import (
    Turn,
    Session,
    QuestionRecord,
    HighlightDetail,
    MemoryPrimer,
    MemoryPrompt,
)
from .questions import (
    normalize_question,
    extract_questions,
    collect_asked_questions,
    collect_question_records,
    dedupe_questions,
    avoidance_questions,
    pick_fallback_question,
    soften_question,
)
from .details import find_latest_user_details, collect_highlight_details
from .primer import (
    compile_primer,
    build_memory_primer,
    categorize_detail,
    normalize_handle,
    primer_key_for_handle,
)
from .prompt import build_memory_prompt
from .store import SessionSource, InMemorySessionSource, KVSessionSource, PrimerStore
from .cache import SessionMemoryCache, PrimerService

__all__ = [
    "Turn",
    "Session",
    "QuestionRecord",
    "HighlightDetail",
    "MemoryPrimer",
    "MemoryPrompt",
    "normalize_question",
    "extract_questions",
    "collect_asked_questions",
    "collect_question_records",
    "dedupe_questions",
    "avoidance_questions",
    "pick_fallback_question",
    "soften_question",
    "find_latest_user_details",
    "collect_highlight_details",
    "compile_primer",
    "build_memory_primer",
    "categorize_detail",
    "normalize_handle",
    "primer_key_for_handle",
    "build_memory_prompt",
    "SessionSource",
    "InMemorySessionSource",
    "KVSessionSource",
    "PrimerStore",
    "SessionMemoryCache",
    "PrimerService",
]
