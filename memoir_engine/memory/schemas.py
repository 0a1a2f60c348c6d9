"""
Memory system data models.

Defines sessions, turns and the records derived from them.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


TurnRole = Literal["user", "assistant"]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Turn(BaseModel):
    """A single utterance within a session. Never mutated once appended."""

    model_config = ConfigDict(frozen=True)

    role: TurnRole = Field(..., description="Speaker: 'user' or 'assistant'")
    text: str = Field("", description="Transcript of the utterance")
    audio_ref: Optional[str] = Field(None, description="Pointer to the stored audio clip")
    created_at: Optional[datetime] = Field(None, description="When the turn was recorded")

    @field_validator("text", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


class Session(BaseModel):
    """
    One recording occasion for a person.

    Turn entries that cannot be validated are dropped one by one, so a single
    garbled turn never discards the rest of the session.
    """

    id: str = Field(..., description="Session identifier")
    user_handle: Optional[str] = Field(None, description="Raw handle as recorded")
    title: Optional[str] = Field(None, description="Generated or user supplied title")
    created_at: Optional[datetime] = Field(None, description="Session start time")
    turns: List[Turn] = Field(default_factory=list, description="Ordered turns")

    @field_validator("turns", mode="before")
    @classmethod
    def _drop_malformed_turns(cls, value: Any) -> List[Any]:
        if not isinstance(value, (list, tuple)):
            return []
        kept = []
        for raw in value:
            if isinstance(raw, Turn):
                kept.append(raw)
                continue
            try:
                kept.append(Turn.model_validate(raw))
            except ValidationError:
                continue
        return kept

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @classmethod
    def from_record(cls, data: Any) -> Optional["Session"]:
        """Validate a storage record, returning None if it is unusable."""
        if isinstance(data, Session):
            return data
        try:
            return cls.model_validate(data)
        except ValidationError:
            return None

    def sort_key(self):
        """Chronological ordering key with the id as tie-breaker."""
        return (self.created_at or EPOCH, self.id)

    def user_turns(self) -> List[Turn]:
        return [turn for turn in self.turns if turn.role == "user" and turn.text.strip()]

    def has_content(self) -> bool:
        return any(turn.text.strip() for turn in self.turns)

    def with_turn(self, turn: Turn) -> "Session":
        """Return a copy with one more turn appended."""
        return self.model_copy(update={"turns": [*self.turns, turn]})


class QuestionRecord(BaseModel):
    """A question previously asked by the assistant (derived, never stored)."""

    raw_text: str
    normalized_key: str
    session_id: str
    asked_at: Optional[datetime] = None


class HighlightDetail(BaseModel):
    """A short fact the user shared, tied to exactly one session and turn."""

    text: str
    session_id: str
    turn_index: int
    created_at: Optional[datetime] = None
    stage_id: Optional[str] = None


class MemoryPrimer(BaseModel):
    """Durable per-handle biography snapshot."""

    user_handle: str = Field(..., description="Normalized handle or 'unassigned'")
    markdown_text: str = Field("", description="Rendered primer")
    updated_at: Optional[datetime] = Field(None, description="When the primer was last rebuilt")

    def to_storage_dict(self) -> Dict[str, Any]:
        """Convert to dict for storage."""
        return self.model_dump(mode="json")

    @classmethod
    def from_storage_dict(cls, data: Dict[str, Any]) -> "MemoryPrimer":
        """Load from storage dict."""
        return cls(**data)


class MemoryPrompt(BaseModel):
    """Per-request memory context handed to the provider prompt and the fallback composer."""

    history_text: str = "No session memory is available yet."
    question_text: str = "No prior questions are on record."
    recent_conversation: str = ""
    asked_questions: List[str] = Field(default_factory=list)
    highlight_detail: Optional[str] = None
    primer_text: str = ""
    primer_handle: Optional[str] = None
    has_prior_sessions: bool = False
    has_current_conversation: bool = False

    def primer_snippet(self, limit: int = 6000) -> str:
        return self.primer_text[:limit] if self.primer_text else ""

    def preview(self, max_chars: int = 400) -> Dict[str, Any]:
        """Debug view of the prompt, truncated for logs."""
        return {
            "has_prior_sessions": self.has_prior_sessions,
            "has_current_conversation": self.has_current_conversation,
            "highlight_detail": self.highlight_detail,
            "recent_conversation_preview": self.recent_conversation[:max_chars],
            "history_preview": self.history_text[:max_chars],
            "question_preview": self.question_text[:max_chars],
            "primer_preview": self.primer_text[:max_chars],
            "primer_handle": self.primer_handle,
            "asked_questions_preview": self.asked_questions[:10],
        }
