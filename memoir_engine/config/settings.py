"""Application settings and configuration schema."""

import os
from typing import List, Optional

from pydantic import BaseModel, Field


class StageDefinition(BaseModel):
    """One stage of the interview guide used to file primer details."""
    id: str
    title: str
    keywords: List[str] = Field(default_factory=list, description="Case-insensitive regex patterns")
    fallback: str = ""


DEFAULT_STAGES: List[StageDefinition] = [
    StageDefinition(
        id="intro",
        title="Intro & Warm Memories",
        keywords=[r"born", r"birth", r"child", r"parent", r"sibling", r"neighbou?r", r"home"],
        fallback="Capture birthplace, early home life, and the people who raised them.",
    ),
    StageDefinition(
        id="youth",
        title="Youth & Formative Years",
        keywords=[r"school", r"class", r"teacher", r"friend", r"teen", r"dream", r"mentor"],
        fallback="Ask about schooling, friendships, and the dreams they held while growing up.",
    ),
    StageDefinition(
        id="young-adult",
        title="Young Adulthood & Transitions",
        keywords=[r"college", r"university", r"moved", r"travel", r"married", r"spouse", r"partner", r"job", r"courtship"],
        fallback="Explore their first leaps into adulthood: moves, work, relationships, or world events that shaped them.",
    ),
    StageDefinition(
        id="work-family",
        title="Work, Family & Midlife",
        keywords=[r"career", r"work", r"business", r"tradition", r"family", r"household"],
        fallback="Document career turns, family roles, and traditions they kept or changed.",
    ),
    StageDefinition(
        id="later-years",
        title="Later Years & Reflection",
        keywords=[r"retir", r"proud", r"regret", r"lesson", r"value", r"resilience", r"reflect"],
        fallback="Invite reflections on what matters most now: pride, regrets, and lessons they want remembered.",
    ),
    StageDefinition(
        id="memory-place",
        title="Memory, Place & Sense of Self",
        keywords=[r"place", r"smell", r"sound", r"object", r"photo", r"scene", r"moment", r"remember"],
        fallback="Gather vivid sensory scenes: places, objects, and moments that keep their story alive.",
    ),
    StageDefinition(
        id="culture-change",
        title="Culture, Change & The World",
        keywords=[r"culture", r"world", r"technology", r"community", r"change", r"society", r"language"],
        fallback="Trace how the world shifted around them and which cultural threads they held onto.",
    ),
    StageDefinition(
        id="legacy",
        title="Closing & Legacy",
        keywords=[r"legacy", r"advice", r"hope", r"message", r"future"],
        fallback="Capture the legacy or advice they want the next generation to hold close.",
    ),
]

OTHER_STAGE = StageDefinition(
    id="other",
    title="Additional Notes & Identity",
    keywords=[],
    fallback="Notice any defining details that do not yet fit the guide: values, humour, or standout personality cues.",
)

DEFAULT_QUESTION_TEMPLATES: List[str] = [
    "What else do you remember from when {detail}?",
    "Who else was part of your life when {detail}?",
    "What is a memory from your childhood that still makes you smile?",
    "Who was someone important to you growing up, and what made them special?",
    "What is a place from your past that you can still picture clearly?",
    "What was a turning point in your life that you would like to talk about?",
    "What family tradition do you hope gets passed on?",
    "What is a lesson you learned the hard way?",
    "What would you like your grandchildren to know about you?",
]

DEFAULT_COMPLETION_PHRASES: List[str] = [
    "i'm done",
    "i am done",
    "we're done",
    "we are done",
    "i'm finished",
    "i am finished",
    "that's all for today",
    "that is all for today",
    "that's it for today",
    "let's stop",
    "let us stop",
    "stop recording",
    "end the session",
    "end session",
    "let's wrap up",
    "goodbye",
]


class QuestionSettings(BaseModel):
    """Question avoidance and fallback question configuration."""
    templates: List[str] = Field(default_factory=lambda: list(DEFAULT_QUESTION_TEMPLATES))
    universal_template: str = "What is another story you would like to share today, maybe story number {n}?"
    max_avoided_questions: int = 20
    intro_max_avoided_questions: int = 12


class DetailSettings(BaseModel):
    """Highlight detail extraction thresholds."""
    min_sentence_length: int = 12
    snippet_limit: int = 200


class PrimerSettings(BaseModel):
    """Memory primer compilation configuration."""
    stages: List[StageDefinition] = Field(default_factory=lambda: [s.model_copy() for s in DEFAULT_STAGES])
    other_stage: StageDefinition = Field(default_factory=lambda: OTHER_STAGE.model_copy())
    max_details_per_stage: int = 8
    max_latest_highlights: int = 6
    primer_snippet_chars: int = 6000


class FallbackTexts(BaseModel):
    """Deterministic copy used whenever provider output is unusable."""
    first_session_greeting: str = (
        "Welcome! I'm here to help you save your stories, and I'll remember everything you share. "
        "Whenever you feel ready, start with any memory you'd like to keep."
    )
    returning_with_highlight: str = (
        "Welcome back. I'm remembering what you told me about how {detail}, "
        "and I'm keeping it safe in your archive."
    )
    returning_default: str = (
        "Welcome back. I'm still holding onto the stories you've shared, so let's pick up where we left off."
    )
    provider_exception: str = (
        "I'm having a little trouble with my notes right now, but I'm still listening. "
        "Please keep going whenever you're ready."
    )
    intro_first: str = "Hello, and welcome. I'm here to help you record and preserve your stories."
    intro_returning: str = "Welcome back. We're continuing your personal archive"
    intro_reminder: str = "I'm remembering what you shared about {details}."
    intro_invitation_first: str = "There's no rush, so begin whenever you feel ready."
    intro_invitation_returning: str = "Let's keep building on those memories together."
    intro_first_question: str = "What is a story you'd like to start with today?"


class CompletionSettings(BaseModel):
    """Phrases that signal the user wants to end the session."""
    phrases: List[str] = Field(default_factory=lambda: list(DEFAULT_COMPLETION_PHRASES))


class ProviderSettings(BaseModel):
    """Generative provider configuration."""
    provider: str = "google"
    api_key: Optional[str] = None
    model: Optional[str] = None
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout: int = 30

    @classmethod
    def from_env(cls) -> "ProviderSettings":
        """Read PROVIDER, GOOGLE_API_KEY and GOOGLE_MODEL from the environment."""
        api_key = (os.getenv("GOOGLE_API_KEY") or "").strip() or None
        model = (os.getenv("GOOGLE_MODEL") or "").strip() or None
        return cls(
            provider=(os.getenv("PROVIDER") or "google").strip() or "google",
            api_key=api_key,
            model=model,
        )


class Settings(BaseModel):
    """Main application settings."""
    questions: QuestionSettings = QuestionSettings()
    details: DetailSettings = DetailSettings()
    primer: PrimerSettings = PrimerSettings()
    texts: FallbackTexts = FallbackTexts()
    completion: CompletionSettings = CompletionSettings()
    provider: ProviderSettings = ProviderSettings()
