"""
Conversation engine: the ask, intro and finalize flows.

Each request loads memory for the session's handle, precomputes a
deterministic fallback, makes at most one provider call and reconciles the
result. Storage and provider failures degrade to fallback text; they never
surface as exceptions from ``ask`` or ``intro``.
"""

import logging
from typing import Optional

from memoir_engine.config.settings import Settings
from memoir_engine.generation.fallback import FallbackPlan, compose_intro_fallback, plan_fallback
from memoir_engine.generation.generator import BaseProvider
from memoir_engine.generation.intents import CompletionDetector, phrase_detector
from memoir_engine.generation.prompts import build_ask_parts, build_intro_parts
from memoir_engine.generation.provider import ProviderException, ProviderResult
from memoir_engine.generation.reconcile import (
    IntroReply,
    ReasonCode,
    ReconciledReply,
    reconcile,
    reconcile_intro,
)
from memoir_engine.memory.cache import PrimerService, SessionMemoryCache
from memoir_engine.memory.details import find_latest_user_details
from memoir_engine.memory.primer import primer_key_for_handle
from memoir_engine.memory.prompt import build_memory_prompt
from memoir_engine.memory.questions import (
    avoidance_questions,
    collect_asked_questions,
    collect_question_records,
    pick_fallback_question,
)
from memoir_engine.memory.schemas import MemoryPrimer, MemoryPrompt
from memoir_engine.memory.store import PrimerStore, SessionSource
from memoir_engine.telemetry import describe_error, log_diagnostic


logger = logging.getLogger(__name__)


class SessionNotFoundError(KeyError):
    """The requested session does not exist in storage."""


class ConversationEngine:
    """
    Entry point used by the request handlers.

    Provides:
    - ask(): reconcile one user turn into the assistant's reply
    - intro(): opening message for a new recording session
    - finalize(): refresh caches and rebuild the handle's primer
    """

    def __init__(
        self,
        source: SessionSource,
        provider: BaseProvider,
        primer_store: Optional[PrimerStore] = None,
        settings: Optional[Settings] = None,
        detector: Optional[CompletionDetector] = None,
    ):
        """
        Initialize the engine.

        Args:
            source: Session storage adapter
            provider: Generative provider
            primer_store: Primer persistence, None to keep primers in process only
            settings: Application settings
            detector: Completion intent detector (defaults to the configured phrases)
        """
        self.settings = settings or Settings()
        self.source = source
        self.provider = provider
        self.cache = SessionMemoryCache(source)
        self.primers = PrimerService(self.cache, primer_store, self.settings)
        self.detector = detector or phrase_detector(self.settings.completion.phrases)

    def _primer_text(self, handle: Optional[str]) -> str:
        try:
            return self.primers.get_primer(handle).markdown_text
        except Exception as err:
            log_diagnostic("error", "primer:load:failure", handle=primer_key_for_handle(handle), error=describe_error(err))
            return ""

    def build_memory(self, session_id: Optional[str]) -> MemoryPrompt:
        """Load sessions and primer for ``session_id`` and build its memory prompt."""
        if not session_id:
            return MemoryPrompt()
        current, sessions = self.cache.snapshot(session_id)
        handle = current.user_handle if current is not None else None
        return build_memory_prompt(
            session_id,
            current,
            sessions,
            primer_text=self._primer_text(handle),
            primer_handle=primer_key_for_handle(handle),
            settings=self.settings,
        )

    def _call_provider(self, parts) -> ProviderResult:
        try:
            return self.provider.generate(parts)
        except Exception as err:
            log_diagnostic("error", "ask:provider:exception", error=describe_error(err))
            return ProviderException(message=str(err) or type(err).__name__)

    def ask(
        self,
        session_id: Optional[str] = None,
        text: Optional[str] = None,
        audio: Optional[str] = None,
        audio_format: str = "webm",
    ) -> ReconciledReply:
        """
        Produce the assistant's reply to one user turn.

        Args:
            session_id: Session being extended
            text: User text input
            audio: Base64 audio of the user's turn
            audio_format: Audio container name

        Returns:
            ReconciledReply; falls back to deterministic text on any failure
        """
        plan: Optional[FallbackPlan] = None
        try:
            memory = self.build_memory(session_id)
            plan = plan_fallback(memory, self.settings)
            parts = build_ask_parts(
                memory,
                text=text,
                audio=audio,
                audio_format=audio_format,
                primer_chars=self.settings.primer.primer_snippet_chars,
            )
            result = self._call_provider(parts)
            reply = reconcile(result, memory, plan, text or "", self.detector, self.settings.texts)
            if reply.used_fallback:
                level, step = "error", "ask:provider:fallback"
            else:
                level, step = "log", "ask:provider:success"
            log_diagnostic(
                level,
                step,
                session_id=session_id,
                reason=reply.reason.value,
                provider_status=reply.provider_status,
                provider_error=reply.provider_error,
                question_substituted=reply.question_substituted,
            )
            return reply
        except Exception as err:
            logger.exception("Ask request failed")
            log_diagnostic("error", "ask:exception", session_id=session_id, error=describe_error(err))
            fallback = plan.reply if plan is not None else self.settings.texts.provider_exception
            return ReconciledReply(
                reply=fallback,
                transcript="",
                end_intent=False,
                reason=ReasonCode.EXCEPTION,
                used_fallback=True,
                provider_error=str(err),
            )

    def intro(self, session_id: str) -> IntroReply:
        """
        Produce the opening message for ``session_id``.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        current, sessions = self.cache.snapshot(session_id)
        if current is None:
            raise SessionNotFoundError(session_id)

        previous = [session for session in sessions if session.id != session_id]
        titles = [s.title.strip() for s in previous if s.title and s.title.strip()][:5]
        details = find_latest_user_details(
            sessions,
            limit=3,
            exclude_session_id=session_id,
            min_length=self.settings.details.min_sentence_length,
        )
        asked = collect_asked_questions(sessions)
        question = pick_fallback_question(asked, details[0] if details else None, self.settings.questions)
        fallback_message = compose_intro_fallback(
            titles, details, question, has_history=bool(previous), texts=self.settings.texts
        )

        try:
            avoided = avoidance_questions(
                collect_question_records(sessions),
                self.settings.questions.intro_max_avoided_questions,
            )
            parts = build_intro_parts(
                titles,
                details,
                avoided,
                primer_text=self._primer_text(current.user_handle),
                primer_chars=self.settings.primer.primer_snippet_chars,
            )
            result = self._call_provider(parts)
            reply = reconcile_intro(result, asked, fallback_message, question)
        except Exception as err:
            logger.exception("Intro request failed")
            log_diagnostic("error", "session-intro:exception", session_id=session_id, error=describe_error(err))
            return IntroReply(message=fallback_message, reason=ReasonCode.EXCEPTION, used_fallback=True)

        log_diagnostic(
            "log", "session-intro:complete",
            session_id=session_id, reason=reply.reason.value, used_fallback=reply.used_fallback,
        )
        return reply

    def finalize(self, session_id: str) -> Optional[MemoryPrimer]:
        """
        Refresh memory after a session ends.

        Invalidates the cached sessions of the session's handle and rebuilds
        its primer. A failed rebuild is logged and returns None; the primer
        is re-derived on the next read.
        """
        session = self.source.fetch_session(session_id)
        if session is None:
            log_diagnostic("error", "session:finalize:missing", session_id=session_id)
            return None
        handle = session.user_handle
        self.cache.invalidate(handle)
        self.primers.forget(handle)
        try:
            return self.primers.rebuild(handle)
        except Exception as err:
            log_diagnostic(
                "error", "primer:rebuild:failure",
                handle=primer_key_for_handle(handle), error=describe_error(err),
            )
            return None
