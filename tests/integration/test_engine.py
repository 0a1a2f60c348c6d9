"""
Integration tests for the conversation engine.

Runs ask, intro and finalize end to end against a temporary SQLite store and
a scripted provider.
"""

import pytest

from memoir_engine.config.settings import FallbackTexts
from memoir_engine.engine import ConversationEngine, SessionNotFoundError
from memoir_engine.generation.generator import MockProvider
from memoir_engine.generation.provider import ProviderError
from memoir_engine.generation.reconcile import ReasonCode
from memoir_engine.memory.schemas import Turn
from memoir_engine.memory.store import KVSessionSource, PrimerStore
from memoir_engine.persist.sqlite_store import KVStore


TEXTS = FallbackTexts()
FARM_FALLBACK_QUESTION = "What else do you remember from when she grew up on a farm?"


@pytest.fixture
def kv(tmp_path):
    store = KVStore(tmp_path / "memory.db")
    yield store
    store.close()


@pytest.fixture
def source(kv, farm_sessions):
    source = KVSessionSource(kv)
    for session in farm_sessions:
        source.save(session)
    return source


@pytest.fixture
def primer_store(kv):
    return PrimerStore(kv=kv)


def make_engine(source, primer_store, responses):
    provider = MockProvider(responses)
    return ConversationEngine(source, provider, primer_store=primer_store), provider


def all_text(parts):
    return "\n".join(part.get("text", "") for part in parts)


# ============================================================================
# ask()
# ============================================================================

def test_first_session_empty_provider(kv, primer_store, session_factory):
    source = KVSessionSource(kv)
    source.save(session_factory("new", [], handle="joe"))
    engine, _ = make_engine(source, primer_store, [""])

    result = engine.ask("new", text="Hello")

    assert result.reason is ReasonCode.EMPTY_RESPONSE
    assert result.reply.startswith(TEXTS.first_session_greeting)
    assert result.end_intent is False


def test_farm_repeat_is_substituted(source, primer_store):
    engine, provider = make_engine(
        source, primer_store, ['{"reply":"How lovely.","question":"What was the farm like?"}']
    )

    result = engine.ask("s2", text="Shall we carry on?")

    assert result.reply == f"How lovely. {FARM_FALLBACK_QUESTION}"
    assert "What was the farm like?" not in result.reply
    assert result.question_substituted is True
    assert result.reason is ReasonCode.PROVIDER_SUCCESS

    prompt = all_text(provider.calls[0])
    assert "- What was the farm like?" in prompt
    assert "Memory primer:\n# Memory Primer: @margaret" in prompt
    assert "Recent remembered detail: She grew up on a farm." in prompt


def test_provider_exception_falls_back(source, primer_store):
    engine, _ = make_engine(source, primer_store, [ConnectionError("network down")])

    result = engine.ask("s2", text="Hello again")

    assert result.reason is ReasonCode.EXCEPTION
    assert result.used_fallback is True
    assert "grew up on a farm" in result.reply
    assert "What was the farm like?" not in result.reply
    assert result.provider_error == "network down"


def test_provider_error_falls_back(source, primer_store):
    engine, _ = make_engine(source, primer_store, [ProviderError(status=503, message="unavailable")])

    result = engine.ask("s2", text="I'm done")

    assert result.reason is ReasonCode.PROVIDER_ERROR
    assert result.end_intent is False
    assert result.provider_status == 503


def test_end_intent_from_user_text(source, primer_store):
    engine, _ = make_engine(source, primer_store, ['{"reply":"Thank you, Margaret."}'])
    assert engine.ask("s2", text="That's all for today").end_intent is True


def test_unknown_and_missing_session(source, primer_store):
    engine, _ = make_engine(source, primer_store, [""])

    for session_id in ("nope", None):
        result = engine.ask(session_id, text="hi")
        assert result.reply.startswith(TEXTS.first_session_greeting)


def test_memory_sees_appended_turns(source, primer_store):
    engine, _ = make_engine(source, primer_store, ['{"reply":"Nice.","question":"Who ran the farm?"}'])
    engine.ask("s2", text="first")

    current = source.fetch_session("s2")
    source.save(current.with_turn(Turn(role="assistant", text="Who ran the farm?")))

    result = engine.ask("s2", text="My uncle did.")

    assert "Who ran the farm?" not in result.reply
    assert result.question_substituted is True


def test_primer_store_failure_does_not_break_ask(source, kv):
    class BrokenStore(PrimerStore):
        def get(self, handle):
            raise RuntimeError("locked")

        def put(self, primer):
            raise RuntimeError("locked")

    engine, _ = make_engine(source, BrokenStore(kv=kv), ['{"reply":"Thanks.","question":"Who ran the farm?"}'])
    result = engine.ask("s2", text="hello")

    assert result.reply == "Thanks. Who ran the farm?"


# ============================================================================
# intro()
# ============================================================================

def test_intro_unknown_session(source, primer_store):
    engine, _ = make_engine(source, primer_store, [""])
    with pytest.raises(SessionNotFoundError):
        engine.intro("missing")


def test_intro_returning_fallback(source, primer_store, kv):
    prior = source.fetch_session("s1").model_copy(update={"title": "Farm childhood"})
    source.save(prior)
    engine, _ = make_engine(source, primer_store, [ProviderError(status=500, message="down")])

    reply = engine.intro("s2")

    assert reply.used_fallback is True
    assert reply.reason is ReasonCode.PROVIDER_ERROR
    assert reply.message.startswith("Welcome back. We're continuing your personal archive, picking up after Farm childhood.")
    assert "she grew up on a farm" in reply.message
    assert reply.message.endswith(FARM_FALLBACK_QUESTION)


def test_intro_first_session_fallback(kv, primer_store, session_factory):
    source = KVSessionSource(kv)
    source.save(session_factory("only", [], handle="joe"))
    engine, _ = make_engine(source, primer_store, [""])

    reply = engine.intro("only")

    assert reply.reason is ReasonCode.EMPTY_RESPONSE
    assert reply.message.startswith(TEXTS.intro_first)


def test_intro_provider_success(source, primer_store):
    engine, provider = make_engine(
        source, primer_store, ['{"message":"Welcome back, Margaret.","question":"What was the farm like?"}']
    )

    reply = engine.intro("s2")

    assert reply.message == f"Welcome back, Margaret. {FARM_FALLBACK_QUESTION}"
    assert reply.question_substituted is True
    assert "- What was the farm like?" in all_text(provider.calls[0])


# ============================================================================
# finalize()
# ============================================================================

def test_finalize_rebuilds_primer(source, primer_store, session_factory):
    engine, _ = make_engine(source, primer_store, ['{"reply":"Thanks."}'])
    engine.ask("s2", text="hello")
    before = primer_store.get("margaret")
    assert "bakery" not in before.markdown_text

    source.save(session_factory("s3", [("user", "My first job was at the bakery on Mill Lane.")], day=2))
    primer = engine.finalize("s3")

    assert primer is not None
    assert "- Latest: My first job was at the bakery on Mill Lane." in primer.markdown_text
    assert "Total recorded sessions: 3" in primer.markdown_text
    assert primer_store.get("margaret").markdown_text == primer.markdown_text


def test_finalize_unknown_session(source, primer_store):
    engine, _ = make_engine(source, primer_store, [""])
    assert engine.finalize("missing") is None


def test_finalize_is_idempotent(source, primer_store):
    engine, _ = make_engine(source, primer_store, [""])
    first = engine.finalize("s1")
    second = engine.finalize("s1")
    assert first.markdown_text == second.markdown_text
