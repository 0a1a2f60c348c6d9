"""
Unit tests for memory prompt assembly (memoir_engine/memory/prompt.py).
"""

from memoir_engine.config.settings import QuestionSettings, Settings
from memoir_engine.memory.prompt import build_memory_prompt
from memoir_engine.memory.schemas import MemoryPrompt


def test_anonymous_request_gets_empty_prompt(farm_sessions):
    memory = build_memory_prompt(None, None, farm_sessions)

    assert memory == MemoryPrompt()
    assert memory.history_text == "No session memory is available yet."
    assert memory.question_text == "No prior questions are on record."


def test_farm_memory(farm_sessions):
    current = farm_sessions[0]
    memory = build_memory_prompt("s2", current, farm_sessions, primer_text="  # Memory Primer  ", primer_handle="margaret")

    assert memory.has_prior_sessions is True
    assert memory.has_current_conversation is False
    assert memory.highlight_detail == "She grew up on a farm."
    assert memory.asked_questions == ["Where did you grow up?", "What was the farm like?"]
    assert memory.history_text == (
        "Highlights from previous sessions:\n"
        "- Session from Mar 01, 2024 -> She grew up on a farm."
    )
    assert memory.question_text == (
        "Avoid repeating these prior questions:\n"
        "- Where did you grow up?\n"
        "- What was the farm like?"
    )
    assert memory.primer_text == "# Memory Primer"
    assert memory.primer_handle == "margaret"


def test_recent_conversation_last_turns(session_factory):
    turns = []
    for i in range(5):
        turns.append(("assistant", f"Question number {i}?"))
        turns.append(("user", f"Answer number {i} is here."))
    current = session_factory("s1", turns)
    memory = build_memory_prompt("s1", current, [current])

    lines = memory.recent_conversation.splitlines()
    assert lines[0] == "Current session so far:"
    assert len(lines) == 7
    assert lines[1] == "You: Question number 2?"
    assert lines[-1] == "User: Answer number 4 is here."
    assert memory.has_prior_sessions is False
    assert memory.has_current_conversation is True


def test_avoidance_list_capped(session_factory):
    current = session_factory("s1", [
        ("assistant", "Where were you born?"),
        ("assistant", "What was school like?"),
        ("assistant", "Who was your best friend?"),
    ])
    settings = Settings(questions=QuestionSettings(max_avoided_questions=2))
    memory = build_memory_prompt("s1", current, [current], settings=settings)

    assert "Where were you born?" not in memory.question_text
    assert "- Who was your best friend?" in memory.question_text
    # The full list is still used for dedup
    assert len(memory.asked_questions) == 3


def test_preview_truncates(farm_sessions):
    memory = build_memory_prompt("s2", farm_sessions[0], farm_sessions, primer_text="x" * 1000)
    preview = memory.preview(max_chars=50)

    assert len(preview["primer_preview"]) == 50
    assert preview["highlight_detail"] == "She grew up on a farm."


def test_primer_snippet_limit():
    memory = MemoryPrompt(primer_text="abcdef")
    assert memory.primer_snippet(3) == "abc"
    assert MemoryPrompt().primer_snippet() == ""
