"""
Unit tests for highlight detail extraction (memoir_engine/memory/details.py).
"""

from memoir_engine.memory.details import (
    collect_highlight_details,
    detail_sentences,
    find_latest_user_details,
    truncate_snippet,
)


def test_truncate_short_text_unchanged():
    assert truncate_snippet("  We kept   bees.  ") == "We kept bees."


def test_truncate_long_text_on_word_boundary():
    text = "word " * 100
    snippet = truncate_snippet(text, limit=200)

    assert len(snippet) <= 200
    assert snippet.endswith("…")
    assert not snippet[:-1].endswith(" ")


def test_truncate_empty():
    assert truncate_snippet("") == ""
    assert truncate_snippet(None) == ""


def test_detail_sentences_skip_short_and_questions():
    text = "Hi. I was born in Leeds in 1931. Where were you born?"
    assert detail_sentences(text) == ["I was born in Leeds in 1931."]


def test_detail_sentences_keep_narration_opening_with_question_word():
    text = "When I was ten, we moved to Ohio. How we laughed about it later. Why did we go?"
    assert detail_sentences(text) == ["When I was ten, we moved to Ohio.", "How we laughed about it later."]


def test_detail_sentences_custom_threshold():
    assert detail_sentences("We kept bees.", min_length=20) == []
    assert detail_sentences("We kept bees.", min_length=5) == ["We kept bees."]


def _two_sessions(session_factory):
    older = session_factory("s1", [("user", "I was born in Leeds in 1931.")], day=0)
    newer = session_factory("s2", [
        ("user", "We moved to London after the war."),
        ("assistant", "What did you do there?"),
        ("user", "My first job was at the bakery."),
    ], day=1)
    return older, newer


def test_latest_details_newest_first(session_factory):
    older, newer = _two_sessions(session_factory)

    assert find_latest_user_details([older, newer], limit=3) == [
        "My first job was at the bakery.",
        "We moved to London after the war.",
        "I was born in Leeds in 1931.",
    ]


def test_latest_details_limit(session_factory):
    older, newer = _two_sessions(session_factory)
    assert find_latest_user_details([older, newer], limit=1) == ["My first job was at the bakery."]


def test_latest_details_exclude_session(session_factory):
    older, newer = _two_sessions(session_factory)
    assert find_latest_user_details([older, newer], limit=5, exclude_session_id="s2") == [
        "I was born in Leeds in 1931.",
    ]


def test_latest_details_empty_inputs(session_factory):
    assert find_latest_user_details([], limit=3) == []
    assert find_latest_user_details([session_factory("s1", [("user", "ok")])], limit=3) == []
    assert find_latest_user_details([session_factory("s1", [("user", "I was born in Leeds.")])], limit=0) == []


def test_first_non_question_sentence_of_turn(session_factory):
    session = session_factory("s1", [("user", "Do you know what? I loved dancing at the Palais. It was grand.")])
    assert find_latest_user_details([session], limit=1) == ["I loved dancing at the Palais."]


def test_assistant_turns_ignored(session_factory):
    session = session_factory("s1", [("assistant", "You told me about the orchard in spring.")])
    assert find_latest_user_details([session], limit=1) == []


def test_highlight_detail_attribution(session_factory):
    _, newer = _two_sessions(session_factory)
    details = collect_highlight_details([newer])

    assert [(d.session_id, d.turn_index) for d in details] == [("s2", 2), ("s2", 0)]
    assert details[0].created_at > details[1].created_at


def test_narration_opening_with_when_is_a_detail(session_factory):
    session = session_factory("s1", [("user", "When I was ten, we moved to Ohio.")])
    assert find_latest_user_details([session], limit=1) == ["When I was ten, we moved to Ohio."]
