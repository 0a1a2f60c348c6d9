"""
Unit tests for provider output parsing and classification
(memoir_engine/generation/provider.py).
"""

import pytest

from memoir_engine.generation.provider import (
    ProviderError,
    ProviderException,
    Structured,
    Unstructured,
    classify_provider_output,
    parse_json_from_text,
    result_snippet,
    result_status,
    strip_code_fence,
)


def test_strip_code_fence_json():
    assert strip_code_fence('```json\n{"reply": "Hi"}\n```') == '{"reply": "Hi"}'


def test_strip_code_fence_plain():
    assert strip_code_fence('```\n{"reply": "Hi"}```') == '{"reply": "Hi"}'
    assert strip_code_fence('  {"reply": "Hi"}  ') == '{"reply": "Hi"}'


@pytest.mark.parametrize("raw", [
    '{"reply": "Hi"}',
    '```json\n{"reply": "Hi"}\n```',
    'Sure! Here you go: {"reply": "Hi"} Hope that helps.',
    '```JSON\n{"reply": "Hi"}\n```',
])
def test_parse_json_recovers_object(raw):
    assert parse_json_from_text(raw) == {"reply": "Hi"}


@pytest.mark.parametrize("raw", [None, "", "   ", "Just some words.", "{not json}"])
def test_parse_json_failures(raw):
    assert parse_json_from_text(raw) is None


def test_parse_json_braces_in_prose_known_edge_case():
    """Braces around the object span the wrong substring and the parse fails."""
    assert parse_json_from_text('Note {draft} then {"reply": "Hi"}') is None


def test_classify_object_is_structured():
    result = classify_provider_output('{"reply": "Hi", "end_intent": false}')
    assert isinstance(result, Structured)
    assert result.fields == {"reply": "Hi", "end_intent": False}
    assert result.status == 200


def test_classify_non_object_json_is_unstructured():
    result = classify_provider_output("[1, 2, 3]")
    assert isinstance(result, Unstructured)
    assert result.text == "[1, 2, 3]"


def test_classify_empty_text():
    result = classify_provider_output(None)
    assert isinstance(result, Unstructured)
    assert result.text == ""


def test_classify_error_status_without_body():
    result = classify_provider_output("<html>oops</html>", status=503, error_message="Service unavailable")
    assert isinstance(result, ProviderError)
    assert result.status == 503
    assert result.message == "Service unavailable"
    assert result.snippet == "<html>oops</html>"


def test_classify_error_status_default_message():
    result = classify_provider_output("", status=500)
    assert isinstance(result, ProviderError)
    assert result.message == "Provider request failed"


def test_classify_error_status_with_parseable_body():
    """A parseable object wins over the status code."""
    result = classify_provider_output('{"reply": "Hi"}', status=500)
    assert isinstance(result, Structured)
    assert result.status == 500


def test_result_status_and_snippet():
    assert result_status(ProviderException(message="boom")) is None
    assert result_status(Unstructured(text="hi", status=201)) == 201
    assert result_snippet(Unstructured(text="x" * 500)) == "x" * 400
    assert result_snippet(ProviderError(status=500, message="bad")) == "bad"
    assert result_snippet(Structured(fields={}, raw_text="{}")) == "{}"
    assert result_snippet(ProviderException(message="boom")) == "boom"
