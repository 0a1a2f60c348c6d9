"""
Provider output as an explicit tagged union.

Every provider call ends up as exactly one of ``Structured``,
``Unstructured``, ``ProviderError`` or ``ProviderException``; the
reconciliation engine dispatches on the type instead of probing fields.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union


_FENCE_OPEN = re.compile(r"^```(?:json)?", re.IGNORECASE)
_FENCE_CLOSE = re.compile(r"```$")


@dataclass
class Structured:
    """Provider returned a JSON object."""
    fields: Dict[str, Any]
    raw_text: str = ""
    status: Optional[int] = 200


@dataclass
class Unstructured:
    """Provider returned text that is not a JSON object (possibly empty)."""
    text: str
    status: Optional[int] = 200


@dataclass
class ProviderError:
    """Provider answered with a non-2xx status and no parseable body."""
    status: Optional[int]
    message: str
    snippet: str = ""


@dataclass
class ProviderException:
    """The call raised (network failure, timeout, bad payload)."""
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


ProviderResult = Union[Structured, Unstructured, ProviderError, ProviderException]


def strip_code_fence(text: str) -> str:
    """Remove a leading ```/```json marker and a trailing ``` marker."""
    without_open = _FENCE_OPEN.sub("", text.strip())
    return _FENCE_CLOSE.sub("", without_open).strip()


def parse_json_from_text(raw: Optional[str]) -> Optional[Any]:
    """
    Recover JSON from provider text.

    Tries the fence-stripped text first, then the substring between the
    first "{" and the last "}". Braces inside surrounding prose can make the
    second attempt pick the wrong span; that case simply fails to parse.

    Args:
        raw: Provider text

    Returns:
        Parsed JSON value, or None when neither attempt parses
    """
    if not raw or not raw.strip():
        return None
    cleaned = strip_code_fence(raw)
    attempts = [cleaned]
    first = cleaned.find("{")
    last = cleaned.rfind("}")
    if first != -1 and last > first:
        attempts.append(cleaned[first:last + 1])

    for attempt in attempts:
        candidate = attempt.strip()
        if not candidate:
            continue
        try:
            return json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
    return None


def _is_success(status: Optional[int]) -> bool:
    return status is None or 200 <= status < 300


def classify_provider_output(
    text: Optional[str],
    status: Optional[int] = 200,
    error_message: Optional[str] = None,
) -> ProviderResult:
    """
    Map raw provider output onto the result union.

    A JSON object is ``Structured`` regardless of status; otherwise a
    non-2xx status is a ``ProviderError``; anything else is ``Unstructured``.
    """
    text = text or ""
    parsed = parse_json_from_text(text)
    if isinstance(parsed, dict):
        return Structured(fields=parsed, raw_text=text, status=status)
    if not _is_success(status):
        return ProviderError(
            status=status,
            message=error_message or "Provider request failed",
            snippet=text[:400],
        )
    return Unstructured(text=text, status=status)


def result_status(result: ProviderResult) -> Optional[int]:
    if isinstance(result, ProviderException):
        return None
    return result.status


def result_snippet(result: ProviderResult, limit: int = 400) -> str:
    """Short provider text for debug output."""
    if isinstance(result, Structured):
        return result.raw_text[:limit]
    if isinstance(result, Unstructured):
        return result.text[:limit]
    if isinstance(result, ProviderError):
        return (result.snippet or result.message)[:limit]
    return result.message[:limit]
