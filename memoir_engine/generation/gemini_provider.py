"""
Gemini provider adapter.

Implements BaseProvider against the Generative Language REST API
(``models/<model>:generateContent``).
"""

import re
from typing import Optional

import requests

from memoir_engine.config.settings import ProviderSettings
from memoir_engine.telemetry import log_diagnostic
from .generator import BaseProvider, ContentParts
from .provider import ProviderException, ProviderResult, classify_provider_output


DEFAULT_GEMINI_MODEL = "gemini-2.5-flash-lite"

_LEGACY_PREFIX = re.compile(r"/?models/", re.IGNORECASE)
_LEGACY_MODELS = [
    re.compile(r"gemini-1\.", re.IGNORECASE),
    re.compile(r"gemini-pro", re.IGNORECASE),
    re.compile(r"text-bison", re.IGNORECASE),
    re.compile(r"chat-bison", re.IGNORECASE),
]


class ProviderConfigError(ValueError):
    """Provider settings are missing or unsupported."""


def resolve_gemini_model(value: Optional[str]) -> str:
    """
    Normalize a configured model name.

    Strips a "models/" prefix and maps retired model families to the
    default; a blank value resolves to the default.
    """
    if not value or not value.strip():
        return DEFAULT_GEMINI_MODEL
    candidate = _LEGACY_PREFIX.sub("", value.strip())
    if not candidate:
        return DEFAULT_GEMINI_MODEL
    if any(pattern.search(candidate) for pattern in _LEGACY_MODELS):
        return DEFAULT_GEMINI_MODEL
    return candidate


class GeminiProvider(BaseProvider):
    """
    Provider backed by Google's Gemini models over HTTPS.

    One POST per ``generate`` call; no retries here. Network failures and
    timeouts come back as ``ProviderException`` rather than raising.
    """

    name = "google"

    def __init__(
        self,
        api_key: str,
        model: Optional[str] = None,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Gemini provider.

        Args:
            api_key: Google API key
            model: Model name (resolved through resolve_gemini_model)
            base_url: API base URL
            timeout: Request timeout in seconds
            session: Optional requests session (connection reuse, testing)

        Raises:
            ProviderConfigError: If the API key is blank
        """
        if not api_key or not api_key.strip():
            raise ProviderConfigError("GOOGLE_API_KEY is required for the Google provider.")
        self.api_key = api_key.strip()
        self.model = resolve_gemini_model(model)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()

    def is_available(self) -> bool:
        return bool(self.api_key)

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def generate(self, parts: ContentParts) -> ProviderResult:
        """
        Send one generateContent request.

        Args:
            parts: Content parts for a single user message

        Returns:
            Classified provider result
        """
        payload = {"contents": [{"role": "user", "parts": parts}]}
        try:
            response = self.http.post(
                self.endpoint,
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            log_diagnostic("error", "provider:google:timeout", model=self.model, timeout=self.timeout)
            return ProviderException(message=f"Gemini request timed out after {self.timeout}s")
        except requests.exceptions.RequestException as e:
            log_diagnostic("error", "provider:google:request-failed", model=self.model, error=str(e))
            return ProviderException(message=f"Gemini request failed: {e}")

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        text = extract_candidate_text(body)
        error_message = extract_error_message(body)
        if error_message is None and not response.ok:
            error_message = response.reason or "Provider request failed"

        log_diagnostic(
            "log", "provider:google:response",
            model=self.model, status=response.status_code, has_text=bool(text.strip()),
        )
        return classify_provider_output(text, status=response.status_code, error_message=error_message)


def extract_candidate_text(body: dict) -> str:
    """Join the text parts of the first candidate."""
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return ""
    first = candidates[0] if isinstance(candidates[0], dict) else {}
    content = first.get("content") if isinstance(first.get("content"), dict) else {}
    parts = content.get("parts") if isinstance(content.get("parts"), list) else []
    texts = [part.get("text") for part in parts if isinstance(part, dict) and part.get("text")]
    return "\n".join(texts)


def extract_error_message(body: dict) -> Optional[str]:
    error = body.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    if isinstance(error, str):
        return error
    return None


def create_provider_from_env(settings: Optional[ProviderSettings] = None) -> GeminiProvider:
    """
    Build the configured provider from environment settings.

    Raises:
        ProviderConfigError: If the provider is unsupported or the API key is missing
    """
    settings = settings or ProviderSettings.from_env()
    log_diagnostic(
        "log", "ask:provider:resolve",
        provider=settings.provider, api_key="set" if settings.api_key else "missing", model=settings.model,
    )
    if settings.provider != "google":
        raise ProviderConfigError(
            f'Unsupported provider "{settings.provider}". Configure PROVIDER=google and supply GOOGLE_API_KEY/GOOGLE_MODEL.'
        )
    return GeminiProvider(
        api_key=settings.api_key or "",
        model=settings.model,
        base_url=settings.base_url,
        timeout=settings.timeout,
    )
