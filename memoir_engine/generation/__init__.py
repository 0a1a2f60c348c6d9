"""Reply generation: provider adapters, fallback composition and reconciliation."""
from .provider import (
    Structured, Unstructured, ProviderError, ProviderException, ProviderResult,
    parse_json_from_text, classify_provider_output
)
from .generator import BaseProvider, MockProvider
from .gemini_provider import GeminiProvider, ProviderConfigError, resolve_gemini_model, create_provider_from_env
from .intents import CompletionIntent, detect_completion_intent, phrase_detector
from .fallback import FallbackPlan, FallbackBasis, plan_fallback, compose_fallback, compose_intro_fallback
from .reconcile import ReasonCode, ReconciledReply, IntroReply, reconcile, reconcile_intro
from .prompts import build_ask_parts, build_intro_parts

__all__ = [
    # Provider results
    'Structured', 'Unstructured', 'ProviderError', 'ProviderException', 'ProviderResult',
    'parse_json_from_text', 'classify_provider_output',

    # Providers
    'BaseProvider', 'MockProvider', 'GeminiProvider', 'ProviderConfigError',
    'resolve_gemini_model', 'create_provider_from_env',

    # Intents
    'CompletionIntent', 'detect_completion_intent', 'phrase_detector',

    # Fallback and reconciliation
    'FallbackPlan', 'FallbackBasis', 'plan_fallback', 'compose_fallback', 'compose_intro_fallback',
    'ReasonCode', 'ReconciledReply', 'IntroReply', 'reconcile', 'reconcile_intro',

    # Prompts
    'build_ask_parts', 'build_intro_parts',
]
