"""Generative provider interface and a mock provider for offline use."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Union

from .provider import ProviderResult, classify_provider_output


ContentParts = List[Dict[str, Any]]


class BaseProvider(ABC):
    """
    Abstract base class for generative providers.

    ``generate`` makes exactly one call and reports the outcome as a
    ``ProviderResult``. Implementations may also raise; the engine converts
    any exception into the exception state.
    """

    name: str = "base"

    @abstractmethod
    def generate(self, parts: ContentParts) -> ProviderResult:
        """Send the prompt parts and classify the response."""
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """Check if the provider is configured and ready to use."""
        pass


class MockProvider(BaseProvider):
    """
    Provider that replays canned responses, for tests and offline demos.

    Responses may be raw text (classified like a 200 response), ready-made
    ``ProviderResult`` values, or exceptions to raise. The last response is
    reused once the queue runs out.
    """

    name = "mock"

    def __init__(self, responses: Optional[Sequence[Union[str, ProviderResult, BaseException]]] = None):
        self.responses = list(responses or ['{"reply": "Thank you for sharing that.", "transcript": ""}'])
        self.calls: List[ContentParts] = []

    def generate(self, parts: ContentParts) -> ProviderResult:
        self.calls.append(parts)
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        response = self.responses[index]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, str):
            return classify_provider_output(response, status=200)
        return response

    def is_available(self) -> bool:
        return True
