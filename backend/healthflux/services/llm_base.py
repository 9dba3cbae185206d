"""
HealthFlux Backend — Abstract LLM Service Interface
====================================================

What:  Abstract base class for the completion API the handlers depend on.
How:   Concrete providers inherit from LLMService and implement complete(),
       analyze_image() and health_check().
Who:   Document search, document summary, insurance chat and meal analysis.

Design Decision:
    Handlers receive an LLMService instance through dependency injection
    (built once in the app factory). Tests pass a fake implementation; the
    deployed app passes GeminiService.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional


class LLMService(ABC):
    """
    Abstract interface for text and image completions.

    Contract:
        - complete() returns plain text, or the decoded JSON value when
          json_response=True
        - analyze_image() always returns the decoded JSON value
        - Provider errors are wrapped in LLMServiceError
        - CircuitBreakerOpenError is raised while the provider is cooling down
    """

    @abstractmethod
    async def complete(self, prompt: str, json_response: bool = False) -> Any:
        """
        Run a single-turn completion.

        Args:
            prompt: Full prompt text.
            json_response: Ask the model for JSON and decode the reply.

        Returns:
            str when json_response is False, otherwise the decoded JSON value
            (list, dict, ...).

        Raises:
            LLMServiceError: Provider failure or undecodable JSON reply.
            CircuitBreakerOpenError: Too many recent consecutive failures.
        """
        ...

    @abstractmethod
    async def analyze_image(
        self,
        prompt: str,
        image_url: str,
        system_instruction: Optional[str] = None,
    ) -> Any:
        """
        Send a prompt plus the image at `image_url` to a vision model and
        return the decoded JSON reply.
        """
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """True if the provider is reachable. Must not consume token quota."""
        ...
