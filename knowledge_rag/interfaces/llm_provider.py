"""Abstract base class for generation (text completion) providers.

Consumed by :meth:`PromptAugmentor.generate_with_rag`; the retrieval core
itself never calls a model.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations: AnthropicLLMProvider, OpenAILLMProvider
# Located in: knowledge_rag/providers/llm/
class ILLMProvider(ABC):
    """Contract for text completion services."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 1000,
        temperature: float = 0.3,
    ) -> str:
        """Generate a completion for *prompt*.

        Parameters
        ----------
        prompt:
            The user prompt, possibly already augmented with knowledge.
        system_prompt:
            Optional system instructions.
        max_tokens:
            Upper bound on generated tokens.
        temperature:
            Sampling temperature.

        Returns
        -------
        str
            The generated text.

        Raises
        ------
        knowledge_rag.utils.errors.LLMError
            If the provider call fails.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"anthropic"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` when credentials are configured."""
