"""Abstract base class for text-embedding service providers.

Implementations wrap OpenAI ``text-embedding-3-small`` or a local FastEmbed
ONNX model.  The vector store gateway depends only on this contract.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   OpenAIEmbeddingProvider     -- text-embedding-3-small (requires API key)
#   FastEmbedEmbeddingProvider  -- local ONNX model, no key required
# Located in: knowledge_rag/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services.

    The output dimensionality is fixed per provider instance and must match
    the dimension the vector index was created with.
    """

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations handle
            per-call API limits internally.

        Returns
        -------
        list[list[float]]
            Embedding vectors corresponding positionally to *texts*.

        Raises
        ------
        knowledge_rag.utils.errors.GatewayError
            If the embedding backend fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text (e.g. a query)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a short identifier such as ``"openai"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` when the provider is configured and usable."""
