"""Embedding provider adapters."""

from knowledge_rag.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from knowledge_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

__all__ = ["FastEmbedEmbeddingProvider", "OpenAIEmbeddingProvider"]
