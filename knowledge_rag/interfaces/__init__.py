"""Abstract collaborator contracts (embedding, vector store, generation)."""

from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.interfaces.llm_provider import ILLMProvider
from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = ["IEmbeddingProvider", "ILLMProvider", "IVectorStoreProvider"]
