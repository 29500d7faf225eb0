"""Ingestion pipeline: extractors, connectors, chunker, orchestrator, bootstrap."""

from knowledge_rag.services.ingestion.bootstrap import BootstrapLoader
from knowledge_rag.services.ingestion.chunker import TextChunker, split_text
from knowledge_rag.services.ingestion.orchestrator import IngestionOrchestrator

__all__ = ["BootstrapLoader", "IngestionOrchestrator", "TextChunker", "split_text"]
