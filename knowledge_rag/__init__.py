"""knowledge-rag: document ingestion and retrieval-augmented prompting."""

__version__ = "0.1.0"
