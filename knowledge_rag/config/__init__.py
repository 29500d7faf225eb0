"""Configuration: environment settings and the YAML knowledge config."""

from knowledge_rag.config.loader import KnowledgeConfig, load_config
from knowledge_rag.config.settings import Settings

__all__ = ["KnowledgeConfig", "Settings", "load_config"]
