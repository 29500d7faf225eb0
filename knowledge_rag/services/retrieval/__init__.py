"""Retrieval: query façade, prompt augmentation, feedback loop."""

from knowledge_rag.services.retrieval.feedback import FeedbackLoop
from knowledge_rag.services.retrieval.prompt_augmentor import PromptAugmentor
from knowledge_rag.services.retrieval.query_engine import QueryEngine

__all__ = ["FeedbackLoop", "PromptAugmentor", "QueryEngine"]
