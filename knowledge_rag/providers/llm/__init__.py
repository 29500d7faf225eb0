"""Generation (completion) provider adapters."""

from knowledge_rag.providers.llm.anthropic_provider import AnthropicLLMProvider
from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["AnthropicLLMProvider", "OpenAILLMProvider"]
