"""Composition root: wires providers and services into a KnowledgeBase.

Loads ``Settings`` from the environment / ``.env`` and the YAML knowledge
config, picks the embedding and generation providers, and assembles the
ingestion and retrieval services around one shared gateway.  Collaborators
can be injected (tests pass in-memory fakes).
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from knowledge_rag.config.loader import KnowledgeConfig, load_config
from knowledge_rag.config.settings import Settings
from knowledge_rag.interfaces.embedding_provider import IEmbeddingProvider
from knowledge_rag.interfaces.llm_provider import ILLMProvider
from knowledge_rag.interfaces.vector_store_provider import IVectorStoreProvider
from knowledge_rag.services.ingestion.bootstrap import BootstrapLoader
from knowledge_rag.services.ingestion.chunker import TextChunker
from knowledge_rag.services.ingestion.connectors import build_connectors
from knowledge_rag.services.ingestion.orchestrator import IngestionOrchestrator
from knowledge_rag.services.retrieval.feedback import FeedbackLoop
from knowledge_rag.services.retrieval.prompt_augmentor import PromptAugmentor
from knowledge_rag.services.retrieval.query_engine import QueryEngine
from knowledge_rag.services.vector_gateway import VectorStoreGateway
from knowledge_rag.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


@dataclass
class KnowledgeBase:
    """Every wired service, ready to use."""

    settings: Settings
    config: KnowledgeConfig
    gateway: VectorStoreGateway
    orchestrator: IngestionOrchestrator
    bootstrap: BootstrapLoader
    query_engine: QueryEngine
    augmentor: PromptAugmentor
    feedback: FeedbackLoop
    llm: ILLMProvider | None = None

    async def aclose(self) -> None:
        await self.orchestrator.aclose()


def _build_embedding_provider(settings: Settings) -> IEmbeddingProvider:
    """Pick the embedding backend named by ``EMBEDDING_PROVIDER``.

    ``auto`` prefers OpenAI when a key is configured, then local FastEmbed.
    The choice must stay stable for a deployment: the index dimension is
    fixed by whichever provider created it.
    """
    choice = settings.embedding_provider.lower()

    if choice in ("openai", "auto") and settings.openai_api_key:
        from knowledge_rag.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider

        return OpenAIEmbeddingProvider(settings=settings)
    if choice == "openai":
        raise ConfigurationError(message="EMBEDDING_PROVIDER=openai requires OPENAI_API_KEY")

    if choice in ("fastembed", "auto"):
        from knowledge_rag.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider

        provider = FastEmbedEmbeddingProvider(model_name=settings.fastembed_model)
        if provider.is_available():
            return provider
        raise ConfigurationError(
            message="No embedding provider available: set OPENAI_API_KEY or install fastembed"
        )

    raise ConfigurationError(message=f"Unknown embedding provider '{settings.embedding_provider}'")


def _build_llm_provider(settings: Settings) -> ILLMProvider | None:
    """Pick a generation backend; ``None`` when no credentials are configured."""
    choice = settings.llm_provider.lower()

    if choice in ("anthropic", "auto") and settings.anthropic_api_key:
        from knowledge_rag.providers.llm.anthropic_provider import AnthropicLLMProvider

        return AnthropicLLMProvider(settings=settings)
    if choice in ("openai", "auto") and settings.openai_api_key:
        from knowledge_rag.providers.llm.openai_provider import OpenAILLMProvider

        return OpenAILLMProvider(settings=settings)
    return None


def _build_vector_store(settings: Settings) -> IVectorStoreProvider:
    from knowledge_rag.providers.vector_store.chromadb_provider import ChromaDBProvider

    return ChromaDBProvider(
        persist_directory=settings.chromadb_persist_dir,
        host=settings.chromadb_host,
        port=settings.chromadb_port,
    )


def build_knowledge_base(
    settings: Settings | None = None,
    config: KnowledgeConfig | None = None,
    embedding_provider: IEmbeddingProvider | None = None,
    vector_store: IVectorStoreProvider | None = None,
    llm: ILLMProvider | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> KnowledgeBase:
    """Assemble a :class:`KnowledgeBase`, building any collaborator not given."""
    settings = settings or Settings()
    config = config or load_config(settings=settings)

    embedding_provider = embedding_provider or _build_embedding_provider(settings)
    vector_store = vector_store or _build_vector_store(settings)
    llm = llm or _build_llm_provider(settings)

    gateway = VectorStoreGateway(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        index_name=settings.vector_index_name,
        namespace=settings.vector_namespace,
    )
    chunker = TextChunker(max_chars=config.chunking.size, overlap_chars=config.chunking.overlap)
    connectors = build_connectors(
        knowledge_root=settings.knowledge_root,
        http_client=http_client,
        timeout=settings.http_timeout,
        concurrency=settings.ingestion_concurrency,
    )
    orchestrator = IngestionOrchestrator(connectors=connectors, chunker=chunker, gateway=gateway)
    query_engine = QueryEngine(gateway=gateway, default_limit=config.rag.default_limit)

    logger.info(
        "knowledge_base_built",
        embedding=embedding_provider.get_provider_name(),
        vector_store=vector_store.get_provider_name(),
        llm=llm.get_provider_name() if llm else None,
        index=settings.vector_index_name,
        namespace=settings.vector_namespace,
    )
    return KnowledgeBase(
        settings=settings,
        config=config,
        gateway=gateway,
        orchestrator=orchestrator,
        bootstrap=BootstrapLoader(orchestrator=orchestrator, knowledge_root=settings.knowledge_root),
        query_engine=query_engine,
        augmentor=PromptAugmentor(
            query_engine=query_engine,
            prompt_template=config.rag.prompt_template,
            task_templates={**config.rag.task_templates},
            system_template=config.rag.system_template,
        ),
        feedback=FeedbackLoop(orchestrator=orchestrator),
        llm=llm,
    )
