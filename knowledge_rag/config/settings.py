"""Application settings loaded from environment variables via pydantic-settings.

Values come from (highest priority first) environment variables, then a
``.env`` file in the working directory, then the defaults below.  Field
``openai_api_key`` maps to ``OPENAI_API_KEY`` and so on.

Empty-string credentials mean "not configured"; the composition root in
:mod:`knowledge_rag.main` skips providers whose key is empty.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """knowledge-rag runtime settings."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Credentials ===
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoints
    anthropic_api_key: str = ""

    # === Embeddings ===
    embedding_provider: str = "auto"  # auto | openai | fastembed
    openai_embedding_model: str = "text-embedding-3-small"
    fastembed_model: str = "BAAI/bge-small-en-v1.5"

    # === Generation ===
    llm_provider: str = "auto"  # auto | anthropic | openai
    openai_text_model: str = "gpt-4o-mini"
    anthropic_model: str = "claude-sonnet-4-20250514"

    # === Vector store ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_host: str = ""  # non-empty switches to the HTTP client
    chromadb_port: int = 8000
    vector_index_name: str = "knowledge-base"
    vector_namespace: str = "hospitality"

    # === Ingestion ===
    knowledge_root: str = "./knowledge"
    chunk_size: int = 1000
    chunk_overlap: int = 200
    rag_default_limit: int = 5
    ingestion_concurrency: int = 4
    http_timeout: float = 30.0

    # === Application ===
    config_path: str = "config/config.yaml"
    app_env: str = "development"
    log_level: str = "INFO"

    def get_available_embedding_providers(self) -> list[str]:
        """Return embedding backends usable with the current credentials."""
        providers = []
        if self.openai_api_key:
            providers.append("openai")
        providers.append("fastembed")
        return providers

    def get_available_llm_providers(self) -> list[str]:
        """Return generation backends with configured credentials."""
        providers = []
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.openai_api_key:
            providers.append("openai")
        return providers
