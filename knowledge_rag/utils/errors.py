"""Custom exception hierarchy for knowledge-rag.

All application exceptions inherit from :class:`KnowledgeBaseError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "chromadb", "anthropic") caused the failure.

    KnowledgeBaseError  (base -- catch-all for any knowledge-rag error)
    +-- ExtractionError     (one unit could not be turned into text)
    +-- ConnectorError      (one source could not be enumerated or fetched)
    +-- ConfigurationError  (invalid chunk parameters, malformed descriptors)
    +-- GatewayError        (embedding service or vector store failure)
    +-- TemplateError       (prompt template misconfiguration)
    +-- LLMError            (generation service failure)

Unit- and source-level errors are recoverable and are collected into the
ingestion report.  Gateway and configuration errors fail the operation.
"""


class KnowledgeBaseError(Exception):
    """Base exception for all knowledge-rag errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider name in brackets,
    e.g. ``[openai] Embedding request failed``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors (recoverable, recorded per unit / per source)
# ---------------------------------------------------------------------------

class ExtractionError(KnowledgeBaseError):
    """Raised when a single unit (file, response, element) cannot be extracted."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        unit_id: str | None = None,
        provider_name: str | None = None,
    ) -> None:
        self._unit_id = unit_id
        super().__init__(message=message, provider_name=provider_name)

    @property
    def unit_id(self) -> str | None:
        return self._unit_id


class ConnectorError(KnowledgeBaseError):
    """Raised when a whole source cannot be enumerated or fetched."""

    def __init__(
        self,
        message: str = "Source connector failed",
        source: str | None = None,
        provider_name: str | None = None,
    ) -> None:
        self._source = source
        super().__init__(message=message, provider_name=provider_name)

    @property
    def source(self) -> str | None:
        return self._source


# ---------------------------------------------------------------------------
# Structural errors (propagate to the caller)
# ---------------------------------------------------------------------------

class ConfigurationError(KnowledgeBaseError):
    """Raised for invalid settings, chunk parameters, or source descriptors."""

    def __init__(
        self,
        message: str = "Invalid configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class GatewayError(KnowledgeBaseError):
    """Raised when the embedding service or vector store is unreachable or fails."""

    def __init__(
        self,
        message: str = "Vector store gateway operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class TemplateError(KnowledgeBaseError):
    """Raised when a prompt template lacks (or repeats) a required placeholder."""

    def __init__(
        self,
        message: str = "Invalid prompt template",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(KnowledgeBaseError):
    """Raised when a generation (completion) request fails."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
