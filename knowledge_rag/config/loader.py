"""YAML knowledge configuration with environment overrides.

Configuration is layered (later layers win):

    1. Built-in defaults on :class:`KnowledgeConfig`
    2. ``config/config.yaml`` (sources, chunking, prompt templates)
    3. Settings explicitly provided through the environment or ``.env``

Sources are kept as raw mappings here.  The ingestion orchestrator
coerces them into :class:`~knowledge_rag.models.ingestion.SourceDescriptor`
so that an unknown ``kind`` can be skipped with a warning instead of
failing the whole load.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from knowledge_rag.config.settings import Settings
from knowledge_rag.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_PROMPT_TEMPLATE = """I'll provide you with some relevant knowledge that might help with your task.

RELEVANT KNOWLEDGE:
{{knowledge}}

ORIGINAL PROMPT:
{{prompt}}

Please use the relevant knowledge above when it applies to the task. If it does not apply, rely on your general knowledge."""

DEFAULT_SYSTEM_TEMPLATE = """You have access to the following domain-specific knowledge:

{{knowledge}}

Use this knowledge when appropriate to provide more accurate and relevant responses. Do not mention that you were given this knowledge unless asked."""

DEFAULT_TASK_TEMPLATES: dict[str, str] = {
    "feature_implementation": """You are implementing a new feature. The following reference material describes established patterns in this domain.

REFERENCE MATERIAL:
{{knowledge}}

FEATURE REQUEST:
{{prompt}}

Follow the reference patterns where they fit and call out any deliberate deviation.""",
    "bug_fixing": """You are diagnosing a defect. The following knowledge describes how the affected systems are expected to behave.

EXPECTED BEHAVIOUR:
{{knowledge}}

BUG REPORT:
{{prompt}}

Identify the root cause before proposing a fix.""",
}

# Settings fields that may override a YAML value, as (section, key).
_SETTINGS_OVERRIDES: dict[str, tuple[str, str]] = {
    "chunk_size": ("chunking", "size"),
    "chunk_overlap": ("chunking", "overlap"),
    "rag_default_limit": ("rag", "default_limit"),
}


class ChunkingConfig(BaseModel):
    """Character budget for chunk windows."""

    model_config = ConfigDict(frozen=True)

    size: int = Field(default=1000, gt=0, description="Maximum characters per chunk.")
    overlap: int = Field(default=200, ge=0, description="Characters shared by consecutive chunks.")

    @model_validator(mode="after")
    def _overlap_below_size(self) -> ChunkingConfig:
        if self.overlap >= self.size:
            raise ValueError(f"chunk overlap ({self.overlap}) must be smaller than size ({self.size})")
        return self


class RagConfig(BaseModel):
    """Retrieval defaults and prompt templates."""

    model_config = ConfigDict(frozen=True)

    default_limit: int = Field(default=5, gt=0)
    prompt_template: str = DEFAULT_PROMPT_TEMPLATE
    system_template: str = DEFAULT_SYSTEM_TEMPLATE
    task_templates: dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_TASK_TEMPLATES))

    @field_validator("task_templates", mode="before")
    @classmethod
    def _merge_task_templates(cls, value: Any) -> Any:
        """Configured task templates extend the built-in set; same keys replace."""
        if value is None:
            return dict(DEFAULT_TASK_TEMPLATES)
        if isinstance(value, dict):
            return {**DEFAULT_TASK_TEMPLATES, **value}
        return value


class KnowledgeConfig(BaseModel):
    """Fully resolved knowledge-base configuration."""

    model_config = ConfigDict(frozen=True)

    sources: list[dict[str, Any]] = Field(default_factory=list)
    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    rag: RagConfig = Field(default_factory=RagConfig)


def load_config(path: str | None = None, settings: Settings | None = None) -> KnowledgeConfig:
    """Load the YAML config at *path* and apply environment overrides.

    Args:
        path: YAML file path.  Defaults to ``settings.config_path``.
        settings: Settings instance; a fresh one is created when omitted.

    Returns:
        The validated :class:`KnowledgeConfig`.

    Raises:
        ConfigurationError: The YAML is malformed or fails validation.
    """
    settings = settings or Settings()
    config_path = Path(path or settings.config_path)

    if config_path.exists():
        try:
            with open(config_path, encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(message=f"Invalid YAML in {config_path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigurationError(message=f"{config_path} must contain a mapping at top level")
    else:
        logger.info("config_file_missing", path=str(config_path))
        raw = {}

    _deep_merge(raw, _env_overrides(settings))

    try:
        config = KnowledgeConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(message=f"Invalid configuration in {config_path}: {exc}") from exc

    logger.debug(
        "config_loaded",
        path=str(config_path),
        sources=len(config.sources),
        chunk_size=config.chunking.size,
        chunk_overlap=config.chunking.overlap,
    )
    return config


def _env_overrides(settings: Settings) -> dict[str, dict[str, Any]]:
    """Collect settings that were set explicitly (env or .env), not defaulted."""
    overrides: dict[str, dict[str, Any]] = {}
    for field_name, (section, key) in _SETTINGS_OVERRIDES.items():
        if field_name in settings.model_fields_set:
            overrides.setdefault(section, {})[key] = getattr(settings, field_name)
    return overrides


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
