"""Prompt augmentation: retrieved knowledge + template -> augmented prompt.

Augmentation is strictly best-effort.  Zero results, a bad template, a
failing query: every path ends with the caller getting a usable prompt,
at worst the one they passed in.
"""

from __future__ import annotations

import re

import structlog

from knowledge_rag.config.loader import (
    DEFAULT_PROMPT_TEMPLATE,
    DEFAULT_SYSTEM_TEMPLATE,
    DEFAULT_TASK_TEMPLATES,
)
from knowledge_rag.interfaces.llm_provider import ILLMProvider
from knowledge_rag.models.retrieval import QueryResult, TaskType
from knowledge_rag.services.retrieval.query_engine import QueryEngine
from knowledge_rag.utils.errors import LLMError, TemplateError

logger = structlog.get_logger(logger_name=__name__)

KNOWLEDGE_PLACEHOLDER = "{{knowledge}}"
PROMPT_PLACEHOLDER = "{{prompt}}"
_PLACEHOLDER = re.compile(r"\{\{(knowledge|prompt)\}\}")


def validate_template(
    template: str,
    placeholders: tuple[str, ...] = (KNOWLEDGE_PLACEHOLDER, PROMPT_PLACEHOLDER),
) -> None:
    """Raise :class:`TemplateError` unless each placeholder occurs exactly once."""
    for placeholder in placeholders:
        occurrences = template.count(placeholder)
        if occurrences != 1:
            raise TemplateError(
                message=f"Template must contain {placeholder} exactly once (found {occurrences})"
            )


def render_template(template: str, knowledge: str, prompt: str = "") -> str:
    """Substitute both placeholders in one pass.

    Placeholder-like text inside *knowledge* or *prompt* is inserted
    verbatim, never expanded.
    """
    values = {"knowledge": knowledge, "prompt": prompt}
    return _PLACEHOLDER.sub(lambda m: values[m.group(1)], template)


def format_knowledge(results: list[QueryResult], source_key: str = "source") -> str:
    """``[Knowledge Item N] Source: ...`` blocks separated by blank lines."""
    items = []
    for index, result in enumerate(results, start=1):
        source = result.metadata.get(source_key) or "Unknown"
        items.append(f"[Knowledge Item {index}] Source: {source}\n{result.content}")
    return "\n\n".join(items)


class PromptAugmentor:
    """Builds knowledge-augmented prompts around a :class:`QueryEngine`.

    Parameters
    ----------
    query_engine:
        Retrieval façade.
    prompt_template:
        Default template with ``{{knowledge}}`` and ``{{prompt}}``.
    task_templates:
        Per-task templates keyed by :class:`TaskType` value.
    system_template:
        Knowledge section appended to system prompts; ``{{knowledge}}`` only.
    """

    def __init__(
        self,
        query_engine: QueryEngine,
        prompt_template: str = DEFAULT_PROMPT_TEMPLATE,
        task_templates: dict[str, str] | None = None,
        system_template: str = DEFAULT_SYSTEM_TEMPLATE,
    ) -> None:
        self._query_engine = query_engine
        self._prompt_template = prompt_template
        self._task_templates = dict(DEFAULT_TASK_TEMPLATES if task_templates is None else task_templates)
        self._system_template = system_template

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def select_template(self, task_type: TaskType | str | None) -> str:
        """Task template for a recognised task with a template, else the default."""
        task = TaskType.parse(task_type)
        if task is not None and task.value in self._task_templates:
            return self._task_templates[task.value]
        if task_type is not None and task is None:
            logger.debug("unknown_task_type", task_type=str(task_type))
        return self._prompt_template

    async def augment(
        self,
        prompt: str,
        limit: int | None = None,
        categories: list[str] | None = None,
        task_type: TaskType | str | None = None,
    ) -> str:
        """Return *prompt* wrapped with retrieved knowledge, or *prompt* itself.

        Never raises: any failure is logged and the original prompt returned.
        """
        try:
            results = await self._query_engine.query(prompt, limit=limit, categories=categories)
            if not results:
                logger.info("augment_no_results", categories=categories)
                return prompt

            template = self.select_template(task_type)
            validate_template(template)
            augmented = render_template(template, format_knowledge(results), prompt)
            logger.info(
                "prompt_augmented",
                items=len(results),
                task_type=str(task_type) if task_type else None,
                original_chars=len(prompt),
                augmented_chars=len(augmented),
            )
            return augmented
        except Exception as exc:  # noqa: BLE001
            logger.warning("augment_fallback", error=str(exc), error_type=type(exc).__name__)
            return prompt

    async def augment_system_prompt(
        self,
        system_prompt: str,
        user_prompt: str,
        limit: int | None = None,
        categories: list[str] | None = None,
    ) -> str:
        """Append a domain-knowledge section to *system_prompt*.

        Retrieval uses both prompts as the query.  Never raises.
        """
        try:
            results = await self._query_engine.query(
                f"{system_prompt} {user_prompt}", limit=limit, categories=categories
            )
            if not results:
                return system_prompt

            validate_template(self._system_template, (KNOWLEDGE_PLACEHOLDER,))
            knowledge = format_knowledge(results, source_key="category")
            section = render_template(self._system_template, knowledge)
            logger.info("system_prompt_augmented", items=len(results))
            return f"{system_prompt}\n\n{section}"
        except Exception as exc:  # noqa: BLE001
            logger.warning("system_augment_fallback", error=str(exc), error_type=type(exc).__name__)
            return system_prompt

    async def generate_with_rag(
        self,
        llm: ILLMProvider,
        prompt: str,
        system_prompt: str | None = None,
        max_tokens: int = 1000,
        categories: list[str] | None = None,
        task_type: TaskType | str | None = None,
    ) -> str:
        """Augment *prompt* and complete it with *llm*.

        If the augmented completion fails, the plain prompt is tried once.

        Raises
        ------
        LLMError
            Both the augmented and the plain completion failed.
        """
        augmented = await self.augment(prompt, categories=categories, task_type=task_type)
        try:
            return await llm.complete(augmented, system_prompt=system_prompt, max_tokens=max_tokens)
        except LLMError as exc:
            if augmented == prompt:
                raise
            logger.warning("rag_generation_fallback", provider=llm.get_provider_name(), error=str(exc))
        return await llm.complete(prompt, system_prompt=system_prompt, max_tokens=max_tokens)
