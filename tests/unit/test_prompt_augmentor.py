"""Unit tests for PromptAugmentor and its template helpers."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from knowledge_rag.models.retrieval import QueryResult, TaskType
from knowledge_rag.services.retrieval.prompt_augmentor import (
    PromptAugmentor,
    format_knowledge,
    render_template,
    validate_template,
)
from knowledge_rag.services.retrieval.query_engine import QueryEngine
from knowledge_rag.utils.errors import GatewayError, LLMError, TemplateError


def _result(content: str, source: str = "pos.md", category: str = "pos_integration") -> QueryResult:
    return QueryResult(content=content, metadata={"source": source, "category": category}, score=0.8)


def _engine(results=None, error: Exception | None = None) -> MagicMock:
    engine = MagicMock(spec=QueryEngine)
    engine.query = AsyncMock(return_value=results or [], side_effect=error)
    return engine


# ======================================================================
# Template helpers
# ======================================================================


class TestTemplates:
    def test_validate_accepts_both_placeholders_once(self) -> None:
        validate_template("K: {{knowledge}}\nP: {{prompt}}")

    @pytest.mark.parametrize(
        "template",
        ["{{knowledge}} only", "{{prompt}} only", "{{knowledge}} {{knowledge}} {{prompt}}"],
    )
    def test_validate_rejects(self, template: str) -> None:
        with pytest.raises(TemplateError):
            validate_template(template)

    def test_render_does_not_reexpand_inserted_text(self) -> None:
        rendered = render_template("A {{knowledge}} B {{prompt}}", "has {{prompt}} inside", "user")

        assert rendered == "A has {{prompt}} inside B user"

    def test_format_knowledge(self) -> None:
        text = format_knowledge([_result("one", source="a.md"), _result("two", source="b.md")])

        assert text == "[Knowledge Item 1] Source: a.md\none\n\n[Knowledge Item 2] Source: b.md\ntwo"

    def test_format_knowledge_unknown_source(self) -> None:
        result = QueryResult(content="x", metadata={}, score=0.1)

        assert format_knowledge([result]).startswith("[Knowledge Item 1] Source: Unknown")


# ======================================================================
# augment
# ======================================================================


class TestAugment:
    @pytest.mark.asyncio
    async def test_augments_with_default_template(self) -> None:
        engine = _engine([_result("Terminals sync nightly.")])
        augmentor = PromptAugmentor(engine)

        augmented = await augmentor.augment("How do menus reach terminals?", limit=3, categories=["pos_integration"])

        assert "[Knowledge Item 1] Source: pos.md\nTerminals sync nightly." in augmented
        assert "How do menus reach terminals?" in augmented
        assert "{{" not in augmented
        engine.query.assert_awaited_once_with(
            "How do menus reach terminals?", limit=3, categories=["pos_integration"]
        )

    @pytest.mark.asyncio
    async def test_no_results_returns_prompt_unchanged(self) -> None:
        augmentor = PromptAugmentor(_engine([]))

        assert await augmentor.augment("plain prompt") == "plain prompt"

    @pytest.mark.asyncio
    async def test_query_failure_returns_prompt(self) -> None:
        augmentor = PromptAugmentor(_engine(error=GatewayError(message="store down")))

        assert await augmentor.augment("plain prompt") == "plain prompt"

    @pytest.mark.asyncio
    async def test_bad_template_returns_prompt(self) -> None:
        augmentor = PromptAugmentor(_engine([_result("x")]), prompt_template="no placeholders here")

        assert await augmentor.augment("plain prompt") == "plain prompt"

    @pytest.mark.asyncio
    async def test_task_template_selected(self) -> None:
        augmentor = PromptAugmentor(
            _engine([_result("Refunds need a PIN.")]),
            prompt_template="DEFAULT {{knowledge}} {{prompt}}",
            task_templates={"bug_fixing": "BUG {{knowledge}} {{prompt}}"},
        )

        bug = await augmentor.augment("fix refunds", task_type=TaskType.BUG_FIXING)
        other = await augmentor.augment("fix refunds", task_type="testing")
        unknown = await augmentor.augment("fix refunds", task_type="not-a-task")

        assert bug.startswith("BUG ")
        assert other.startswith("DEFAULT ")
        assert unknown.startswith("DEFAULT ")

    @pytest.mark.asyncio
    async def test_placeholder_text_in_knowledge_not_expanded(self) -> None:
        augmentor = PromptAugmentor(
            _engine([_result("literal {{prompt}} in a doc")]),
            prompt_template="{{knowledge}} || {{prompt}}",
        )

        augmented = await augmentor.augment("USER")

        assert augmented.endswith("literal {{prompt}} in a doc || USER")


# ======================================================================
# augment_system_prompt
# ======================================================================


class TestAugmentSystemPrompt:
    @pytest.mark.asyncio
    async def test_appends_section_with_categories(self) -> None:
        engine = _engine([_result("Seat VIPs first.", category="reservation_systems")])
        augmentor = PromptAugmentor(engine, system_template="KNOWLEDGE:\n{{knowledge}}")

        result = await augmentor.augment_system_prompt("You are a host.", "who sits first?")

        assert result == (
            "You are a host.\n\nKNOWLEDGE:\n[Knowledge Item 1] Source: reservation_systems\nSeat VIPs first."
        )
        args, _ = engine.query.call_args
        assert args[0] == "You are a host. who sits first?"

    @pytest.mark.asyncio
    async def test_no_results_unchanged(self) -> None:
        augmentor = PromptAugmentor(_engine([]))

        assert await augmentor.augment_system_prompt("sys", "user") == "sys"

    @pytest.mark.asyncio
    async def test_failure_unchanged(self) -> None:
        augmentor = PromptAugmentor(_engine(error=RuntimeError("boom")))

        assert await augmentor.augment_system_prompt("sys", "user") == "sys"


# ======================================================================
# generate_with_rag
# ======================================================================


class TestGenerateWithRag:
    @pytest.mark.asyncio
    async def test_sends_augmented_prompt(self, mock_llm_provider) -> None:
        augmentor = PromptAugmentor(_engine([_result("Fact.")]), prompt_template="{{knowledge}}\n{{prompt}}")

        answer = await augmentor.generate_with_rag(mock_llm_provider, "Q?", system_prompt="sys")

        assert answer == "generated answer"
        args, kwargs = mock_llm_provider.complete.call_args
        assert args[0].endswith("Fact.\nQ?")
        assert kwargs["system_prompt"] == "sys"

    @pytest.mark.asyncio
    async def test_falls_back_to_plain_prompt(self, mock_llm_provider) -> None:
        mock_llm_provider.complete = AsyncMock(side_effect=[LLMError(message="context too long"), "plain answer"])
        augmentor = PromptAugmentor(_engine([_result("Fact.")]))

        answer = await augmentor.generate_with_rag(mock_llm_provider, "Q?")

        assert answer == "plain answer"
        assert mock_llm_provider.complete.await_args_list[1].args[0] == "Q?"

    @pytest.mark.asyncio
    async def test_error_raised_when_nothing_to_fall_back_to(self, mock_llm_provider) -> None:
        mock_llm_provider.complete = AsyncMock(side_effect=LLMError(message="down"))
        augmentor = PromptAugmentor(_engine([]))

        with pytest.raises(LLMError):
            await augmentor.generate_with_rag(mock_llm_provider, "Q?")

        assert mock_llm_provider.complete.await_count == 1
