"""Unit tests for the knowledge CLI: parser, handlers, dispatch."""

from __future__ import annotations

from argparse import Namespace
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from knowledge_rag.cli import knowledge as cli
from knowledge_rag.config.loader import KnowledgeConfig
from knowledge_rag.config.settings import Settings
from knowledge_rag.main import KnowledgeBase
from knowledge_rag.models.ingestion import (
    BootstrapResult,
    IngestionReport,
    SourceError,
    SourceReport,
    SourceStatus,
)
from knowledge_rag.models.retrieval import QueryResult
from knowledge_rag.utils.errors import GatewayError


def _kb(**overrides) -> MagicMock:
    kb = MagicMock(spec=KnowledgeBase)
    kb.settings = Settings(_env_file=None, vector_index_name="kb-test")
    kb.config = KnowledgeConfig(sources=[{"kind": "directory", "location": "./a"}])
    kb.aclose = AsyncMock()
    for name, value in overrides.items():
        setattr(kb, name, value)
    return kb


class TestParser:
    def test_query_arguments(self) -> None:
        args = cli._build_parser().parse_args(
            ["query", "tip pooling", "--limit", "3", "--category", "a", "--category", "b"]
        )

        assert args.command == "query"
        assert args.text == "tip pooling"
        assert args.limit == 3
        assert args.category == ["a", "b"]

    def test_learn_requires_content_or_file(self) -> None:
        with pytest.raises(SystemExit):
            cli._build_parser().parse_args(["learn", "--category", "a"])

    def test_augment_task_choices(self) -> None:
        args = cli._build_parser().parse_args(["augment", "Add refunds", "--task", "bug_fixing"])

        assert args.task == "bug_fixing"
        with pytest.raises(SystemExit):
            cli._build_parser().parse_args(["augment", "x", "--task", "poetry"])

    def test_no_command_exits(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            cli.main([])

        assert exc_info.value.code == 1


class TestHandlers:
    @pytest.mark.asyncio
    async def test_query_prints_results(self, capsys) -> None:
        engine = MagicMock()
        engine.query = AsyncMock(
            return_value=[QueryResult(content="Pool tips weekly.", metadata={"source": "t.md", "category": "hr"}, score=0.75)]
        )
        kb = _kb(query_engine=engine)

        code = await cli._handle_query(Namespace(text="tips", limit=2, category=["hr"]), kb)

        out = capsys.readouterr().out
        assert code == 0
        assert "score=0.750" in out
        assert "Pool tips weekly." in out
        engine.query.assert_awaited_once_with("tips", limit=2, categories=["hr"])

    @pytest.mark.asyncio
    async def test_ingest_reports_errors(self, capsys) -> None:
        report = IngestionReport(
            documents_ingested=1,
            chunks_ingested=2,
            per_source_errors=[SourceError(source="directory:./b", kind="ConnectorError", message="Directory not found")],
            sources=[
                SourceReport(source="directory:./a", status=SourceStatus.COMPLETED, documents_ingested=1),
                SourceReport(source="directory:./b", status=SourceStatus.FAILED, message="Directory not found"),
            ],
        )
        orchestrator = MagicMock()
        orchestrator.run = AsyncMock(return_value=report)
        kb = _kb(orchestrator=orchestrator)

        code = await cli._handle_ingest(Namespace(config=None, force=True), kb)

        out = capsys.readouterr().out
        assert code == 1
        assert "Chunks ingested:    2" in out
        assert "Directory not found" in out
        orchestrator.run.assert_awaited_once_with(kb.config.sources, force=True)

    @pytest.mark.asyncio
    async def test_bootstrap_already_loaded(self, capsys) -> None:
        bootstrap = MagicMock()
        bootstrap.ensure_seeded = AsyncMock(return_value=BootstrapResult(already_loaded=True))
        bootstrap.marker_path = Path("/kb/.initial_dataset_loaded")
        kb = _kb(bootstrap=bootstrap)

        code = await cli._handle_bootstrap(Namespace(), kb)

        assert code == 0
        assert "already loaded" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_learn_from_file(self, tmp_path, capsys) -> None:
        note = tmp_path / "note.md"
        note.write_text("Comp meals need approval.", encoding="utf-8")
        feedback = MagicMock()
        feedback.learn = AsyncMock(return_value=IngestionReport(documents_ingested=1, chunks_ingested=1))
        kb = _kb(feedback=feedback)

        code = await cli._handle_learn(Namespace(file=str(note), content=None, category="policy", source=None), kb)

        assert code == 0
        feedback.learn.assert_awaited_once_with("Comp meals need approval.", category="policy", source=str(note))

    @pytest.mark.asyncio
    async def test_generate_without_llm(self, capsys) -> None:
        kb = _kb(llm=None)

        code = await cli._handle_generate(
            Namespace(prompt="p", system=None, max_tokens=10, category=None, task=None), kb
        )

        assert code == 1
        assert "no LLM configured" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_stats(self, capsys) -> None:
        gateway = MagicMock()
        gateway.count = AsyncMock(return_value=42)
        gateway.namespace = "hospitality"
        bootstrap = MagicMock()
        bootstrap.is_seeded.return_value = True
        kb = _kb(gateway=gateway, bootstrap=bootstrap)

        code = await cli._handle_stats(Namespace(), kb)

        out = capsys.readouterr().out
        assert code == 0
        assert "Total chunks:     42" in out
        assert "kb-test" in out


class TestMain:
    def test_dispatch_and_close(self) -> None:
        kb = _kb()
        augmentor = MagicMock()
        augmentor.augment = AsyncMock(return_value="AUGMENTED")
        kb.augmentor = augmentor

        with patch.object(cli, "build_knowledge_base", return_value=kb), patch.object(cli, "configure_logging"):
            with pytest.raises(SystemExit) as exc_info:
                cli.main(["augment", "Add table merging", "--task", "feature_implementation"])

        assert exc_info.value.code == 0
        augmentor.augment.assert_awaited_once_with(
            "Add table merging", limit=None, categories=None, task_type="feature_implementation"
        )
        kb.aclose.assert_awaited_once()

    @pytest.mark.parametrize("app_env,expected_json", [("production", True), ("development", False)])
    def test_logging_follows_app_env(self, monkeypatch, app_env, expected_json) -> None:
        monkeypatch.setenv("APP_ENV", app_env)
        monkeypatch.setenv("LOG_LEVEL", "WARNING")
        kb = _kb()
        gateway = MagicMock()
        gateway.count = AsyncMock(return_value=0)
        kb.gateway = gateway

        with patch.object(cli, "build_knowledge_base", return_value=kb), patch.object(
            cli, "configure_logging"
        ) as configure:
            with pytest.raises(SystemExit):
                cli.main(["stats"])

        configure.assert_called_once_with(log_level="WARNING", json_output=expected_json)

    def test_library_error_exit_code(self, capsys) -> None:
        kb = _kb()
        gateway = MagicMock()
        gateway.count = AsyncMock(side_effect=GatewayError(message="store unreachable", provider_name="chromadb"))
        kb.gateway = gateway

        with patch.object(cli, "build_knowledge_base", return_value=kb), patch.object(cli, "configure_logging"):
            with pytest.raises(SystemExit) as exc_info:
                cli.main(["stats"])

        assert exc_info.value.code == 1
        assert "[chromadb] store unreachable" in capsys.readouterr().err
        kb.aclose.assert_awaited_once()
