"""CLI for seeding, ingesting into and querying the knowledge base.

Usage::

    python -m knowledge_rag.cli bootstrap

    python -m knowledge_rag.cli ingest --config config/config.yaml --force

    python -m knowledge_rag.cli query "split checks at the POS" --limit 3 \\
        --category pos_integration

    python -m knowledge_rag.cli learn --file notes.md --category pos_integration

    python -m knowledge_rag.cli augment "Add table merging" --task feature_implementation

    python -m knowledge_rag.cli stats

Results go to stdout; structured logs go to stderr.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from knowledge_rag.config.loader import load_config
from knowledge_rag.config.settings import Settings
from knowledge_rag.main import KnowledgeBase, build_knowledge_base
from knowledge_rag.models.ingestion import IngestionReport
from knowledge_rag.models.retrieval import TaskType
from knowledge_rag.utils.errors import KnowledgeBaseError
from knowledge_rag.utils.logging import configure_logging

# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_report(title: str, report: IngestionReport) -> None:
    print(title)
    print("=" * 40)
    print(f"  Documents ingested: {report.documents_ingested}")
    print(f"  Chunks ingested:    {report.chunks_ingested}")
    print(f"  Documents skipped:  {report.documents_skipped}")
    if report.cancelled:
        print("  Run was cancelled before all sources were processed.")

    if report.sources:
        print("\n  Sources:")
        for source in report.sources:
            line = f"    {source.status.value:<16} {source.source}"
            if source.message:
                line += f"  ({source.message})"
            print(line)

    if report.per_source_errors:
        print("\n  Errors:")
        for error in report.per_source_errors:
            where = error.unit_id or error.source
            print(f"    {where}: {error.message}")


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_bootstrap(args: argparse.Namespace, kb: KnowledgeBase) -> int:
    """Seed the initial corpus once."""
    result = await kb.bootstrap.ensure_seeded()
    if result.already_loaded:
        print(f"Initial dataset already loaded (marker: {kb.bootstrap.marker_path}).")
        return 0

    _print_report("Bootstrap complete", result.report)
    return 0 if result.success and not result.report.per_source_errors else 1


async def _handle_ingest(args: argparse.Namespace, kb: KnowledgeBase) -> int:
    """Ingest every source declared in the YAML config."""
    config = load_config(args.config, settings=kb.settings) if args.config else kb.config
    if not config.sources:
        print("No sources configured.")
        return 0

    report = await kb.orchestrator.run(config.sources, force=args.force)
    _print_report("Ingestion complete", report)
    return 0 if not report.per_source_errors else 1


async def _handle_query(args: argparse.Namespace, kb: KnowledgeBase) -> int:
    """Print the chunks most relevant to a query."""
    results = await kb.query_engine.query(args.text, limit=args.limit, categories=args.category)
    if not results:
        print("No relevant knowledge found.")
        return 0

    for index, result in enumerate(results, start=1):
        source = result.metadata.get("source", "Unknown")
        category = result.metadata.get("category", "general")
        print(f"[{index}] score={result.score:.3f}  {category}  {source}")
        print(result.content)
        print()
    return 0


async def _handle_learn(args: argparse.Namespace, kb: KnowledgeBase) -> int:
    """Add a piece of knowledge to the index."""
    if args.file:
        content = Path(args.file).read_text(encoding="utf-8")
        source = args.source or args.file
    else:
        content = args.content
        source = args.source or "cli"

    if not content.strip():
        print("Error: nothing to learn, content is empty.", file=sys.stderr)
        return 1

    report = await kb.feedback.learn(content, category=args.category, source=source)
    _print_report("Knowledge added", report)
    return 0


async def _handle_augment(args: argparse.Namespace, kb: KnowledgeBase) -> int:
    """Print a prompt augmented with retrieved knowledge."""
    augmented = await kb.augmentor.augment(
        args.prompt,
        limit=args.limit,
        categories=args.category,
        task_type=args.task,
    )
    print(augmented)
    return 0


async def _handle_generate(args: argparse.Namespace, kb: KnowledgeBase) -> int:
    """Augment a prompt and complete it with the configured LLM."""
    if kb.llm is None:
        print("Error: no LLM configured. Set ANTHROPIC_API_KEY or OPENAI_API_KEY.", file=sys.stderr)
        return 1

    answer = await kb.augmentor.generate_with_rag(
        kb.llm,
        args.prompt,
        system_prompt=args.system,
        max_tokens=args.max_tokens,
        categories=args.category,
        task_type=args.task,
    )
    print(answer)
    return 0


async def _handle_stats(args: argparse.Namespace, kb: KnowledgeBase) -> int:
    """Display index statistics."""
    total = await kb.gateway.count()

    print("Knowledge Base Statistics")
    print("=" * 40)
    print(f"  Index:            {kb.settings.vector_index_name}")
    print(f"  Namespace:        {kb.gateway.namespace}")
    print(f"  Total chunks:     {total}")
    print(f"  Seeded:           {'yes' if kb.bootstrap.is_seeded() else 'no'}")
    print(f"  Configured sources: {len(kb.config.sources)}")
    return 0


_HANDLERS = {
    "bootstrap": _handle_bootstrap,
    "ingest": _handle_ingest,
    "query": _handle_query,
    "learn": _handle_learn,
    "augment": _handle_augment,
    "generate": _handle_generate,
    "stats": _handle_stats,
}


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the knowledge CLI."""
    parser = argparse.ArgumentParser(
        prog="knowledge-rag",
        description="Manage and query the domain knowledge base.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Knowledge base commands")

    task_choices = [task.value for task in TaskType]

    # -- bootstrap --
    subparsers.add_parser("bootstrap", help="Load the initial dataset (once)")

    # -- ingest --
    ingest_parser = subparsers.add_parser("ingest", help="Ingest the configured sources")
    ingest_parser.add_argument("--config", help="YAML config path (default: CONFIG_PATH)")
    ingest_parser.add_argument(
        "--force",
        action="store_true",
        help="Re-embed documents even when unchanged",
    )

    # -- query --
    query_parser = subparsers.add_parser("query", help="Search the knowledge base")
    query_parser.add_argument("text", help="Query text")
    query_parser.add_argument("--limit", type=int, help="Maximum results")
    query_parser.add_argument(
        "--category",
        action="append",
        help="Restrict to a category (repeatable)",
    )

    # -- learn --
    learn_parser = subparsers.add_parser("learn", help="Add knowledge to the index")
    content_group = learn_parser.add_mutually_exclusive_group(required=True)
    content_group.add_argument("--content", help="Knowledge text")
    content_group.add_argument("--file", help="Read knowledge text from a file")
    learn_parser.add_argument("--category", required=True, help="Knowledge category")
    learn_parser.add_argument("--source", help="Source label (default: file path or 'cli')")

    # -- augment / generate --
    for name, help_text in (
        ("augment", "Print a prompt augmented with relevant knowledge"),
        ("generate", "Augment a prompt and send it to the LLM"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("prompt", help="Prompt text")
        sub.add_argument("--task", choices=task_choices, help="Task type for template selection")
        sub.add_argument("--limit", type=int, help="Maximum knowledge items")
        sub.add_argument("--category", action="append", help="Restrict to a category (repeatable)")
        if name == "generate":
            sub.add_argument("--system", help="System prompt")
            sub.add_argument("--max-tokens", type=int, default=1000, dest="max_tokens")

    # -- stats --
    subparsers.add_parser("stats", help="Show knowledge base statistics")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    kb = build_knowledge_base(settings=app_settings)
    try:
        return await _HANDLERS[args.command](args, kb)
    finally:
        await kb.aclose()


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.

    Parses the subcommand, loads Settings from the environment / ``.env``,
    builds the knowledge base and dispatches to the matching handler.
    Library errors are reported on stderr with exit code 1.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(
        log_level=app_settings.log_level,
        json_output=(app_settings.app_env == "production"),
    )

    try:
        exit_code = asyncio.run(_run(args, app_settings))
    except KnowledgeBaseError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
