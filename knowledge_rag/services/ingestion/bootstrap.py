"""One-time seeding of the initial corpus, gated by a marker file.

``ensure_seeded`` writes :data:`SEED_CORPUS` under the knowledge root,
ingests one directory source per category, and only then creates the
marker.  With the marker present it returns at once without touching the
embedding service or vector store.

The check-then-write on the marker is not safe across processes; at most
one bootstrap process runs per deployment.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import structlog

from knowledge_rag.models.ingestion import BootstrapResult, SourceDescriptor, SourceKind
from knowledge_rag.services.ingestion.orchestrator import IngestionOrchestrator
from knowledge_rag.services.ingestion.seed_corpus import SEED_CORPUS

logger = structlog.get_logger(logger_name=__name__)

MARKER_FILENAME = ".initial_dataset_loaded"


class BootstrapLoader:
    """Seeds the knowledge base exactly once.

    Parameters
    ----------
    orchestrator:
        Used to ingest the seeded category directories.
    knowledge_root:
        Directory that receives the seed files and the marker.
    corpus:
        ``{category: {filename: markdown}}``; defaults to :data:`SEED_CORPUS`.
    """

    def __init__(
        self,
        orchestrator: IngestionOrchestrator,
        knowledge_root: str | Path,
        corpus: dict[str, dict[str, str]] | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._knowledge_root = Path(knowledge_root)
        self._corpus = corpus if corpus is not None else SEED_CORPUS

    @property
    def marker_path(self) -> Path:
        return self._knowledge_root / MARKER_FILENAME

    def is_seeded(self) -> bool:
        return self.marker_path.exists()

    async def ensure_seeded(self) -> BootstrapResult:
        """Load the initial corpus unless the marker says it is already loaded.

        Raises
        ------
        GatewayError
            Propagated from ingestion; the marker is not written.
        """
        if self.is_seeded():
            logger.info("bootstrap_already_loaded", marker=str(self.marker_path))
            return BootstrapResult(already_loaded=True)

        await asyncio.to_thread(self._materialize_corpus)

        sources = [
            SourceDescriptor(
                kind=SourceKind.DIRECTORY,
                location=str(self._knowledge_root / category),
                pattern="*.md",
                category=category,
            )
            for category in self._corpus
        ]
        report = await self._orchestrator.run(sources, force=True)

        if report.success and not report.per_source_errors:
            self._write_marker()
        else:
            logger.warning(
                "bootstrap_incomplete",
                errors=len(report.per_source_errors),
                msg="Marker not written; the next bootstrap will retry.",
            )

        logger.info(
            "bootstrap_complete",
            documents=report.documents_ingested,
            chunks=report.chunks_ingested,
            categories=len(sources),
        )
        return BootstrapResult(already_loaded=False, report=report)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _materialize_corpus(self) -> None:
        for category, files in self._corpus.items():
            category_dir = self._knowledge_root / category
            category_dir.mkdir(parents=True, exist_ok=True)
            for filename, content in files.items():
                (category_dir / filename).write_text(content, encoding="utf-8")
        logger.info("seed_corpus_written", root=str(self._knowledge_root), categories=len(self._corpus))

    def _write_marker(self) -> None:
        timestamp = datetime.now(timezone.utc).isoformat()
        try:
            with open(self.marker_path, "x", encoding="utf-8") as f:
                f.write(timestamp)
        except FileExistsError:
            logger.warning("bootstrap_marker_exists", marker=str(self.marker_path))
            return
        logger.info("bootstrap_marker_written", marker=str(self.marker_path), timestamp=timestamp)
