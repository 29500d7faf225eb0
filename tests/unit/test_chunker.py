"""Unit tests for the TextChunker: budgeted, overlapping, boundary-aware splitting."""

from __future__ import annotations

import pytest

from knowledge_rag.models.ingestion import Document, DocumentMetadata
from knowledge_rag.services.ingestion.chunker import TextChunker, chunk_windows, split_text
from knowledge_rag.utils.errors import ConfigurationError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_FOX = (("The quick brown fox jumps over the lazy dog. ") * 60)[:2500]


def _document(text: str, source: str = "/kb/pos/doc.md") -> Document:
    return Document(
        text=text,
        metadata=DocumentMetadata(source=source, category="pos_integration", type="md", filename="doc.md"),
    )


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestBudget:
    def test_reference_text_yields_four_bounded_chunks(self) -> None:
        chunks = split_text(_FOX, 1000, 200)

        assert len(chunks) == 4
        assert all(len(c) <= 1000 for c in chunks)

    def test_sentence_cuts_land_on_sentence_ends(self) -> None:
        windows = chunk_windows(_FOX, 1000, 200)

        assert [w.end for w in windows] == [765, 1530, 2295, 2500]

    def test_consecutive_chunks_overlap(self) -> None:
        chunks = split_text(_FOX, 1000, 200)

        for previous, current in zip(chunks, chunks[1:]):
            overlap = current[:50]
            assert overlap in previous

    def test_hard_cut_when_no_whitespace(self) -> None:
        text = "x" * 2500
        chunks = split_text(text, 1000, 200)

        assert len(chunks) == 4
        assert all(len(c) <= 1000 for c in chunks)
        assert chunks[1] == "x" * 1000

    def test_short_text_single_chunk(self) -> None:
        assert split_text("Tables turn at 7pm.", 1000, 200) == ["Tables turn at 7pm."]


class TestBoundaries:
    def test_paragraph_break_preferred(self) -> None:
        para1 = ("word " * 30).strip()
        text = para1 + "\n\n" + "other " * 40

        windows = chunk_windows(text, 200, 20)

        assert windows[0].end == len(para1) + 2
        assert text[: windows[0].end].endswith("\n\n")

    def test_abbreviation_does_not_end_sentence(self) -> None:
        text = "Kitchen staff arrive early. Dr. Ng checks the stock levels every single morning."

        chunks = split_text(text, 40, 0)

        assert chunks[0] == "Kitchen staff arrive early. "
        assert chunks[1].startswith("Dr. Ng")

    def test_segments_reconstruct_input(self) -> None:
        text = "Para one is here.\n\nPara two, longer; it goes on. " * 40
        windows = chunk_windows(text, 300, 60)

        rebuilt = "".join(text[w.body_start : w.end] for w in windows)

        assert rebuilt == text
        assert windows[0].start == 0
        for w in windows[1:]:
            assert w.body_start - w.start <= 60


class TestValidation:
    @pytest.mark.parametrize(
        ("max_chars", "overlap"),
        [(100, 100), (100, 150), (0, 0), (100, -1)],
    )
    def test_invalid_budget_raises(self, max_chars: int, overlap: int) -> None:
        with pytest.raises(ConfigurationError):
            split_text("some text", max_chars, overlap)

    def test_constructor_validates(self) -> None:
        with pytest.raises(ConfigurationError):
            TextChunker(max_chars=200, overlap_chars=200)

    def test_invalid_budget_raises_even_for_empty_text(self) -> None:
        with pytest.raises(ConfigurationError):
            split_text("", 10, 20)


class TestTextChunker:
    def test_empty_and_whitespace_yield_nothing(self, chunker: TextChunker) -> None:
        assert chunker.split("") == []
        assert chunker.split("   \n\n  ") == []

    def test_chunk_metadata_and_indices(self, chunker: TextChunker) -> None:
        doc = _document(_FOX)
        chunks = chunker.chunk(doc)

        assert [c.chunk_index for c in chunks] == [0, 1, 2, 3]
        assert all(c.total_chunks == 4 for c in chunks)
        assert all(c.metadata.category == "pos_integration" for c in chunks)
        assert all(c.content_hash == doc.content_hash for c in chunks)

    def test_deterministic(self, chunker: TextChunker) -> None:
        doc = _document(_FOX)

        first = [(c.chunk_id, c.text) for c in chunker.chunk(doc)]
        second = [(c.chunk_id, c.text) for c in chunker.chunk(doc)]

        assert first == second

    def test_chunk_ids_stable_per_source_and_index(self, chunker: TextChunker) -> None:
        a = chunker.chunk(_document(_FOX, source="a.md"))
        b = chunker.chunk(_document(_FOX, source="b.md"))

        assert len({c.chunk_id for c in a}) == 4
        assert {c.chunk_id for c in a}.isdisjoint({c.chunk_id for c in b})

    def test_flat_metadata_is_scalar(self, chunker: TextChunker) -> None:
        chunk = chunker.chunk(_document("Short note about tips."))[0]
        flat = chunk.flat_metadata()

        assert flat["category"] == "pos_integration"
        assert flat["chunk_index"] == 0
        assert flat["total_chunks"] == 1
        assert "timestamp" not in flat
        assert all(isinstance(v, (str, int, float, bool)) for v in flat.values())
