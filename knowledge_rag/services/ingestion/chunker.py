"""Character-budget text chunking with overlapping windows.

The text is first cut into consecutive, non-overlapping *segments* of at
most ``max_chars - overlap_chars`` characters.  Each cut prefers, in order:

1. a paragraph break (blank line),
2. a sentence end (abbreviation-aware, so "Dr." or "approx." never cut),
3. any whitespace,
4. a hard character cut when the window holds none of the above.

Every chunk after the first is then prefixed with up to ``overlap_chars``
characters of the text just before its segment, starting on a word
boundary where possible.  A chunk is therefore never longer than
``max_chars``, and joining the segments (each chunk minus its overlap
prefix) gives back the input exactly.
"""

from __future__ import annotations

import re
from typing import NamedTuple

import structlog

from knowledge_rag.models.ingestion import Chunk, Document
from knowledge_rag.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

# Periods after these never end a sentence.
_ABBREVIATIONS = (
    "Dr", "Mr", "Mrs", "Ms", "Prof", "Jr", "Sr", "St", "Ave", "Blvd", "Vol",
    "No", "vs", "etc", "approx", "dept", "est", "govt", "inc", "ltd", "co",
    "ft", "e.g", "i.e",
)
_ABBREVIATION_DOT = re.compile(
    r"\b(" + "|".join(re.escape(a) for a in _ABBREVIATIONS) + r")\."
)
_SENTENCE_END = re.compile(r"[.!?][\"')\]]*\s")


class ChunkWindow(NamedTuple):
    """Offsets of one chunk: ``text[start:end]``, overlap is ``text[start:body_start]``."""

    start: int
    body_start: int
    end: int


def _validate(max_chars: int, overlap_chars: int) -> None:
    if max_chars <= 0:
        raise ConfigurationError(message=f"max_chars must be positive, got {max_chars}")
    if overlap_chars < 0:
        raise ConfigurationError(message=f"overlap_chars must not be negative, got {overlap_chars}")
    if overlap_chars >= max_chars:
        raise ConfigurationError(
            message=f"overlap_chars ({overlap_chars}) must be smaller than max_chars ({max_chars})"
        )


def _mask_abbreviations(text: str) -> str:
    """Replace abbreviation periods with NUL; lengths (and offsets) are unchanged."""
    return _ABBREVIATION_DOT.sub(lambda m: m.group(0)[:-1] + "\x00", text)


def _find_cut(text: str, masked: str, lo: int, hi: int) -> int:
    """Best cut position in ``(lo, hi]`` for a segment starting at *lo*."""
    # Boundaries in the back half of the window first, so segments stay full.
    for floor in (lo + (hi - lo) // 2, lo + 1):
        para = text.rfind("\n\n", floor, hi)
        if para != -1 and para + 2 > lo:
            return para + 2

        sentence_cut = -1
        for match in _SENTENCE_END.finditer(masked, floor, hi):
            sentence_cut = match.end()
        if sentence_cut > lo:
            return sentence_cut

        for i in range(hi - 1, floor - 1, -1):
            if text[i].isspace():
                return i + 1
    return hi


def _overlap_start(text: str, body_start: int, overlap_chars: int) -> int:
    """Start of the overlap prefix: just after the first whitespace in range."""
    lo = max(0, body_start - overlap_chars)
    for i in range(lo, body_start):
        if text[i].isspace():
            return i + 1 if i + 1 < body_start else lo
    return lo


def chunk_windows(text: str, max_chars: int, overlap_chars: int) -> list[ChunkWindow]:
    """Compute chunk offsets for *text*; see module docstring for the policy."""
    _validate(max_chars, overlap_chars)
    if not text or not text.strip():
        return []

    stride = max_chars - overlap_chars
    masked = _mask_abbreviations(text)
    length = len(text)

    windows: list[ChunkWindow] = []
    body_start = 0
    while body_start < length:
        if length - body_start <= stride:
            end = length
        else:
            end = _find_cut(text, masked, body_start, body_start + stride)
        start = _overlap_start(text, body_start, overlap_chars) if body_start and overlap_chars else body_start
        windows.append(ChunkWindow(start, body_start, end))
        body_start = end
    return windows


def split_text(text: str, max_chars: int, overlap_chars: int) -> list[str]:
    """Split *text* into overlapping chunks of at most *max_chars* characters.

    Raises
    ------
    ConfigurationError
        ``overlap_chars >= max_chars``, a negative overlap, or a
        non-positive budget.  Raised before any text is examined.
    """
    return [text[w.start : w.end] for w in chunk_windows(text, max_chars, overlap_chars)]


class TextChunker:
    """Turns Documents into Chunks with a fixed character budget.

    Parameters
    ----------
    max_chars:
        Maximum characters per chunk (default 1000).
    overlap_chars:
        Characters shared between consecutive chunks (default 200).
        Must be smaller than *max_chars*.
    """

    def __init__(self, max_chars: int = 1000, overlap_chars: int = 200) -> None:
        _validate(max_chars, overlap_chars)
        self._max_chars = max_chars
        self._overlap_chars = overlap_chars

    @property
    def max_chars(self) -> int:
        return self._max_chars

    @property
    def overlap_chars(self) -> int:
        return self._overlap_chars

    def windows(self, text: str) -> list[ChunkWindow]:
        return chunk_windows(text, self._max_chars, self._overlap_chars)

    def split(self, text: str) -> list[str]:
        return split_text(text, self._max_chars, self._overlap_chars)

    def chunk(self, document: Document) -> list[Chunk]:
        """Split *document* into Chunks indexed in split order."""
        texts = self.split(document.text)
        total = len(texts)
        content_hash = document.content_hash
        chunks = [
            Chunk(
                text=chunk_text,
                metadata=document.metadata,
                chunk_index=index,
                total_chunks=total,
                content_hash=content_hash,
            )
            for index, chunk_text in enumerate(texts)
        ]
        logger.debug(
            "chunking_complete",
            source=document.metadata.source,
            num_chunks=total,
            chars=len(document.text),
        )
        return chunks
