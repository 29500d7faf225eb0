"""Format extractors: raw payload in, normalized text out.

One pure function per declared type.  :func:`extract` dispatches on the
declared type, normalizes the result, and converts any parser failure
into an :class:`ExtractionError` carrying the unit id so the connector can
skip that unit and keep going.

PDF parsing uses PyMuPDF (``fitz``), HTML main-content detection uses
trafilatura with a BeautifulSoup fallback, DOCX uses python-docx.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any, Callable

import fitz  # PyMuPDF
import structlog
import trafilatura
from bs4 import BeautifulSoup

from knowledge_rag.utils.errors import ExtractionError
from knowledge_rag.utils.text import normalize_text

logger = structlog.get_logger(logger_name=__name__)

# bytes or str from a fetch, or an already-decoded JSON value from an API response.
Payload = Any


def _as_text(payload: Payload) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    if isinstance(payload, str):
        return payload
    return str(payload)


def _as_bytes(payload: Payload) -> bytes:
    if isinstance(payload, bytes):
        return payload
    return _as_text(payload).encode("utf-8")


# ---------------------------------------------------------------------------
# Per-format extractors
# ---------------------------------------------------------------------------

def extract_plain(payload: Payload) -> str:
    """Passthrough: decode bytes as UTF-8, replacing invalid sequences."""
    return _as_text(payload)


def extract_json(payload: Payload) -> str:
    """Re-serialize JSON with indentation so its structure stays readable."""
    if isinstance(payload, (dict, list)):
        data = payload
    else:
        data = json.loads(_as_text(payload))
    return json.dumps(data, indent=2, ensure_ascii=False)


def extract_csv(payload: Payload) -> str:
    """Render each row as ``key: value`` lines; rows separated by a blank line."""
    reader = csv.DictReader(io.StringIO(_as_text(payload)))
    rows: list[str] = []
    for row in reader:
        lines = [
            f"{key}: {value if value is not None else ''}"
            for key, value in row.items()
            if key is not None
        ]
        rows.append("\n".join(lines))
    return "\n\n".join(rows)


def extract_html(payload: Payload) -> str:
    """Main article text via trafilatura, else the page's full visible text."""
    html = _as_text(payload)
    text = trafilatura.extract(html, include_comments=False, include_tables=True)
    if text and text.strip():
        return text

    logger.debug("html_readability_empty_fallback")
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    root = soup.body or soup
    return root.get_text(separator="\n", strip=True)


def extract_pdf(payload: Payload) -> str:
    """Concatenate page text in order, one blank line between pages."""
    pages: list[str] = []
    with fitz.open(stream=_as_bytes(payload), filetype="pdf") as doc:
        for page in doc:
            text = page.get_text("text").strip()
            if text:
                pages.append(text)
    return "\n\n".join(pages)


def extract_docx(payload: Payload) -> str:
    """Paragraph text via python-docx; degrades to raw decoded text on failure."""
    from docx import Document as DocxDocument

    try:
        doc = DocxDocument(io.BytesIO(_as_bytes(payload)))
    except Exception as exc:  # noqa: BLE001
        logger.warning("docx_fallback_raw_text", error=str(exc))
        return _as_text(payload)
    return "\n\n".join(para.text for para in doc.paragraphs if para.text.strip())


EXTRACTORS: dict[str, Callable[[Payload], str]] = {
    "plain": extract_plain,
    "text": extract_plain,
    "txt": extract_plain,
    "md": extract_plain,
    "markdown": extract_plain,
    "json": extract_json,
    "csv": extract_csv,
    "html": extract_html,
    "htm": extract_html,
    "pdf": extract_pdf,
    "docx": extract_docx,
}

# Types fetched as bytes rather than decoded text.
BINARY_TYPES = frozenset({"pdf", "docx"})


def resolve_type(declared_type: str | None) -> str:
    """Map a declared type (extension, MIME-ish label) onto an extractor key."""
    if not declared_type:
        return "plain"
    key = declared_type.lower().lstrip(".")
    if "/" in key:  # e.g. application/pdf, text/html
        key = key.rsplit("/", 1)[-1]
    return key if key in EXTRACTORS else "plain"


def extract(payload: Payload, declared_type: str | None, unit_id: str) -> str:
    """Extract normalized text from *payload* according to *declared_type*.

    Raises
    ------
    ExtractionError
        The payload could not be parsed as the declared type.
    """
    kind = resolve_type(declared_type)
    try:
        text = EXTRACTORS[kind](payload)
    except Exception as exc:
        raise ExtractionError(
            message=f"Failed to extract {kind} content from {unit_id}: {exc}",
            unit_id=unit_id,
        ) from exc
    return normalize_text(text)
