"""Plain-text extraction from uploaded PDF documents."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Sequence

import pymupdf4llm

from .errors import ExtractionFailed
from .schemas import Document

_PAGE_COUNTER_PATTERNS: tuple[str, ...] = (
    r"^\s*\d+\s*/\s*\d+\s*$",
    r"^\s*page\s+\d+(?:\s+of\s+\d+)?\s*$",
)


def extract_text(
    pdf_path: str | Path,
    *,
    exclude_patterns: Sequence[str] | None = None,
) -> str:
    """Return normalized text extracted from a PDF.

    Parameters
    ----------
    pdf_path:
        Path to the source PDF file.
    exclude_patterns:
        Optional regular expressions; any line matching one of them is dropped.
        Defaults to page-counter lines such as ``3 / 10`` or ``Page 2 of 5``.

    Lines are stripped and blank lines removed. Raises ``ExtractionFailed``
    when the file is missing, unreadable or yields no text.
    """

    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        raise ExtractionFailed(f"file not found: {pdf_path}")

    try:
        markdown = pymupdf4llm.to_markdown(str(pdf_path))
    except Exception as exc:
        raise ExtractionFailed(f"failed to open pdf {pdf_path.name}: {exc}") from exc

    patterns = _build_patterns(exclude_patterns if exclude_patterns is not None else _PAGE_COUNTER_PATTERNS)

    cleaned_lines: list[str] = []
    for line in markdown.splitlines():
        line = line.strip()
        if not line:
            continue
        if any(pattern.search(line) for pattern in patterns):
            continue
        cleaned_lines.append(line)

    text = "\n".join(cleaned_lines)
    if not text:
        raise ExtractionFailed(f"no text content found in pdf {pdf_path.name}")
    return text


def _build_patterns(excludes: Iterable[str]) -> list[re.Pattern[str]]:
    return [re.compile(pattern, re.IGNORECASE) for pattern in excludes]


class PdfTextExtractor:
    """Text extractor backed by :func:`extract_text`."""

    def __init__(self, *, exclude_patterns: Sequence[str] | None = None) -> None:
        self._exclude_patterns = exclude_patterns

    def extract_text(self, document: Document, *, timeout: float | None = None) -> str:
        # pymupdf4llm is local and synchronous; the timeout is not applicable
        return extract_text(document.file_path, exclude_patterns=self._exclude_patterns)


__all__ = ["PdfTextExtractor", "extract_text"]
