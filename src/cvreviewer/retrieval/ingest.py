"""Ingestion of reference material into the context retriever."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import structlog

from ..errors import ExtractionFailed
from ..pdf_utils import extract_text
from ..schemas import ContextCategory, FragmentMetadata
from .chunking import chunk_by_sentence
from .tfidf import TfidfContextRetriever


class ContextIngestor:
    """Chunk job descriptions, case briefs and rubrics into the retriever."""

    def __init__(
        self,
        retriever: TfidfContextRetriever,
        *,
        chunk_size: int = 1000,
        pdf_reader: Callable[[Path], str] = extract_text,
    ) -> None:
        self._retriever = retriever
        self._chunk_size = chunk_size
        self._pdf_reader = pdf_reader
        self._logger = structlog.get_logger(__name__)

    def ingest(
        self,
        path: str | Path,
        category: ContextCategory | str,
        *,
        source: str | None = None,
        version: str | None = None,
        description: str | None = None,
        extra: dict[str, str] | None = None,
    ) -> int:
        """Ingest a PDF or plain-text file and return the number of fragments stored.

        Near-duplicate chunks already indexed under the same category are skipped.
        """
        path = Path(path)
        if path.suffix.lower() == ".pdf":
            text = self._pdf_reader(path)
        else:
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as exc:
                raise ExtractionFailed(f"failed to read {path}: {exc}") from exc
        return self.ingest_text(
            text,
            category,
            source=source or path.stem,
            version=version,
            description=description,
            extra=extra,
        )

    def ingest_text(
        self,
        text: str,
        category: ContextCategory | str,
        *,
        source: str | None = None,
        version: str | None = None,
        description: str | None = None,
        extra: dict[str, str] | None = None,
    ) -> int:
        category = ContextCategory(category)
        chunks = chunk_by_sentence(text, self._chunk_size)
        if not chunks:
            raise ExtractionFailed(f"no text to ingest for category {category.value}")

        stored = 0
        for chunk in chunks:
            stored += self._retriever.add(
                chunk.content,
                FragmentMetadata(
                    category=category,
                    source=source,
                    version=version,
                    description=description,
                    chunk_index=chunk.index,
                    chunk_length=len(chunk.content),
                    extra=dict(extra or {}),
                ),
            )

        self._logger.info(
            "context.ingested",
            category=category.value,
            source=source,
            chunks=len(chunks),
            stored=stored,
        )
        return stored
