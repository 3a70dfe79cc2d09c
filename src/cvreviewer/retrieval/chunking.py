"""Sentence-window chunking for context documents."""

from __future__ import annotations

import re
from dataclasses import dataclass

_SENTENCE_PATTERN = re.compile(r"[^.!?]+[.!?]?")

SENTENCE_OVERLAP = 1


@dataclass(slots=True)
class TextChunk:
    content: str
    index: int


def split_sentences(text: str) -> list[str]:
    flattened = text.replace("\n", " ")
    return [match.strip() for match in _SENTENCE_PATTERN.findall(flattened) if match.strip()]


def chunk_by_sentence(text: str, max_chunk_size: int = 1000) -> list[TextChunk]:
    """Pack whole sentences into chunks of roughly ``max_chunk_size`` characters.

    Consecutive chunks share their boundary sentence so context is not lost at
    the cut. A single sentence longer than the limit becomes its own chunk.
    """
    if max_chunk_size <= 0:
        max_chunk_size = 1000

    chunks: list[TextChunk] = []
    current: list[str] = []
    current_length = 0

    for sentence in split_sentences(text):
        if current and current_length + len(sentence) + 1 > max_chunk_size:
            chunks.append(TextChunk(content=" ".join(current), index=len(chunks)))
            current = current[-SENTENCE_OVERLAP:]
            current_length = len(" ".join(current))
        if current:
            current_length += 1
        current.append(sentence)
        current_length += len(sentence)

    if current:
        chunks.append(TextChunk(content=" ".join(current), index=len(chunks)))

    return chunks


__all__ = ["TextChunk", "chunk_by_sentence", "split_sentences"]
