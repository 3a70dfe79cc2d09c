"""Context retriever using lightweight TF-IDF cosine similarity."""

from __future__ import annotations

import math
import re
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from rapidfuzz import fuzz

from ..schemas import ContextCategory, ContextFragment, FragmentMetadata

_TOKEN_PATTERN = re.compile(r"[^\W_]+")


@dataclass
class TfidfRetrieverConfig:
    """Configuration for the TF-IDF retriever."""

    synonyms: dict[str, list[str]] = field(default_factory=dict)
    duplicate_threshold: float = 98.0
    stopwords: frozenset[str] = frozenset(
        {"a", "an", "and", "the", "of", "to", "in", "for", "on", "with", "is", "are", "be", "or"}
    )


@dataclass(slots=True)
class _IndexedFragment:
    content: str
    tokens: list[str]
    metadata: FragmentMetadata


class TfidfContextRetriever:
    """In-process nearest-neighbour search over ingested context fragments.

    Fragments are partitioned by category. Each search computes IDF weights
    over the category's fragments plus the query, then ranks fragments by
    cosine similarity. Ties keep insertion order.
    """

    def __init__(self, *, config: TfidfRetrieverConfig | None = None) -> None:
        self._config = config or TfidfRetrieverConfig()
        self._index: dict[ContextCategory, list[_IndexedFragment]] = {}
        self._lock = threading.Lock()

    def add(self, content: str, metadata: FragmentMetadata) -> bool:
        """Index a fragment; returns False for blank or near-duplicate content."""
        content = content.strip()
        if not content:
            return False
        entry = _IndexedFragment(
            content=content,
            tokens=self._tokenize(self._augment_text(content)),
            metadata=metadata,
        )
        with self._lock:
            entries = self._index.setdefault(metadata.category, [])
            if any(self._is_duplicate(content, existing.content) for existing in entries):
                return False
            entries.append(entry)
        return True

    def count(self, category: ContextCategory) -> int:
        with self._lock:
            return len(self._index.get(category, []))

    def delete_category(self, category: ContextCategory) -> int:
        with self._lock:
            removed = self._index.pop(category, [])
        return len(removed)

    def search_similar(
        self,
        query: str,
        category: ContextCategory,
        top_k: int,
        *,
        timeout: float | None = None,
    ) -> list[ContextFragment]:
        if top_k < 1:
            raise ValueError("top_k must be a positive integer")
        with self._lock:
            entries = list(self._index.get(ContextCategory(category), []))
        if not entries:
            return []

        query_tokens = self._tokenize(self._augment_text(query))
        idf = self._compute_idf([entry.tokens for entry in entries] + [query_tokens])
        query_vector = self._tfidf_vector(query_tokens, idf)

        scored = [
            (self._cosine_similarity(query_vector, self._tfidf_vector(entry.tokens, idf)), position, entry)
            for position, entry in enumerate(entries)
        ]
        scored.sort(key=lambda item: (-item[0], item[1]))

        return [
            ContextFragment(
                content=entry.content,
                category=entry.metadata.category,
                similarity=round(similarity, 4),
                metadata=entry.metadata,
            )
            for similarity, _, entry in scored[:top_k]
        ]

    def _is_duplicate(self, content: str, existing: str) -> bool:
        return fuzz.ratio(content, existing) >= self._config.duplicate_threshold

    def _tfidf_vector(self, tokens: list[str], idf: dict[str, float]) -> dict[str, float]:
        if not tokens:
            return {}
        tf = Counter(tokens)
        total = sum(tf.values())
        vector: dict[str, float] = {}
        for token, count in tf.items():
            weight = (count / total) * idf.get(token, 0.0)
            if weight > 0:
                vector[token] = weight
        return vector

    def _compute_idf(self, documents: Iterable[list[str]]) -> dict[str, float]:
        doc_freq: dict[str, int] = {}
        total_docs = 0
        for tokens in documents:
            if not tokens:
                continue
            total_docs += 1
            for token in set(tokens):
                doc_freq[token] = doc_freq.get(token, 0) + 1
        return {
            token: math.log((1 + total_docs) / (1 + freq)) + 1
            for token, freq in doc_freq.items()
        }

    def _cosine_similarity(self, vec_a: dict[str, float], vec_b: dict[str, float]) -> float:
        if not vec_a or not vec_b:
            return 0.0
        dot = sum(value * vec_b.get(token, 0.0) for token, value in vec_a.items())
        if dot == 0:
            return 0.0
        norm_a = math.sqrt(sum(value * value for value in vec_a.values()))
        norm_b = math.sqrt(sum(value * value for value in vec_b.values()))
        if norm_a == 0 or norm_b == 0:
            return 0.0
        return dot / (norm_a * norm_b)

    def _tokenize(self, text: str) -> list[str]:
        stopwords = self._config.stopwords
        return [token for token in _TOKEN_PATTERN.findall(text.lower()) if token not in stopwords]

    def _augment_text(self, text: str) -> str:
        synonyms = self._config.synonyms
        if not synonyms:
            return text
        extras: list[str] = []
        for token in _TOKEN_PATTERN.findall(text.lower()):
            extras.extend(synonyms.get(token, []))
        if extras:
            return text + " " + " ".join(sorted(set(extras)))
        return text


__all__ = ["TfidfContextRetriever", "TfidfRetrieverConfig"]
