"""Context corpus chunking, ingestion and similarity search."""

from .chunking import TextChunk, chunk_by_sentence, split_sentences
from .ingest import ContextIngestor
from .tfidf import TfidfContextRetriever, TfidfRetrieverConfig

__all__ = [
    "ContextIngestor",
    "TextChunk",
    "TfidfContextRetriever",
    "TfidfRetrieverConfig",
    "chunk_by_sentence",
    "split_sentences",
]
