"""Store implementations."""

from .memory import InMemoryDocumentStore, InMemoryJobStore, InMemoryResultStore

__all__ = ["InMemoryDocumentStore", "InMemoryJobStore", "InMemoryResultStore"]
