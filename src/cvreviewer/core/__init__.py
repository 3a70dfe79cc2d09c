"""Core evaluation engine components."""

from __future__ import annotations

# NOTE: keep imports explicit for export clarity.
from .audit import JobAuditLog
from .interfaces import (
    ContextRetriever,
    DocumentStore,
    JobProcessor,
    JobStore,
    ResultStore,
    Scorer,
    TextExtractor,
)
from .job_queue import BoundedBuffer, JobQueue
from .pipeline import Deadline, EvaluationPipeline
from .service import EvaluationService
from .text import truncate_text

__all__ = [
    "BoundedBuffer",
    "ContextRetriever",
    "Deadline",
    "DocumentStore",
    "EvaluationPipeline",
    "EvaluationService",
    "JobAuditLog",
    "JobProcessor",
    "JobQueue",
    "JobStore",
    "ResultStore",
    "Scorer",
    "TextExtractor",
    "truncate_text",
]
