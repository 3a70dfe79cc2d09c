"""Pydantic schema definitions for jobs, results and documents."""

from __future__ import annotations

from .document import ContextCategory, ContextFragment, Document, DocumentKind, FragmentMetadata
from .job import EvaluationJob, JobStatus, JobTicket
from .result import EvaluationResult, JobStatusReport, ReferenceEvaluation, SubjectEvaluation

__all__ = [
    "ContextCategory",
    "ContextFragment",
    "Document",
    "DocumentKind",
    "FragmentMetadata",
    "EvaluationJob",
    "JobStatus",
    "JobTicket",
    "EvaluationResult",
    "JobStatusReport",
    "ReferenceEvaluation",
    "SubjectEvaluation",
]
