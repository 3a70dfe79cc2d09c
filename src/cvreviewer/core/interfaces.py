"""Collaborator contracts consumed by the evaluation core."""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from ..schemas import (
    ContextCategory,
    ContextFragment,
    Document,
    EvaluationJob,
    EvaluationResult,
    JobStatus,
    JobTicket,
    ReferenceEvaluation,
    SubjectEvaluation,
)


@runtime_checkable
class JobStore(Protocol):
    """Durable storage for evaluation jobs.

    ``find_by_id`` raises ``JobNotFound`` for unknown identifiers. Stores must
    serialize concurrent writes to the same job safely.
    """

    def create(self, job: EvaluationJob) -> None:
        ...

    def find_by_id(self, job_id: str) -> EvaluationJob:
        ...

    def update(self, job: EvaluationJob, *, expected: JobStatus | None = None) -> None:
        """Overwrite the stored job.

        When ``expected`` is given the write only happens if the stored job is
        still in that status; otherwise ``InvalidTransition`` is raised.
        """

    def find_pending(self, limit: int) -> list[EvaluationJob]:
        """Return up to ``limit`` queued jobs, oldest first."""


@runtime_checkable
class ResultStore(Protocol):
    def create(self, result: EvaluationResult) -> None:
        ...

    def find_by_job_id(self, job_id: str) -> EvaluationResult:
        ...


@runtime_checkable
class DocumentStore(Protocol):
    def find_by_id(self, document_id: str) -> Document:
        ...


@runtime_checkable
class TextExtractor(Protocol):
    def extract_text(self, document: Document, *, timeout: float | None = None) -> str:
        """Return normalized plain text or raise when the document is unreadable."""


@runtime_checkable
class ContextRetriever(Protocol):
    def search_similar(
        self,
        query: str,
        category: ContextCategory,
        top_k: int,
        *,
        timeout: float | None = None,
    ) -> list[ContextFragment]:
        """Return the ``top_k`` most similar fragments stored under ``category``."""


@runtime_checkable
class Scorer(Protocol):
    def score_subject(
        self,
        text: str,
        requirement_context: Sequence[str],
        rubric_context: Sequence[str],
        *,
        timeout: float | None = None,
    ) -> SubjectEvaluation:
        ...

    def score_reference(
        self,
        text: str,
        brief_context: Sequence[str],
        rubric_context: Sequence[str],
        *,
        timeout: float | None = None,
    ) -> ReferenceEvaluation:
        ...

    def synthesize(
        self,
        subject: SubjectEvaluation,
        reference: ReferenceEvaluation,
        *,
        timeout: float | None = None,
    ) -> str:
        ...


@runtime_checkable
class JobProcessor(Protocol):
    def process(self, ticket: JobTicket) -> Any:
        ...


__all__ = [
    "JobStore",
    "ResultStore",
    "DocumentStore",
    "TextExtractor",
    "ContextRetriever",
    "Scorer",
    "JobProcessor",
]
