"""Error taxonomy for the evaluation pipeline."""

from __future__ import annotations


class EvaluationError(Exception):
    """Base class for every error raised by the evaluation system.

    ``step`` names the pipeline step that raised the error, when known. It is
    rendered as a prefix so the persisted job error message says where the
    run broke.
    """

    code = "evaluation_error"

    def __init__(self, message: str = "", *, step: str | None = None) -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__
        self.step = step

    def with_step(self, step: str) -> "EvaluationError":
        if self.step is None:
            self.step = step
        return self

    def __str__(self) -> str:
        if self.step:
            return f"{self.step}: {self.message}"
        return self.message


class QueueFull(EvaluationError):
    """Raised when the job buffer stays saturated past the enqueue timeout."""

    code = "queue_full"


class QueueClosed(EvaluationError):
    """Raised when enqueueing into a stopped queue."""

    code = "queue_closed"


class JobNotFound(EvaluationError, LookupError):
    code = "job_not_found"


class DocumentNotFound(EvaluationError, LookupError):
    code = "document_not_found"


class ResultNotFound(EvaluationError, LookupError):
    code = "result_not_found"


class InvalidTransition(EvaluationError):
    """Raised when a job status change is not allowed by the lifecycle."""

    code = "invalid_transition"


class ExtractionFailed(EvaluationError):
    code = "extraction_failed"


class RetrievalFailed(EvaluationError):
    code = "retrieval_failed"


class ScoringFailed(EvaluationError):
    code = "scoring_failed"


class InvalidScore(EvaluationError):
    """Raised for malformed or out-of-range scorer output."""

    code = "invalid_score"


class SynthesisFailed(EvaluationError):
    code = "synthesis_failed"


class JobTimeout(EvaluationError):
    """Raised when a pipeline run passes its deadline."""

    code = "timeout"


class PersistenceFailed(EvaluationError):
    """Raised when a store write fails, after retries where they apply."""

    code = "persistence_failed"


__all__ = [
    "EvaluationError",
    "QueueFull",
    "QueueClosed",
    "JobNotFound",
    "DocumentNotFound",
    "ResultNotFound",
    "InvalidTransition",
    "ExtractionFailed",
    "RetrievalFailed",
    "ScoringFailed",
    "InvalidScore",
    "SynthesisFailed",
    "JobTimeout",
    "PersistenceFailed",
]
