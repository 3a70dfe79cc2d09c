"""Scoring outcome models."""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from .job import JobStatus, utcnow


class SubjectEvaluation(BaseModel):
    """Scorer output for the CV. Range checks happen in the pipeline."""

    match_rate: float
    feedback: str = ""

    model_config = ConfigDict(extra="ignore")


class ReferenceEvaluation(BaseModel):
    """Scorer output for the project report."""

    score: float
    feedback: str = ""

    model_config = ConfigDict(extra="ignore")


class EvaluationResult(BaseModel):
    """Persisted result of a completed job. Written once, never mutated."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    job_id: str
    match_rate: float = Field(ge=0.0, le=1.0)
    subject_feedback: str
    score: float = Field(ge=1.0, le=5.0)
    reference_feedback: str
    overall_summary: str
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid", frozen=True)


class JobStatusReport(BaseModel):
    """User-visible job status. Never exposes partial scores."""

    job_id: str
    status: JobStatus
    error_message: str | None = None
    result: EvaluationResult | None = None

    model_config = ConfigDict(extra="forbid")

    def to_payload(self) -> dict:
        payload: dict = {"id": self.job_id, "status": self.status.value}
        if self.status is JobStatus.FAILED:
            payload["error"] = self.error_message
        if self.status is JobStatus.COMPLETED and self.result is not None:
            payload["result"] = self.result.model_dump(
                mode="json",
                include={
                    "match_rate",
                    "subject_feedback",
                    "score",
                    "reference_feedback",
                    "overall_summary",
                },
            )
        return payload
