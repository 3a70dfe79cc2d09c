"""Evaluation job lifecycle model."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

import pendulum
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..errors import InvalidTransition


def utcnow() -> datetime:
    return pendulum.now("UTC")


class JobStatus(str, enum.Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_STARTED_STATUSES = {JobStatus.PROCESSING, JobStatus.COMPLETED, JobStatus.FAILED}

ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.PROCESSING}),
    JobStatus.PROCESSING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class EvaluationJob(BaseModel):
    """One evaluation request spanning a CV and a project report.

    Status changes go through the ``mark_*`` methods, which enforce the
    ``queued -> processing -> completed | failed`` lifecycle and keep the
    timestamp fields consistent with the status.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    title: str
    subject_id: str
    reference_id: str
    status: JobStatus = JobStatus.QUEUED
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid")

    @model_validator(mode="after")
    def _check_lifecycle_fields(self) -> "EvaluationJob":
        if (self.started_at is not None) != (self.status in _STARTED_STATUSES):
            raise ValueError(f"started_at must be set only once processing began (status={self.status.value})")
        if (self.completed_at is not None) != self.status.is_terminal:
            raise ValueError(f"completed_at must be set only for terminal jobs (status={self.status.value})")
        if (self.error_message is not None) != (self.status is JobStatus.FAILED):
            raise ValueError(f"error_message must be set only for failed jobs (status={self.status.value})")
        return self

    def mark_processing(self) -> None:
        self._transition(JobStatus.PROCESSING)
        self.started_at = self.updated_at

    def mark_completed(self) -> None:
        self._transition(JobStatus.COMPLETED)
        self.completed_at = self.updated_at

    def mark_failed(self, message: str) -> None:
        self._transition(JobStatus.FAILED)
        self.error_message = message.strip() or "evaluation failed"
        self.completed_at = self.updated_at

    def _transition(self, target: JobStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"job {self.id} cannot move from {self.status.value} to {target.value}"
            )
        self.status = target
        self.updated_at = utcnow()

    def ticket(self) -> "JobTicket":
        return JobTicket(
            job_id=self.id,
            title=self.title,
            subject_id=self.subject_id,
            reference_id=self.reference_id,
        )


@dataclass(frozen=True, slots=True)
class JobTicket:
    """Immutable job snapshot handed from the submission path to workers."""

    job_id: str
    title: str
    subject_id: str
    reference_id: str
