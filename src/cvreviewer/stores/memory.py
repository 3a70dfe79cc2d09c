"""Thread-safe in-memory stores.

Every read and write copies the model so that no two workers ever share a
mutable instance; the lock serializes concurrent writes to the same row.
"""

from __future__ import annotations

import threading

from ..errors import DocumentNotFound, InvalidTransition, JobNotFound, PersistenceFailed, ResultNotFound
from ..schemas import Document, EvaluationJob, EvaluationResult, JobStatus


class InMemoryJobStore:
    def __init__(self) -> None:
        self._rows: dict[str, EvaluationJob] = {}
        self._lock = threading.Lock()

    def create(self, job: EvaluationJob) -> None:
        with self._lock:
            if job.id in self._rows:
                raise PersistenceFailed(f"evaluation job {job.id} already exists")
            self._rows[job.id] = job.model_copy(deep=True)

    def find_by_id(self, job_id: str) -> EvaluationJob:
        with self._lock:
            try:
                return self._rows[job_id].model_copy(deep=True)
            except KeyError:
                raise JobNotFound(f"evaluation job not found: {job_id}") from None

    def update(self, job: EvaluationJob, *, expected: JobStatus | None = None) -> None:
        with self._lock:
            current = self._rows.get(job.id)
            if current is None:
                raise JobNotFound(f"evaluation job not found: {job.id}")
            if expected is not None and current.status is not expected:
                raise InvalidTransition(
                    f"evaluation job {job.id} is {current.status.value}, expected {expected.value}"
                )
            self._rows[job.id] = job.model_copy(deep=True)

    def find_pending(self, limit: int) -> list[EvaluationJob]:
        with self._lock:
            pending = [job for job in self._rows.values() if job.status is JobStatus.QUEUED]
        pending.sort(key=lambda job: job.created_at)
        return [job.model_copy(deep=True) for job in pending[:limit]]

    def all(self) -> list[EvaluationJob]:
        with self._lock:
            return [job.model_copy(deep=True) for job in self._rows.values()]


class InMemoryResultStore:
    def __init__(self) -> None:
        self._rows: dict[str, EvaluationResult] = {}
        self._lock = threading.Lock()

    def create(self, result: EvaluationResult) -> None:
        with self._lock:
            if result.job_id in self._rows:
                raise PersistenceFailed(f"evaluation result for job {result.job_id} already exists")
            self._rows[result.job_id] = result

    def find_by_job_id(self, job_id: str) -> EvaluationResult:
        with self._lock:
            try:
                return self._rows[job_id]
            except KeyError:
                raise ResultNotFound(f"evaluation result not found for job: {job_id}") from None

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)


class InMemoryDocumentStore:
    def __init__(self) -> None:
        self._rows: dict[str, Document] = {}
        self._lock = threading.Lock()

    def create(self, document: Document) -> None:
        with self._lock:
            self._rows[document.id] = document.model_copy(deep=True)

    def find_by_id(self, document_id: str) -> Document:
        with self._lock:
            try:
                return self._rows[document_id].model_copy(deep=True)
            except KeyError:
                raise DocumentNotFound(f"document not found: {document_id}") from None
