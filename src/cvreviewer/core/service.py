"""Submission gate and status queries for evaluation jobs."""

from __future__ import annotations

import time
from typing import Iterable

import structlog

from ..errors import DocumentNotFound, QueueFull, ResultNotFound
from ..schemas import EvaluationJob, JobStatus, JobStatusReport
from .interfaces import DocumentStore, JobStore, ResultStore
from .job_queue import JobQueue


class EvaluationService:
    """Create, submit and inspect evaluation jobs."""

    def __init__(
        self,
        *,
        jobs: JobStore,
        results: ResultStore,
        documents: DocumentStore,
        queue: JobQueue | None = None,
    ) -> None:
        self._jobs = jobs
        self._results = results
        self._documents = documents
        self._queue = queue
        self._logger = structlog.get_logger(__name__)

    def create_job(self, title: str, subject_id: str, reference_id: str) -> EvaluationJob:
        """Validate the referenced documents and persist a queued job."""
        if not title or not title.strip():
            raise ValueError("title is required")
        for label, document_id in (("cv", subject_id), ("project report", reference_id)):
            try:
                self._documents.find_by_id(document_id)
            except DocumentNotFound as exc:
                raise DocumentNotFound(f"{label} document not found: {document_id}") from exc

        job = EvaluationJob(title=title.strip(), subject_id=subject_id, reference_id=reference_id)
        self._jobs.create(job)
        self._logger.info("job.created", job_id=job.id, title=job.title)
        return job

    def submit(self, title: str, subject_id: str, reference_id: str) -> EvaluationJob:
        """Create a job and hand it to the queue.

        ``QueueFull`` propagates to the caller; the job stays queued in the
        store so :meth:`resume_pending` can pick it up later.
        """
        job = self.create_job(title, subject_id, reference_id)
        self.enqueue(job)
        return job

    def enqueue(self, job: EvaluationJob) -> None:
        """Hand an already created job to the queue; ``QueueFull`` propagates."""
        self._require_queue().enqueue(job.ticket())

    def get_status(self, job_id: str) -> JobStatusReport:
        job = self._jobs.find_by_id(job_id)
        report = JobStatusReport(job_id=job.id, status=job.status)
        if job.status is JobStatus.FAILED:
            report.error_message = job.error_message
        elif job.status is JobStatus.COMPLETED:
            try:
                report.result = self._results.find_by_job_id(job.id)
            except ResultNotFound:
                self._logger.error("job.result_missing", job_id=job.id)
        return report

    def resume_pending(self, limit: int = 100) -> int:
        """Re-enqueue queued jobs left over from an earlier run.

        Call this on a freshly started queue, before new submissions are
        accepted: a job that is already buffered would otherwise be handed
        out twice.
        """
        queue = self._require_queue()
        enqueued = 0
        for job in self._jobs.find_pending(limit):
            try:
                queue.enqueue(job.ticket())
            except QueueFull:
                self._logger.warning("job.resume_deferred", job_id=job.id, enqueued=enqueued)
                break
            enqueued += 1
        if enqueued:
            self._logger.info("job.resumed", count=enqueued)
        return enqueued

    def wait_for(
        self,
        job_ids: Iterable[str],
        *,
        timeout: float,
        poll_interval: float = 0.05,
    ) -> list[JobStatusReport]:
        """Poll until every job is terminal or ``timeout`` seconds pass."""
        job_ids = list(job_ids)
        deadline = time.monotonic() + timeout
        while True:
            reports = [self.get_status(job_id) for job_id in job_ids]
            if all(report.status.is_terminal for report in reports) or time.monotonic() >= deadline:
                return reports
            time.sleep(poll_interval)

    def _require_queue(self) -> JobQueue:
        if self._queue is None:
            raise RuntimeError("EvaluationService has no job queue configured")
        return self._queue


__all__ = ["EvaluationService"]
