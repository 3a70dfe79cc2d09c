"""Evaluation pipeline orchestration."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar

import structlog

from ..errors import (
    EvaluationError,
    ExtractionFailed,
    InvalidScore,
    InvalidTransition,
    JobTimeout,
    PersistenceFailed,
    RetrievalFailed,
    ScoringFailed,
    SynthesisFailed,
)
from ..schemas import (
    ContextCategory,
    Document,
    EvaluationJob,
    EvaluationResult,
    JobStatus,
    JobTicket,
)
from ..schemas.config import PipelineConfig, RetrievalConfig
from .audit import JobAuditLog
from .interfaces import ContextRetriever, DocumentStore, JobStore, ResultStore, Scorer, TextExtractor
from .text import truncate_text

T = TypeVar("T")


class Deadline:
    """Wall-clock budget for one pipeline run, measured from job start."""

    def __init__(self, seconds: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._seconds = seconds
        self._clock = clock
        self._started = clock()

    @property
    def seconds(self) -> float:
        return self._seconds

    def elapsed(self) -> float:
        return self._clock() - self._started

    def remaining(self) -> float:
        return self._seconds - self.elapsed()

    def check(self, step: str) -> float:
        """Return the remaining budget, raising ``JobTimeout`` once it is spent."""
        remaining = self.remaining()
        if remaining <= 0:
            raise JobTimeout(
                f"job exceeded its {self._seconds:g}s processing timeout",
                step=step,
            )
        return remaining


@dataclass(slots=True)
class RetrievedContext:
    requirement: list[str]
    subject_rubric: list[str]
    brief: list[str]
    reference_rubric: list[str]


class EvaluationPipeline:
    """Drive a job through extraction, retrieval, scoring and persistence.

    Each worker calls :meth:`process` with one ticket at a time. Every run
    ends with the job either Completed (result persisted first) or Failed
    (error message persisted), unless the store itself refuses the terminal
    write after retries.
    """

    def __init__(
        self,
        *,
        jobs: JobStore,
        results: ResultStore,
        documents: DocumentStore,
        extractor: TextExtractor,
        retriever: ContextRetriever,
        scorer: Scorer,
        pipeline_config: PipelineConfig | None = None,
        retrieval_config: RetrievalConfig | None = None,
        audit_log: JobAuditLog | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._jobs = jobs
        self._results = results
        self._documents = documents
        self._extractor = extractor
        self._retriever = retriever
        self._scorer = scorer
        self._config = pipeline_config or PipelineConfig()
        self._retrieval = retrieval_config or RetrievalConfig()
        self._audit_log = audit_log
        self._clock = clock
        self._sleep = sleep
        self._logger = structlog.get_logger(__name__)

    def process(self, ticket: JobTicket) -> EvaluationResult | None:
        logger = self._logger.bind(job_id=ticket.job_id)
        job = self._jobs.find_by_id(ticket.job_id)
        if job.status is not JobStatus.QUEUED:
            logger.warning("pipeline.skip", status=job.status.value)
            return None

        deadline = Deadline(self._config.job_timeout_seconds, clock=self._clock)
        job.mark_processing()
        try:
            self._persist(job, logger, terminal=False, expected=JobStatus.QUEUED)
        except InvalidTransition as exc:
            logger.warning("pipeline.skip", reason=exc.message)
            return None
        logger.info("pipeline.started", title=job.title)

        try:
            result = self._evaluate(job, deadline, logger)
        except Exception as exc:
            self._fail(job, exc, logger)
            raise

        job.mark_completed()
        self._persist(job, logger, terminal=True)
        logger.info(
            "pipeline.completed",
            match_rate=result.match_rate,
            score=result.score,
            elapsed=round(deadline.elapsed(), 3),
        )
        return result

    def _evaluate(self, job: EvaluationJob, deadline: Deadline, logger: Any) -> EvaluationResult:
        subject_text = self._extract(job.subject_id, "extract_subject", deadline)
        reference_text = self._extract(job.reference_id, "extract_reference", deadline)
        logger.debug(
            "pipeline.extracted",
            subject_chars=len(subject_text),
            reference_chars=len(reference_text),
        )

        context = self._retrieve(job, subject_text, reference_text, deadline)
        logger.debug(
            "pipeline.retrieved",
            requirement=len(context.requirement),
            subject_rubric=len(context.subject_rubric),
            brief=len(context.brief),
            reference_rubric=len(context.reference_rubric),
        )

        subject_eval = self._call(
            "score_subject",
            ScoringFailed,
            deadline,
            self._scorer.score_subject,
            subject_text,
            context.requirement,
            context.subject_rubric,
        )
        self._check_range(getattr(subject_eval, "match_rate", None), 0.0, 1.0, "match_rate", "score_subject")

        reference_eval = self._call(
            "score_reference",
            ScoringFailed,
            deadline,
            self._scorer.score_reference,
            reference_text,
            context.brief,
            context.reference_rubric,
        )
        self._check_range(getattr(reference_eval, "score", None), 1.0, 5.0, "score", "score_reference")

        summary = self._call(
            "synthesize",
            SynthesisFailed,
            deadline,
            self._scorer.synthesize,
            subject_eval,
            reference_eval,
        )
        if not isinstance(summary, str) or not summary.strip():
            raise SynthesisFailed("scorer returned an empty summary", step="synthesize")

        deadline.check("persist_result")
        result = EvaluationResult(
            job_id=job.id,
            match_rate=float(subject_eval.match_rate),
            subject_feedback=subject_eval.feedback,
            score=float(reference_eval.score),
            reference_feedback=reference_eval.feedback,
            overall_summary=summary.strip(),
        )
        try:
            self._results.create(result)
        except EvaluationError as exc:
            raise exc.with_step("persist_result")
        except Exception as exc:
            raise PersistenceFailed(f"failed to save evaluation result: {exc}", step="persist_result") from exc
        return result

    def _extract(self, document_id: str, step: str, deadline: Deadline) -> str:
        deadline.check(step)
        try:
            document: Document = self._documents.find_by_id(document_id)
        except Exception as exc:
            raise ExtractionFailed(f"document {document_id} unavailable: {exc}", step=step) from exc
        text = self._call(step, ExtractionFailed, deadline, self._extractor.extract_text, document)
        if not text or not text.strip():
            raise ExtractionFailed(f"no text content found in {document.filename}", step=step)
        return text

    def _retrieve(
        self,
        job: EvaluationJob,
        subject_text: str,
        reference_text: str,
        deadline: Deadline,
    ) -> RetrievedContext:
        cfg = self._retrieval
        requirement_query = f"{job.title} {truncate_text(subject_text, cfg.query_char_limit)}"
        brief_query = truncate_text(reference_text, cfg.query_char_limit)
        return RetrievedContext(
            requirement=self._search(
                "retrieve_requirement", deadline, requirement_query, ContextCategory.REQUIREMENT, cfg.requirement_top_k
            ),
            subject_rubric=self._search(
                "retrieve_subject_rubric",
                deadline,
                cfg.subject_rubric_query,
                ContextCategory.SUBJECT_RUBRIC,
                cfg.subject_rubric_top_k,
            ),
            brief=self._search("retrieve_brief", deadline, brief_query, ContextCategory.BRIEF, cfg.brief_top_k),
            reference_rubric=self._search(
                "retrieve_reference_rubric",
                deadline,
                cfg.reference_rubric_query,
                ContextCategory.REFERENCE_RUBRIC,
                cfg.reference_rubric_top_k,
            ),
        )

    def _search(
        self,
        step: str,
        deadline: Deadline,
        query: str,
        category: ContextCategory,
        top_k: int,
    ) -> list[str]:
        fragments = self._call(step, RetrievalFailed, deadline, self._retriever.search_similar, query, category, top_k)
        return [fragment.content for fragment in fragments or []]

    def _call(
        self,
        step: str,
        error_cls: type[EvaluationError],
        deadline: Deadline,
        func: Callable[..., T],
        *args: Any,
    ) -> T:
        timeout = deadline.check(step)
        try:
            return func(*args, timeout=timeout)
        except EvaluationError as exc:
            raise exc.with_step(step)
        except Exception as exc:
            raise error_cls(str(exc) or type(exc).__name__, step=step) from exc

    @staticmethod
    def _check_range(value: Any, low: float, high: float, field: str, step: str) -> None:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidScore(f"{field} is missing or not a number: {value!r}", step=step)
        if not math.isfinite(value) or not low <= value <= high:
            raise InvalidScore(f"invalid {field}: {value} (must be between {low:g} and {high:g})", step=step)

    def _fail(self, job: EvaluationJob, exc: BaseException, logger: Any) -> None:
        message = str(exc) or type(exc).__name__
        job.mark_failed(message)
        logger.warning(
            "pipeline.failed",
            error=message,
            error_type=type(exc).__name__,
            step=getattr(exc, "step", None),
        )
        self._persist(job, logger, terminal=True)

    def _persist(
        self,
        job: EvaluationJob,
        logger: Any,
        *,
        terminal: bool,
        expected: JobStatus | None = None,
    ) -> None:
        attempts = 1 + self._config.persist_retries
        last_error: Exception | None = None
        for attempt in range(1, attempts + 1):
            try:
                self._jobs.update(job, expected=expected)
            except InvalidTransition:
                raise
            except Exception as exc:  # noqa: BLE001
                last_error = exc
                logger.warning(
                    "job.persist_retry",
                    status=job.status.value,
                    attempt=attempt,
                    attempts=attempts,
                    error=str(exc),
                )
                if attempt < attempts:
                    self._sleep(self._config.persist_backoff_seconds * attempt)
                continue
            if self._audit_log is not None:
                try:
                    self._audit_log.record(job)
                except Exception as exc:  # noqa: BLE001
                    logger.warning("job.audit_failed", status=job.status.value, error=str(exc))
            return

        if terminal:
            logger.error("job.stuck", status=job.status.value, error=str(last_error))
        raise PersistenceFailed(
            f"could not persist job {job.id} as {job.status.value} after {attempts} attempts: {last_error}",
            step="persist_status",
        ) from last_error


__all__ = ["Deadline", "EvaluationPipeline", "RetrievedContext"]
