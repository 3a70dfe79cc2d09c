from __future__ import annotations

import pytest
from structlog.testing import capture_logs

from conftest import FakeExtractor, FakeRetriever, FakeScorer, FlakyJobStore

from cvreviewer.core import JobAuditLog
from cvreviewer.errors import (
    ExtractionFailed,
    InvalidScore,
    JobNotFound,
    JobTimeout,
    PersistenceFailed,
    ResultNotFound,
    RetrievalFailed,
    ScoringFailed,
    SynthesisFailed,
)
from cvreviewer.schemas import ContextCategory, JobStatus
from cvreviewer.schemas.config import PipelineConfig
from cvreviewer.stores import InMemoryJobStore, InMemoryResultStore


def test_pipeline_completes_backend_engineer_job(make_env) -> None:
    env = make_env()
    job = env.create_job("Backend Engineer")

    result = env.pipeline.process(job.ticket())

    stored = env.jobs.find_by_id(job.id)
    assert stored.status is JobStatus.COMPLETED
    assert stored.error_message is None
    assert stored.started_at is not None
    assert stored.completed_at is not None
    assert stored.started_at <= stored.completed_at

    saved = env.results.find_by_job_id(job.id)
    assert saved == result
    assert saved.match_rate == 0.8
    assert saved.score == 4.0
    assert saved.overall_summary == "Strong backend candidate; recommend hire."
    assert saved.subject_feedback == "Solid CV."
    assert saved.reference_feedback == "Clean project."

    payload = env.service.get_status(job.id).to_payload()
    assert payload["status"] == "completed"
    assert payload["result"]["match_rate"] == 0.8
    assert payload["result"]["score"] == 4.0


def test_extraction_failure_marks_job_failed_without_result(make_env) -> None:
    env = make_env()
    env.extractor.texts[env.cv.id] = RuntimeError("corrupt pdf stream")
    job = env.create_job()

    with pytest.raises(ExtractionFailed):
        env.pipeline.process(job.ticket())

    stored = env.jobs.find_by_id(job.id)
    assert stored.status is JobStatus.FAILED
    assert stored.error_message == "extract_subject: corrupt pdf stream"
    assert stored.completed_at is not None
    with pytest.raises(ResultNotFound):
        env.results.find_by_job_id(job.id)
    assert env.retriever.calls == []


def test_blank_extraction_is_a_failure(make_env) -> None:
    env = make_env()
    env.extractor.texts[env.report.id] = "   \n"
    job = env.create_job()

    with pytest.raises(ExtractionFailed):
        env.pipeline.process(job.ticket())

    stored = env.jobs.find_by_id(job.id)
    assert stored.status is JobStatus.FAILED
    assert stored.error_message.startswith("extract_reference: no text content found")


def test_missing_document_at_processing_time_fails_extraction(make_env) -> None:
    env = make_env()
    job = env.create_job()
    env.documents._rows.pop(env.report.id)

    with pytest.raises(ExtractionFailed):
        env.pipeline.process(job.ticket())

    assert env.jobs.find_by_id(job.id).status is JobStatus.FAILED


def test_out_of_range_match_rate_is_rejected(make_env) -> None:
    env = make_env(scorer=FakeScorer(match_rate=1.5))
    job = env.create_job()

    with pytest.raises(InvalidScore):
        env.pipeline.process(job.ticket())

    stored = env.jobs.find_by_id(job.id)
    assert stored.status is JobStatus.FAILED
    assert "match_rate" in stored.error_message
    assert len(env.results) == 0


def test_boundary_match_rate_proceeds(make_env) -> None:
    env = make_env(scorer=FakeScorer(match_rate=0.73))
    job = env.create_job()

    result = env.pipeline.process(job.ticket())

    assert result.match_rate == 0.73
    assert env.jobs.find_by_id(job.id).status is JobStatus.COMPLETED


@pytest.mark.parametrize("score", [0.5, 5.5, float("nan"), None, True, "4"])
def test_invalid_project_score_is_rejected(make_env, score) -> None:
    env = make_env(scorer=FakeScorer(score=score))
    job = env.create_job()

    with pytest.raises(InvalidScore):
        env.pipeline.process(job.ticket())

    stored = env.jobs.find_by_id(job.id)
    assert stored.status is JobStatus.FAILED
    assert stored.error_message.startswith("score_reference:")


@pytest.mark.parametrize("score", [1, 5, 3.5])
def test_project_score_bounds_are_inclusive(make_env, score) -> None:
    env = make_env(scorer=FakeScorer(score=score))
    job = env.create_job()

    result = env.pipeline.process(job.ticket())

    assert result.score == float(score)


def test_retrieval_failure_fails_job(make_env) -> None:
    env = make_env(retriever=FakeRetriever(fail_on=ContextCategory.BRIEF))
    job = env.create_job()

    with pytest.raises(RetrievalFailed):
        env.pipeline.process(job.ticket())

    stored = env.jobs.find_by_id(job.id)
    assert stored.status is JobStatus.FAILED
    assert stored.error_message == "retrieve_brief: vector store unavailable"
    assert env.scorer.subject_calls == []


def test_scorer_failure_is_wrapped(make_env) -> None:
    env = make_env(scorer=FakeScorer(fail_with=ValueError("quota exhausted")))
    job = env.create_job()

    with pytest.raises(ScoringFailed):
        env.pipeline.process(job.ticket())

    assert env.jobs.find_by_id(job.id).error_message == "score_subject: quota exhausted"


def test_empty_summary_fails_synthesis(make_env) -> None:
    env = make_env(scorer=FakeScorer(summary="  "))
    job = env.create_job()

    with pytest.raises(SynthesisFailed):
        env.pipeline.process(job.ticket())

    assert env.jobs.find_by_id(job.id).status is JobStatus.FAILED


def test_retrieval_queries_and_depths(make_env) -> None:
    env = make_env()
    env.extractor.texts[env.cv.id] = "c" * 800
    env.extractor.texts[env.report.id] = "r" * 900
    job = env.create_job("Backend Engineer")

    env.pipeline.process(job.ticket())

    assert env.retriever.calls == [
        ("Backend Engineer " + "c" * 500, ContextCategory.REQUIREMENT, 5),
        ("CV evaluation scoring criteria", ContextCategory.SUBJECT_RUBRIC, 3),
        ("r" * 500, ContextCategory.BRIEF, 5),
        ("Project evaluation scoring criteria", ContextCategory.REFERENCE_RUBRIC, 3),
    ]
    text, requirement, rubric = env.scorer.subject_calls[0]
    assert text == "c" * 800
    assert requirement == [f"requirement fragment {index}" for index in range(5)]
    assert rubric == [f"subject_rubric fragment {index}" for index in range(3)]


def test_empty_retrieval_is_not_an_error(make_env) -> None:
    class EmptyRetriever(FakeRetriever):
        def search_similar(self, query, category, top_k, *, timeout=None):
            super().search_similar(query, category, top_k, timeout=timeout)
            return []

    env = make_env(retriever=EmptyRetriever())
    job = env.create_job()

    env.pipeline.process(job.ticket())

    assert env.jobs.find_by_id(job.id).status is JobStatus.COMPLETED
    assert env.scorer.subject_calls[0][1:] == ([], [])


def test_collaborators_receive_remaining_budget(make_env) -> None:
    env = make_env(pipeline_config=PipelineConfig(job_timeout_seconds=120, persist_backoff_seconds=0))
    env.extractor.on_call = lambda: env.clock.advance(10)
    job = env.create_job()

    env.pipeline.process(job.ticket())

    assert env.scorer.timeouts == [100.0]


def test_slow_step_times_out_job(make_env) -> None:
    env = make_env(pipeline_config=PipelineConfig(job_timeout_seconds=30, persist_backoff_seconds=0))
    env.extractor.on_call = lambda: env.clock.advance(31)
    job = env.create_job()

    with pytest.raises(JobTimeout):
        env.pipeline.process(job.ticket())

    stored = env.jobs.find_by_id(job.id)
    assert stored.status is JobStatus.FAILED
    assert stored.error_message == "extract_reference: job exceeded its 30s processing timeout"
    assert env.extractor.calls == [env.cv.id]
    assert len(env.results) == 0


def test_status_write_is_retried(make_env) -> None:
    jobs = FlakyJobStore(failures=2)
    env = make_env(jobs=jobs)
    job = env.create_job()

    env.pipeline.process(job.ticket())

    assert jobs.update_attempts == 4
    assert env.jobs.find_by_id(job.id).status is JobStatus.COMPLETED


def test_exhausted_retries_leave_job_queued(make_env) -> None:
    jobs = FlakyJobStore(failures=3)
    env = make_env(jobs=jobs)
    job = env.create_job()

    with pytest.raises(PersistenceFailed) as excinfo:
        env.pipeline.process(job.ticket())

    assert excinfo.value.step == "persist_status"
    assert jobs.update_attempts == 3
    assert env.jobs.find_by_id(job.id).status is JobStatus.QUEUED
    assert env.extractor.calls == []


def test_result_write_failure_fails_job(make_env) -> None:
    class BrokenResultStore(InMemoryResultStore):
        def create(self, result) -> None:
            raise OSError("disk full")

    env = make_env(results=BrokenResultStore())
    job = env.create_job()

    with pytest.raises(PersistenceFailed):
        env.pipeline.process(job.ticket())

    stored = env.jobs.find_by_id(job.id)
    assert stored.status is JobStatus.FAILED
    assert stored.error_message == "persist_result: failed to save evaluation result: disk full"


def test_terminal_jobs_are_skipped(make_env) -> None:
    env = make_env()
    job = env.create_job()
    env.pipeline.process(job.ticket())

    assert env.pipeline.process(job.ticket()) is None
    assert env.extractor.calls == [env.cv.id, env.report.id]


def test_unknown_job_raises_not_found(make_env) -> None:
    env = make_env()
    job = env.create_job()
    env.jobs._rows.clear()

    with pytest.raises(JobNotFound):
        env.pipeline.process(job.ticket())


def test_audit_log_records_each_transition(make_env, tmp_path) -> None:
    audit = JobAuditLog(tmp_path / "audit" / "jobs.jsonl")
    env = make_env(audit_log=audit)
    ok = env.create_job("Backend Engineer")
    env.pipeline.process(ok.ticket())

    env.extractor.texts[env.cv.id] = ExtractionFailed("unreadable")
    bad = env.create_job("Data Engineer")
    with pytest.raises(ExtractionFailed):
        env.pipeline.process(bad.ticket())

    entries = audit.read()
    assert [(entry["job_id"], entry["status"]) for entry in entries] == [
        (ok.id, "processing"),
        (ok.id, "completed"),
        (bad.id, "processing"),
        (bad.id, "failed"),
    ]
    assert entries[-1]["error_message"] == "extract_subject: unreadable"


def test_extractor_error_keeps_its_own_type(make_env) -> None:
    env = make_env(extractor=FakeExtractor())
    env.extractor.texts[env.cv.id] = JobTimeout("stalled")
    job = env.create_job()

    with pytest.raises(JobTimeout) as excinfo:
        env.pipeline.process(job.ticket())

    assert excinfo.value.step == "extract_subject"


def test_exhausted_terminal_write_keeps_saved_result(make_env) -> None:
    jobs = FlakyJobStore(failures=3, healthy_writes=1)
    env = make_env(jobs=jobs)
    job = env.create_job()

    with capture_logs() as logs:
        with pytest.raises(PersistenceFailed) as excinfo:
            env.pipeline.process(job.ticket())

    assert excinfo.value.step == "persist_status"
    assert jobs.update_attempts == 4
    assert env.jobs.find_by_id(job.id).status is JobStatus.PROCESSING
    assert env.results.find_by_job_id(job.id).match_rate == 0.8
    stuck = [entry for entry in logs if entry["event"] == "job.stuck"]
    assert len(stuck) == 1
    assert stuck[0]["status"] == "completed"
    assert stuck[0]["log_level"] == "error"


def test_audit_log_failure_does_not_block_the_job(make_env) -> None:
    class BrokenAuditLog:
        def __init__(self) -> None:
            self.calls = 0

        def record(self, job) -> None:
            self.calls += 1
            raise OSError("audit disk full")

    audit = BrokenAuditLog()
    env = make_env(audit_log=audit)
    job = env.create_job()

    with capture_logs() as logs:
        result = env.pipeline.process(job.ticket())

    assert result is not None
    assert env.jobs.find_by_id(job.id).status is JobStatus.COMPLETED
    assert env.results.find_by_job_id(job.id) == result
    assert env.extractor.calls == [env.cv.id, env.report.id]
    assert audit.calls == 2
    warnings = [entry for entry in logs if entry["event"] == "job.audit_failed"]
    assert [entry["status"] for entry in warnings] == ["processing", "completed"]
    assert warnings[0]["error"] == "audit disk full"


def test_stale_ticket_loses_the_claim(make_env) -> None:
    class StaleReadJobStore(InMemoryJobStore):
        """Serves the job as it was when created, like a lagging replica."""

        def __init__(self) -> None:
            super().__init__()
            self.snapshots = {}

        def create(self, job) -> None:
            super().create(job)
            self.snapshots[job.id] = job.model_copy(deep=True)

        def find_by_id(self, job_id):
            return self.snapshots[job_id].model_copy(deep=True)

    jobs = StaleReadJobStore()
    env = make_env(jobs=jobs)
    job = env.create_job()
    first = env.pipeline.process(job.ticket())

    second = env.pipeline.process(job.ticket())

    assert first is not None
    assert second is None
    assert env.extractor.calls == [env.cv.id, env.report.id]
    assert jobs.all()[0].status is JobStatus.COMPLETED
    assert len(env.results) == 1
