from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator

import pytest

from cvreviewer.core import EvaluationPipeline, EvaluationService, JobQueue
from cvreviewer.schemas import (
    ContextCategory,
    ContextFragment,
    Document,
    DocumentKind,
    ReferenceEvaluation,
    SubjectEvaluation,
)
from cvreviewer.schemas.config import PipelineConfig, RetrievalConfig
from cvreviewer.stores import InMemoryDocumentStore, InMemoryJobStore, InMemoryResultStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeExtractor:
    def __init__(self, texts: dict[str, Any] | None = None, *, on_call: Callable[[], None] | None = None):
        self.texts = texts or {}
        self.on_call = on_call
        self.calls: list[str] = []

    def extract_text(self, document: Document, *, timeout: float | None = None) -> str:
        self.calls.append(document.id)
        if self.on_call:
            self.on_call()
        value = self.texts.get(document.id, f"text of {document.filename}")
        if isinstance(value, Exception):
            raise value
        return value


class FakeRetriever:
    def __init__(self, *, fail_on: ContextCategory | None = None):
        self.fail_on = fail_on
        self.calls: list[tuple[str, ContextCategory, int]] = []

    def search_similar(
        self,
        query: str,
        category: ContextCategory,
        top_k: int,
        *,
        timeout: float | None = None,
    ) -> list[ContextFragment]:
        self.calls.append((query, category, top_k))
        if category == self.fail_on:
            raise ConnectionError("vector store unavailable")
        return [
            ContextFragment(content=f"{category.value} fragment {index}", category=category)
            for index in range(top_k)
        ]


@dataclass
class FakeScorer:
    match_rate: Any = 0.8
    score: Any = 4.0
    summary: str = "Strong backend candidate; recommend hire."
    delay: float = 0.0
    fail_with: Exception | None = None
    subject_calls: list[tuple[str, list[str], list[str]]] = field(default_factory=list)
    timeouts: list[float | None] = field(default_factory=list)

    def score_subject(self, text, requirement_context, rubric_context, *, timeout=None) -> SubjectEvaluation:
        self.subject_calls.append((text, list(requirement_context), list(rubric_context)))
        self.timeouts.append(timeout)
        if self.delay:
            time.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with
        return SubjectEvaluation.model_construct(match_rate=self.match_rate, feedback="Solid CV.")

    def score_reference(self, text, brief_context, rubric_context, *, timeout=None) -> ReferenceEvaluation:
        return ReferenceEvaluation.model_construct(score=self.score, feedback="Clean project.")

    def synthesize(self, subject, reference, *, timeout=None) -> str:
        return self.summary


class FlakyJobStore(InMemoryJobStore):
    """Job store whose ``update`` fails a fixed number of times.

    The first ``healthy_writes`` updates go through before the failures start.
    """

    def __init__(self, failures: int, *, healthy_writes: int = 0) -> None:
        super().__init__()
        self.failures = failures
        self.healthy_writes = healthy_writes
        self.update_attempts = 0

    def update(self, job, *, expected=None) -> None:
        self.update_attempts += 1
        if self.healthy_writes > 0:
            self.healthy_writes -= 1
        elif self.failures > 0:
            self.failures -= 1
            raise OSError("database connection reset")
        super().update(job, expected=expected)


class BlockingProcessor:
    """Processor that holds each job until released."""

    def __init__(self) -> None:
        self.release = threading.Event()
        self.started: list[str] = []
        self.finished: list[str] = []
        self._lock = threading.Lock()
        self.started_event = threading.Condition(self._lock)

    def process(self, ticket) -> None:
        with self._lock:
            self.started.append(ticket.job_id)
            self.started_event.notify_all()
        self.release.wait(timeout=5)
        with self._lock:
            self.finished.append(ticket.job_id)

    def wait_started(self, count: int, timeout: float = 5.0) -> bool:
        with self._lock:
            return self.started_event.wait_for(lambda: len(self.started) >= count, timeout=timeout)


@dataclass
class Environment:
    jobs: InMemoryJobStore
    results: InMemoryResultStore
    documents: InMemoryDocumentStore
    extractor: FakeExtractor
    retriever: FakeRetriever
    scorer: FakeScorer
    pipeline: EvaluationPipeline
    service: EvaluationService
    clock: FakeClock
    cv: Document
    report: Document

    def create_job(self, title: str = "Backend Engineer"):
        return self.service.create_job(title, self.cv.id, self.report.id)


@pytest.fixture
def make_env() -> Callable[..., Environment]:
    def factory(
        *,
        jobs: InMemoryJobStore | None = None,
        results: InMemoryResultStore | None = None,
        extractor: FakeExtractor | None = None,
        retriever: FakeRetriever | None = None,
        scorer: FakeScorer | None = None,
        pipeline_config: PipelineConfig | None = None,
        retrieval_config: RetrievalConfig | None = None,
        queue: JobQueue | None = None,
        audit_log=None,
    ) -> Environment:
        jobs = jobs or InMemoryJobStore()
        results = results if results is not None else InMemoryResultStore()
        documents = InMemoryDocumentStore()
        cv = Document(kind=DocumentKind.CV, filename="cv.pdf", file_path="/uploads/cv/cv.pdf")
        report = Document(kind=DocumentKind.PROJECT_REPORT, filename="report.pdf", file_path="/uploads/report.pdf")
        documents.create(cv)
        documents.create(report)
        clock = FakeClock()
        extractor = extractor or FakeExtractor()
        retriever = retriever or FakeRetriever()
        scorer = scorer or FakeScorer()
        pipeline = EvaluationPipeline(
            jobs=jobs,
            results=results,
            documents=documents,
            extractor=extractor,
            retriever=retriever,
            scorer=scorer,
            pipeline_config=pipeline_config or PipelineConfig(persist_backoff_seconds=0.0),
            retrieval_config=retrieval_config,
            audit_log=audit_log,
            clock=clock,
            sleep=lambda _: None,
        )
        service = EvaluationService(jobs=jobs, results=results, documents=documents, queue=queue)
        return Environment(
            jobs=jobs,
            results=results,
            documents=documents,
            extractor=extractor,
            retriever=retriever,
            scorer=scorer,
            pipeline=pipeline,
            service=service,
            clock=clock,
            cv=cv,
            report=report,
        )

    return factory


@pytest.fixture
def blocking_processor() -> Iterator[BlockingProcessor]:
    processor = BlockingProcessor()
    yield processor
    processor.release.set()
