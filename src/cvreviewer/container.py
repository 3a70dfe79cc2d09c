"""Dependency injection container for the evaluation service."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from dependency_injector import containers, providers

from .core import EvaluationPipeline, EvaluationService, JobAuditLog, JobQueue
from .llm import HTTPScorer
from .pdf_utils import PdfTextExtractor
from .retrieval import ContextIngestor, TfidfContextRetriever
from .schemas.config import AppConfig, load_config
from .stores import InMemoryDocumentStore, InMemoryJobStore, InMemoryResultStore


class EvaluationContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    app_config = providers.Object(AppConfig())

    job_store = providers.Singleton(InMemoryJobStore)
    result_store = providers.Singleton(InMemoryResultStore)
    document_store = providers.Singleton(InMemoryDocumentStore)

    extractor = providers.Singleton(PdfTextExtractor)
    retriever = providers.Singleton(TfidfContextRetriever)
    ingestor = providers.Singleton(
        ContextIngestor,
        retriever,
        chunk_size=app_config.provided.retrieval.chunk_size,
    )

    scorer = providers.Singleton(
        HTTPScorer,
        endpoint=app_config.provided.llm.endpoint,
        api_key=app_config.provided.llm.api_key,
        model=app_config.provided.llm.model,
        temperature=app_config.provided.llm.temperature,
        timeout=app_config.provided.llm.timeout_seconds,
    )

    audit_log = providers.Object(None)

    pipeline = providers.Singleton(
        EvaluationPipeline,
        jobs=job_store,
        results=result_store,
        documents=document_store,
        extractor=extractor,
        retriever=retriever,
        scorer=scorer,
        pipeline_config=app_config.provided.pipeline,
        retrieval_config=app_config.provided.retrieval,
        audit_log=audit_log,
    )

    job_queue = providers.Singleton(
        JobQueue,
        pipeline,
        worker_count=app_config.provided.queue.worker_count,
        capacity=app_config.provided.queue.capacity,
        enqueue_timeout=app_config.provided.queue.enqueue_timeout_seconds,
    )

    service = providers.Singleton(
        EvaluationService,
        jobs=job_store,
        results=result_store,
        documents=document_store,
        queue=job_queue,
    )


def create_container(
    *,
    settings: dict[str, Any] | AppConfig | None = None,
    scorer: Any | None = None,
    extractor: Any | None = None,
    audit_path: Path | None = None,
) -> EvaluationContainer:
    """Instantiate container with optional overrides."""

    container = EvaluationContainer()

    app_config = settings if isinstance(settings, AppConfig) else load_config(settings)
    container.app_config.override(providers.Object(app_config))

    if scorer is not None:
        container.scorer.override(providers.Object(scorer))

    if extractor is not None:
        container.extractor.override(providers.Object(extractor))

    if audit_path is not None:
        container.audit_log.override(providers.Singleton(JobAuditLog, audit_path))

    return container
