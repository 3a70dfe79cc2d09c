"""Typer CLI entrypoint for the evaluation service."""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Optional

import pendulum
import structlog
import typer
import yaml
from pydantic import ValidationError

from . import __version__
from .config import ConfigManager
from .container import create_container
from .errors import ExtractionFailed, QueueFull
from .logging import configure_logging
from .schemas import ContextCategory, Document, DocumentKind
from .schemas.config import load_config

app = typer.Typer(help="Retrieval-augmented CV and project report evaluation CLI.")


def _read_yaml(path: Path, param_name: str) -> Any:
    with path.open("r", encoding="utf-8") as handle:
        loaded = yaml.safe_load(handle)
    if loaded is None:
        raise typer.BadParameter("File is empty", param_hint=param_name)
    return loaded


def _load_submissions(path: Path) -> list[dict[str, str]]:
    submissions: list[dict[str, str]] = []
    with path.open("r", encoding="utf-8") as handle:
        for idx, line in enumerate(handle, start=1):
            raw = line.strip()
            if not raw:
                continue
            try:
                record = json.loads(raw)
            except json.JSONDecodeError as exc:
                raise typer.BadParameter(f"line {idx}: invalid JSON ({exc})", param_hint="submissions") from exc
            missing = [key for key in ("title", "cv", "project_report") if not record.get(key)]
            if missing:
                raise typer.BadParameter(f"line {idx}: missing {', '.join(missing)}", param_hint="submissions")
            submissions.append(record)
    return submissions


def _validate_corpus(entries: list[Any]) -> list[dict[str, Any]]:
    categories = [category.value for category in ContextCategory]
    for idx, entry in enumerate(entries, start=1):
        if not isinstance(entry, dict):
            raise typer.BadParameter(f"entry {idx}: expected a mapping", param_hint="corpus")
        missing = [key for key in ("path", "category") if not entry.get(key)]
        if missing:
            raise typer.BadParameter(f"entry {idx}: missing {', '.join(missing)}", param_hint="corpus")
        if entry["category"] not in categories:
            raise typer.BadParameter(
                f"entry {idx}: unknown category {entry['category']!r} (expected one of {', '.join(categories)})",
                param_hint="corpus",
            )
    return entries


def _resolve(base: Path, value: str) -> Path:
    path = Path(value)
    return path if path.is_absolute() else base / path


@app.command()
def evaluate(
    submissions: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Submissions JSONL path."),
    corpus: Path = typer.Option(..., exists=True, readable=True, dir_okay=False, help="Context corpus YAML path."),
    output: Path = typer.Option(..., dir_okay=False, resolve_path=True, help="Output JSON path."),
    config: Optional[Path] = typer.Option(None, exists=True, readable=True, dir_okay=False, help="YAML config path."),
    log_level: Optional[str] = typer.Option(None, help="Log level for structured logging."),
    audit_log: Optional[Path] = typer.Option(None, dir_okay=False, help="Job transition audit log (JSONL)."),
    llm_endpoint: Optional[str] = typer.Option(None, help="LLM completion API endpoint."),
    llm_api_key: Optional[str] = typer.Option(None, help="LLM completion API key."),
) -> None:
    """Ingest the context corpus, evaluate every submission and write the status reports."""
    raw_settings: dict[str, Any] = {}
    if config:
        try:
            raw_settings = ConfigManager(config.parent).load(config.name)
        except ValueError as exc:
            raise typer.BadParameter(str(exc), param_hint="config") from exc
    if llm_endpoint or llm_api_key:
        llm_settings = dict(raw_settings.get("llm") or {})
        if llm_endpoint:
            llm_settings["endpoint"] = llm_endpoint
        if llm_api_key:
            llm_settings["api_key"] = llm_api_key
        raw_settings["llm"] = llm_settings
    try:
        app_config = load_config(raw_settings)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc
    if not app_config.llm.endpoint:
        raise typer.BadParameter("An LLM endpoint is required (--llm-endpoint or llm.endpoint)", param_hint="llm_endpoint")

    configure_logging(log_level or app_config.logging.level)
    logger = structlog.get_logger(__name__)

    container = create_container(settings=app_config, audit_path=audit_log)

    corpus_entries = _read_yaml(corpus, "corpus")
    if not isinstance(corpus_entries, list):
        raise typer.BadParameter("Corpus file must be a YAML list", param_hint="corpus")
    ingestor = container.ingestor()
    for idx, entry in enumerate(_validate_corpus(corpus_entries), start=1):
        try:
            ingestor.ingest(
                _resolve(corpus.parent, entry["path"]),
                entry["category"],
                source=entry.get("source"),
                version=entry.get("version"),
                description=entry.get("description"),
            )
        except ExtractionFailed as exc:
            raise typer.BadParameter(f"entry {idx}: {exc}", param_hint="corpus") from exc

    documents = container.document_store()
    service = container.service()
    queue = container.job_queue()

    records = _load_submissions(submissions)
    queue.start()
    job_ids: list[str] = []
    try:
        for record in records:
            cv = Document.from_path(_resolve(submissions.parent, record["cv"]), DocumentKind.CV)
            report = Document.from_path(
                _resolve(submissions.parent, record["project_report"]), DocumentKind.PROJECT_REPORT
            )
            documents.create(cv)
            documents.create(report)
            job = service.create_job(record["title"], cv.id, report.id)
            while True:
                try:
                    service.enqueue(job)
                    break
                except QueueFull:
                    logger.warning("cli.enqueue_retry", job_id=job.id)
            job_ids.append(job.id)

        rounds = math.ceil(len(job_ids) / queue.worker_count) + 1
        reports = service.wait_for(job_ids, timeout=rounds * app_config.pipeline.job_timeout_seconds)
    finally:
        queue.stop()

    payload = {
        "metadata": {
            "job_count": len(job_ids),
            "timestamp": pendulum.now().to_iso8601_string(),
            "app_version": __version__,
        },
        "results": [report.to_payload() for report in reports],
    }
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")

    completed = sum(1 for report in reports if report.status.value == "completed")
    typer.echo(f"Evaluated {len(job_ids)} submissions ({completed} completed). Results saved to {output}.")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
