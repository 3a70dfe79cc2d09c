"""Pydantic configuration schema for YAML input."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PositiveFloat, PositiveInt, ValidationError


class QueueConfig(BaseModel):
    worker_count: PositiveInt = 3
    capacity: PositiveInt = 100
    enqueue_timeout_seconds: PositiveFloat = 5.0

    model_config = ConfigDict(extra="forbid")


class PipelineConfig(BaseModel):
    job_timeout_seconds: PositiveFloat = 300.0
    persist_retries: PositiveInt = 2
    persist_backoff_seconds: float = Field(default=0.05, ge=0.0)

    model_config = ConfigDict(extra="forbid")


class RetrievalConfig(BaseModel):
    query_char_limit: PositiveInt = 500
    requirement_top_k: PositiveInt = 5
    subject_rubric_top_k: PositiveInt = 3
    brief_top_k: PositiveInt = 5
    reference_rubric_top_k: PositiveInt = 3
    subject_rubric_query: str = "CV evaluation scoring criteria"
    reference_rubric_query: str = "Project evaluation scoring criteria"
    chunk_size: PositiveInt = 1000

    model_config = ConfigDict(extra="forbid")


class LLMConfig(BaseModel):
    endpoint: str | None = None
    api_key: str | None = None
    model: str = "gemini-2.5-flash"
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)
    timeout_seconds: PositiveFloat = 60.0

    model_config = ConfigDict(extra="forbid")


class LoggingConfig(BaseModel):
    level: str = "INFO"


class AppConfig(BaseModel):
    queue: QueueConfig = Field(default_factory=QueueConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def to_settings(self) -> dict[str, Any]:
        return self.model_dump(mode="python")


def load_config(raw: Any) -> AppConfig:
    if raw is None:
        return AppConfig()
    if not isinstance(raw, dict):
        raise ValidationError.from_exception_data(
            "AppConfig",
            [{"type": "dict_type", "loc": ("config",), "input": raw}],
        )
    return AppConfig.model_validate(raw)
