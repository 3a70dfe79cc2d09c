"""Uploaded document and retrieved context fragment models."""

from __future__ import annotations

import enum
from datetime import datetime
from pathlib import Path
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from .job import utcnow


class DocumentKind(str, enum.Enum):
    CV = "cv"
    PROJECT_REPORT = "project_report"


class ContextCategory(str, enum.Enum):
    """Partitions of the context corpus."""

    REQUIREMENT = "requirement"
    SUBJECT_RUBRIC = "subject_rubric"
    BRIEF = "brief"
    REFERENCE_RUBRIC = "reference_rubric"


class Document(BaseModel):
    """Handle to a stored candidate document."""

    id: str = Field(default_factory=lambda: str(uuid4()))
    kind: DocumentKind
    filename: str
    file_path: str
    file_size: int = 0
    mime_type: str = "application/pdf"
    created_at: datetime = Field(default_factory=utcnow)

    model_config = ConfigDict(extra="forbid")

    @classmethod
    def from_path(cls, path: str | Path, kind: DocumentKind) -> "Document":
        path = Path(path)
        size = path.stat().st_size if path.exists() else 0
        return cls(kind=kind, filename=path.name, file_path=str(path), file_size=size)


class FragmentMetadata(BaseModel):
    """Chunk provenance. ``extra`` holds free-form annotations only."""

    category: ContextCategory
    source: str | None = None
    version: str | None = None
    description: str | None = None
    chunk_index: int | None = None
    chunk_length: int | None = None
    extra: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")


class ContextFragment(BaseModel):
    """Retrieved text snippet, scoped to one pipeline run."""

    content: str
    category: ContextCategory
    similarity: float = 0.0
    metadata: FragmentMetadata | None = None

    model_config = ConfigDict(extra="forbid")
