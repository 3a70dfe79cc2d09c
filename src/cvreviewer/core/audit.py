"""Append-only audit trail of job status transitions."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any

from ..schemas import EvaluationJob


class JobAuditLog:
    """Append-only audit logger writing JSON lines, safe to share across workers."""

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def record(self, job: EvaluationJob, **extra: Any) -> None:
        entry = {
            "job_id": job.id,
            "status": job.status.value,
            "error_message": job.error_message,
            "at": job.updated_at.isoformat(),
        }
        entry.update(extra)
        line = json.dumps(entry, ensure_ascii=False, default=str)
        with self._lock, self._path.open("a", encoding="utf-8") as handle:
            handle.write(line)
            handle.write("\n")

    def read(self) -> list[dict[str, Any]]:
        if not self._path.exists():
            return []
        with self._lock:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        return [json.loads(line) for line in lines if line.strip()]
