"""HTTP client scoring documents through an LLM completion endpoint."""

from __future__ import annotations

import json
from typing import Any, Sequence, TypeVar
from urllib import error, request

import structlog
from pydantic import BaseModel, ValidationError

from .errors import EvaluationError, InvalidScore, ScoringFailed, SynthesisFailed
from .prompts import reference_prompt, subject_prompt, summary_prompt
from .schemas import ReferenceEvaluation, SubjectEvaluation

M = TypeVar("M", bound=BaseModel)


def clean_json_response(response: str) -> str:
    """Strip markdown code fences that models wrap around JSON output."""
    return response.replace("```json", "").replace("```", "").strip()


class _SummaryPayload(BaseModel):
    overall_summary: str


class HTTPScorer:
    """Scorer posting prompts to a JSON completion API.

    The endpoint receives ``{"model", "prompt", "temperature"}`` and must
    answer with ``{"text": "<model output>"}``.
    """

    def __init__(
        self,
        endpoint: str,
        api_key: str | None = None,
        *,
        model: str = "gemini-2.5-flash",
        temperature: float = 0.2,
        timeout: float = 60.0,
    ) -> None:
        if not endpoint:
            raise ValueError("HTTPScorer requires an endpoint")
        self._endpoint = endpoint
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._timeout = timeout
        self._logger = structlog.get_logger(__name__)

    def score_subject(
        self,
        text: str,
        requirement_context: Sequence[str],
        rubric_context: Sequence[str],
        *,
        timeout: float | None = None,
    ) -> SubjectEvaluation:
        raw = self._generate(subject_prompt(text, requirement_context, rubric_context), timeout)
        return self._parse(raw, SubjectEvaluation, InvalidScore, "cv evaluation")

    def score_reference(
        self,
        text: str,
        brief_context: Sequence[str],
        rubric_context: Sequence[str],
        *,
        timeout: float | None = None,
    ) -> ReferenceEvaluation:
        raw = self._generate(reference_prompt(text, brief_context, rubric_context), timeout)
        return self._parse(raw, ReferenceEvaluation, InvalidScore, "project evaluation")

    def synthesize(
        self,
        subject: SubjectEvaluation,
        reference: ReferenceEvaluation,
        *,
        timeout: float | None = None,
    ) -> str:
        raw = self._generate(summary_prompt(subject, reference), timeout)
        payload = self._parse(raw, _SummaryPayload, SynthesisFailed, "final summary")
        return payload.overall_summary.strip()

    def _generate(self, prompt: str, timeout: float | None) -> str:
        effective_timeout = self._timeout if timeout is None else min(self._timeout, timeout)
        data = json.dumps(
            {"model": self._model, "prompt": prompt, "temperature": self._temperature},
            ensure_ascii=False,
        ).encode("utf-8")
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        req = request.Request(self._endpoint, data=data, headers=headers, method="POST")
        try:
            with request.urlopen(req, timeout=effective_timeout) as resp:
                body = resp.read().decode("utf-8")
        except (error.URLError, TimeoutError, OSError) as exc:
            self._logger.warning("llm.request_failed", error=str(exc))
            raise ScoringFailed(f"llm request failed: {exc}") from exc

        try:
            decoded: Any = json.loads(body) if body else {}
        except json.JSONDecodeError as exc:
            raise ScoringFailed(f"llm returned a non-JSON envelope: {exc}") from exc
        text = decoded.get("text") if isinstance(decoded, dict) else None
        if not text:
            raise ScoringFailed("llm returned an empty response")
        return text

    @staticmethod
    def _parse(raw: str, model: type[M], error_cls: type[EvaluationError], label: str) -> M:
        cleaned = clean_json_response(raw)
        try:
            return model.model_validate_json(cleaned)
        except ValidationError as exc:
            raise error_cls(f"failed to parse {label}: {exc.errors()[0]['msg']} (response: {cleaned[:200]})") from exc


__all__ = ["HTTPScorer", "clean_json_response"]
