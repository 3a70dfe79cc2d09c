"""Prompt builders for the LLM scorer."""

from __future__ import annotations

from typing import Sequence

from .schemas import ReferenceEvaluation, SubjectEvaluation


def _join(context: Sequence[str]) -> str:
    return "\n".join(context) if context else "(no context retrieved)"


def subject_prompt(cv_text: str, requirement_context: Sequence[str], rubric_context: Sequence[str]) -> str:
    return f"""
You are an expert technical recruiter.

TASK: Evaluate the candidate CV against the provided job requirements and scoring rubric.

JOB REQUIREMENTS:
{_join(requirement_context)}

CV SCORING RUBRIC:
{_join(rubric_context)}

CANDIDATE CV:
{cv_text}

EVALUATION CRITERIA (1-5 scale):
1. Technical skills match (weight 40%)
2. Experience level (weight 25%)
3. Relevant achievements (weight 20%)
4. Cultural fit (weight 15%)

REQUIRED OUTPUT (JSON format):
{{
  "match_rate": <0.00-1.00>,
  "feedback": "<3-5 sentences: strengths, skill gaps, recommendations>"
}}

RULES:
- Score each criterion 1-5 according to the rubric
- Calculate the weighted average and convert it to a decimal between 0 and 1
- OUTPUT ONLY JSON, no additional text"""


def reference_prompt(report_text: str, brief_context: Sequence[str], rubric_context: Sequence[str]) -> str:
    return f"""
You are a senior backend engineer reviewing a technical case study submission.

TASK: Evaluate the project report against the case study brief and scoring rubric.

CASE STUDY BRIEF:
{_join(brief_context)}

PROJECT SCORING RUBRIC:
{_join(rubric_context)}

PROJECT REPORT:
{report_text}

EVALUATION CRITERIA (1-5 scale):
1. Correctness (weight 30%)
2. Code quality (weight 25%)
3. Resilience (weight 20%)
4. Documentation (weight 15%)
5. Creativity (weight 10%)

REQUIRED OUTPUT (JSON format):
{{
  "score": <1.0-5.0>,
  "feedback": "<3-5 sentences: best aspects, technical gaps, improvement suggestions>"
}}

RULES:
- Score each criterion 1-5 according to the rubric
- Calculate the weighted average for the final score
- OUTPUT ONLY JSON, no additional text"""


def summary_prompt(subject: SubjectEvaluation, reference: ReferenceEvaluation) -> str:
    return f"""
You are a senior engineering hiring manager synthesizing candidate evaluation results.

CV EVALUATION RESULTS:
- Match rate: {subject.match_rate:.2f} (0-1 scale)
- Feedback: {subject.feedback}

PROJECT EVALUATION RESULTS:
- Overall score: {reference.score:.1f} (1-5 scale)
- Feedback: {reference.feedback}

REQUIRED OUTPUT (JSON format):
{{
  "overall_summary": "<3-5 sentences: holistic assessment, key strengths, gaps, hiring recommendation>"
}}

RULES:
- Balance technical skills (CV) with practical execution (project)
- Give a clear recommendation (strong hire / hire / maybe / pass)
- OUTPUT ONLY JSON, no additional text"""
