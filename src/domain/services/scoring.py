"""
Scoring collaborator for assessment submissions.

Objective skills (reading, listening) are scored by rule from the answer
counts. Writing is scored by an LLM against a five-criterion rubric. Any
failure or timeout is turned into a ``Degraded`` outcome carrying a
deterministic fallback evaluation, so callers can always tell a genuine
evaluation from a substitution.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Protocol

import structlog
from src.domain.models import CriterionScore, Evaluation
from src.domain.reference_data import (
    CEFR_DESCRIPTORS,
    WRITING_CRITERIA,
    WRITING_CRITERION_MAX,
    WRITING_WORD_TARGETS,
    score_band_feedback,
)
from src.infrastructure.db.models import CefrLevel, ScoringMethod, Skill
from src.libs.llm_client import ChatCompletionClient, LLMClientError, LLMClientProtocol

logger = structlog.get_logger()

MAX_SCORE = 100.0

WRITING_SYSTEM_PROMPT = f"""You are a university-level writing assessment expert for a \
language-learning platform.
Score the learner's text on each of these criteria from 0 to {int(WRITING_CRITERION_MAX)}:
- Coherence and Clarity: logical flow of ideas and clear connections between sentences
- Organization and Structure: introduction, body and conclusion; effective transitions
- Focus and Content Development: addresses the prompt fully with specific details
- Vocabulary and Word Choice: precise, appropriate and varied vocabulary
- Grammar and Conventions: grammar, spelling and punctuation

Judge the text against the expectations of the stated CEFR level.

Respond in JSON format only:
{{
  "criteria": [
    {{"name": "<criterion name>", "score": <number>, "feedback": "<one or two sentences>"}}
  ],
  "overall_feedback": "<a few sentences>",
  "recommendations": ["<actionable tip>", "<actionable tip>", "<actionable tip>"]
}}
"""


class ScoringError(Exception):
    """Raised when a submission cannot be scored automatically."""


@dataclass(slots=True)
class Scored:
    evaluation: Evaluation

    @property
    def degraded(self) -> bool:
        return False


@dataclass(slots=True)
class Degraded:
    evaluation: Evaluation
    reason: str

    @property
    def degraded(self) -> bool:
        return True


ScoringOutcome = Scored | Degraded


class ScoringCollaborator(Protocol):
    async def evaluate(self, skill: Skill, payload: dict[str, Any]) -> Evaluation: ...


class AssessmentScorer:
    """Default scoring collaborator."""

    def __init__(self, llm_client: LLMClientProtocol | None = None) -> None:
        self._llm_client = llm_client

    @property
    def llm_client(self) -> LLMClientProtocol:
        # Built lazily so objective-only deployments never need an API key
        if self._llm_client is None:
            self._llm_client = ChatCompletionClient()
        return self._llm_client

    async def evaluate(self, skill: Skill, payload: dict[str, Any]) -> Evaluation:
        if skill in (Skill.READING, Skill.LISTENING):
            return self._score_objective(payload)
        if skill == Skill.WRITING:
            return await self._score_writing(payload)
        raise ScoringError(f"{skill.value} attempts are scored by a supervisor")

    def _score_objective(self, payload: dict[str, Any]) -> Evaluation:
        correct = payload.get("correct_answers")
        total = payload.get("total_questions")

        if correct is not None and total:
            score = round(float(correct) / float(total) * MAX_SCORE, 1)
            feedback = f"{correct} of {total} answers correct. {score_band_feedback(score)}"
        elif payload.get("score") is not None:
            score = _clamp(float(payload["score"]), 0.0, MAX_SCORE)
            feedback = score_band_feedback(score)
        else:
            raise ScoringError("No answer counts or score provided")

        return Evaluation(score=score, feedback=feedback, method=ScoringMethod.RULE.value)

    async def _score_writing(self, payload: dict[str, Any]) -> Evaluation:
        level = CefrLevel(payload["level"])
        prompt = payload.get("prompt") or "Free writing task"
        user_prompt = f"""CEFR level: {level.label} ({CEFR_DESCRIPTORS[level]})
Target length: about {WRITING_WORD_TARGETS[level]} words
Language: {payload.get("language", "english")}

Prompt: {prompt}

Learner's text:
{payload["response"]}"""

        response = await self.llm_client.chat_completion(
            messages=[
                {"role": "system", "content": WRITING_SYSTEM_PROMPT},
                {"role": "user", "content": user_prompt},
            ],
            temperature=0.0,
            max_tokens=800,
            json_output=True,
        )

        try:
            parsed = parse_writing_response(response.content)
        except ValueError as exc:
            raise ScoringError(f"Failed to parse writing evaluation: {exc}") from exc

        criteria = parsed["criteria"]
        return Evaluation(
            score=min(MAX_SCORE, round(sum(c.score for c in criteria), 1)),
            feedback=parsed["overall_feedback"],
            method=ScoringMethod.AI.value,
            criteria=criteria,
            recommendations=parsed["recommendations"],
            model=response.model,
        )


def parse_writing_response(content: str) -> dict[str, Any]:
    """Parse the rubric JSON returned by the model."""
    if not isinstance(content, str):
        raise ValueError("Model response is not text")
    content = content.strip()

    # Models like to wrap JSON in markdown fences
    if content.startswith("```"):
        _, _, content = content.partition("\n")
        content = content.strip().removesuffix("```")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in model response: {e}") from e

    raw_criteria = data.get("criteria") if isinstance(data, dict) else None
    if not isinstance(raw_criteria, list) or not raw_criteria:
        raise ValueError("Missing criteria in model response")

    by_name = {
        str(item.get("name", "")).strip().lower(): item
        for item in raw_criteria
        if isinstance(item, dict)
    }
    criteria: list[CriterionScore] = []
    for name in WRITING_CRITERIA:
        item = by_name.get(name.lower(), {})
        try:
            score = float(item.get("score", 0.0))
        except (TypeError, ValueError):
            score = 0.0
        criteria.append(
            CriterionScore(
                name=name,
                score=_clamp(score, 0.0, WRITING_CRITERION_MAX),
                feedback=str(item.get("feedback", "")),
            )
        )

    recommendations = data.get("recommendations") or []
    return {
        "criteria": criteria,
        "overall_feedback": str(data.get("overall_feedback", "")),
        "recommendations": [str(tip) for tip in recommendations if tip][:5],
    }


def fallback_evaluation(skill: Skill, payload: dict[str, Any]) -> Evaluation:
    """Deterministic best-effort evaluation used when live scoring is unavailable."""
    if skill == Skill.WRITING:
        level = CefrLevel(payload["level"])
        words = len(str(payload.get("response", "")).split())
        coverage = min(1.0, words / WRITING_WORD_TARGETS[level])
        per_criterion = round(8.0 + 8.0 * coverage, 1)
        criteria = [
            CriterionScore(
                name=name,
                score=per_criterion,
                feedback="Provisional estimate; automated evaluation was unavailable.",
            )
            for name in WRITING_CRITERIA
        ]
        return Evaluation(
            score=round(per_criterion * len(WRITING_CRITERIA), 1),
            feedback=(
                f"Your text has {words} words for a target of about "
                f"{WRITING_WORD_TARGETS[level]}. Detailed feedback was unavailable, "
                "so this score is a provisional estimate."
            ),
            method=ScoringMethod.FALLBACK.value,
            criteria=criteria,
        )

    reported = payload.get("score")
    score = _clamp(float(reported), 0.0, MAX_SCORE) if reported is not None else 0.0
    return Evaluation(
        score=score,
        feedback="Automated scoring was unavailable; this result is provisional.",
        method=ScoringMethod.FALLBACK.value,
    )


async def score_submission(
    scorer: ScoringCollaborator,
    skill: Skill,
    payload: dict[str, Any],
    *,
    timeout: float,
) -> ScoringOutcome:
    """Run the collaborator under a timeout and degrade instead of failing."""
    try:
        evaluation = await asyncio.wait_for(scorer.evaluate(skill, payload), timeout=timeout)
    except TimeoutError:
        reason = f"Scoring timed out after {timeout:g}s"
    except (ScoringError, LLMClientError) as exc:
        reason = str(exc) or exc.__class__.__name__
    except Exception as exc:
        await logger.aexception("assessment_scoring_failed", skill=skill.value)
        reason = f"Scoring failed: {exc.__class__.__name__}"
    else:
        return Scored(evaluation)

    await logger.awarning("assessment_scoring_degraded", skill=skill.value, reason=reason)
    return Degraded(fallback_evaluation(skill, payload), reason=reason[:255])


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
