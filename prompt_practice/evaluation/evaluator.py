"""
Evaluation Engine

Scores a model response against the user's prompt. Numeric scores always come
from the heuristic rules in scorers.py; a parsed rubric of the requested
version only adds its wording to the notes. Output is a pure function of
(user_prompt, response_text, rubric_version).
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional

from utils.logging_config import log_performance

from ..providers.base import ModelResult
from .feedback import compose_feedback
from .rubric import (
    CURRENT_RUBRIC_VERSION,
    SUPPORTED_RUBRIC_VERSIONS,
    Rubric,
    load_rubric,
)
from .scorers import MAX_SCORE, MIN_SCORE, score_response

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreBreakdown:
    clarity: int
    completeness: int

    def __post_init__(self) -> None:
        for name in ("clarity", "completeness"):
            value = getattr(self, name)
            if not MIN_SCORE <= value <= MAX_SCORE:
                raise ValueError(f"{name} score {value} outside [{MIN_SCORE}, {MAX_SCORE}]")

    def as_dict(self) -> Dict[str, int]:
        return {"clarity": self.clarity, "completeness": self.completeness}


@dataclass(frozen=True)
class EvaluationResult:
    """Scored outcome for one model response."""

    score: int
    breakdown: ScoreBreakdown
    notes: str
    example_fix: str = ""
    rubric_version: Optional[str] = None

    def __post_init__(self) -> None:
        expected = self.breakdown.clarity + self.breakdown.completeness
        if self.score != expected:
            raise ValueError(f"score {self.score} != clarity + completeness ({expected})")
        if not self.notes:
            raise ValueError("notes must not be empty")

    def scores_dict(self) -> Dict[str, int]:
        return {
            "clarity": self.breakdown.clarity,
            "completeness": self.breakdown.completeness,
            "total": self.score,
        }

    def feedback_dict(self) -> Dict[str, str]:
        return {"explanation": self.notes, "exampleFix": self.example_fix}


class EvaluationEngine:
    """
    Deterministic response evaluator.

    Rubric files are parsed once per requested version and cached; a version
    that does not match the document falls back to heuristic-only notes.
    """

    def __init__(self, rubric_path: Optional[Path] = None):
        self.rubric_path = rubric_path
        self._rubrics: Dict[str, Optional[Rubric]] = {}

    def get_rubric(self, version: Optional[str] = None) -> Optional[Rubric]:
        key = version or ""
        if key not in self._rubrics:
            self._rubrics[key] = load_rubric(self.rubric_path, version)
        return self._rubrics[key]

    def current_rubric_version(self) -> str:
        rubric = self.get_rubric()
        return rubric.version if rubric else CURRENT_RUBRIC_VERSION

    @staticmethod
    def supported_rubric_versions() -> List[str]:
        return list(SUPPORTED_RUBRIC_VERSIONS)

    def evaluate(
        self,
        user_prompt: str,
        model_result: ModelResult,
        rubric_version: Optional[str] = None,
    ) -> EvaluationResult:
        """Score one model result."""
        return self.evaluate_text(user_prompt, model_result.text, rubric_version)

    @log_performance()
    def evaluate_text(
        self,
        user_prompt: str,
        response_text: str,
        rubric_version: Optional[str] = None,
    ) -> EvaluationResult:
        rubric = self.get_rubric(rubric_version)
        if rubric is None:
            logger.warning(
                f"Rubric version {rubric_version or 'current'} not found, "
                "using heuristic evaluation"
            )

        criteria = score_response(user_prompt, response_text)
        breakdown = ScoreBreakdown(
            clarity=criteria["clarity"].score,
            completeness=criteria["completeness"].score,
        )
        feedback = compose_feedback(breakdown.as_dict(), user_prompt, rubric)

        return EvaluationResult(
            score=breakdown.clarity + breakdown.completeness,
            breakdown=breakdown,
            notes=feedback.notes,
            example_fix=feedback.example_fix,
            rubric_version=rubric.version if rubric else None,
        )

    def score_and_feedback(
        self,
        user_prompt: str,
        model_result: ModelResult,
        rubric_version: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Poll-shaped ``scores`` and ``feedback`` objects for one result."""
        result = self.evaluate(user_prompt, model_result, rubric_version)
        return {"scores": result.scores_dict(), "feedback": result.feedback_dict()}
