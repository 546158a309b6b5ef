"""
Response Evaluation

Heuristic clarity/completeness scoring, feedback composition, versioned
rubric loading and attempt reports.

Usage:
    from prompt_practice.evaluation import EvaluationEngine

    engine = EvaluationEngine()
    result = engine.evaluate_text("Explain photosynthesis", response_text)
    print(result.score, result.notes)
"""

from .evaluator import EvaluationEngine, EvaluationResult, ScoreBreakdown
from .feedback import Feedback, compose_feedback
from .rubric import CURRENT_RUBRIC_VERSION, Rubric, load_rubric
from .scorers import TextStats, score_response

__all__ = [
    "EvaluationEngine",
    "EvaluationResult",
    "ScoreBreakdown",
    "Feedback",
    "compose_feedback",
    "CURRENT_RUBRIC_VERSION",
    "Rubric",
    "load_rubric",
    "TextStats",
    "score_response",
]
