"""
Attempts: submission records and the evaluation pipeline

Usage:
    from prompt_practice.attempts import EvaluationPipeline
    from prompt_practice.settings import PipelineSettings

    pipeline = EvaluationPipeline(PipelineSettings.from_env())
    created = await pipeline.submit(
        {"labId": "compare-basics", "userPrompt": "...", "models": ["local-stub", "mistral-7b"]}
    )
    print(pipeline.get_status(created.attempt_id)["status"])
"""

from .contracts import (
    SCHEMA_VERSION,
    Attempt,
    AttemptStatus,
    ErrorContract,
    Evaluation,
    ScoredResult,
    classify_error,
    generate_attempt_id,
    is_valid_attempt_id,
)
from .pipeline import EvaluationPipeline, SubmissionResult
from .storage import AttemptStore
from .validation import AttemptRequest, sanitize_prompt, validate_request

__all__ = [
    # Contracts
    "SCHEMA_VERSION",
    "Attempt",
    "AttemptStatus",
    "ErrorContract",
    "Evaluation",
    "ScoredResult",
    "classify_error",
    "generate_attempt_id",
    "is_valid_attempt_id",
    # Validation
    "AttemptRequest",
    "sanitize_prompt",
    "validate_request",
    # Storage
    "AttemptStore",
    # Pipeline
    "EvaluationPipeline",
    "SubmissionResult",
]
