"""Tests for attempt/evaluation records and error classification."""

import re

from prompt_practice.attempts.contracts import (
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
from prompt_practice.providers.base import ModelResult, ModelSource
from utils.exceptions import (
    ApiError,
    NoApiKeyError,
    RateLimitedError,
    StorageError,
    UnknownModelError,
    ValidationError,
)


def _scored(model_id: str, text: str = "Answer.", total: int = 6) -> ScoredResult:
    return ScoredResult(
        model_result=ModelResult(model_id, text, 400, 2, ModelSource.SAMPLE),
        scores={"clarity": 3, "completeness": total - 3, "total": total},
        feedback={"explanation": "Fine.", "exampleFix": "Try more."},
    )


class TestAttemptIds:
    def test_generated_ids_are_valid_and_unique(self) -> None:
        ids = {generate_attempt_id() for _ in range(200)}
        assert len(ids) == 200
        for attempt_id in ids:
            assert is_valid_attempt_id(attempt_id)
            assert re.fullmatch(r"[0-9a-z]+-[0-9a-z]{6}", attempt_id)

    def test_rejects_path_traversal(self) -> None:
        assert not is_valid_attempt_id("../etc/passwd")
        assert not is_valid_attempt_id("a/b")
        assert not is_valid_attempt_id("")
        assert is_valid_attempt_id("abc_DEF-123")


class TestAttempt:
    def test_json_shape(self) -> None:
        attempt = Attempt(
            attempt_id="abc-123456",
            lab_id="practice-basics",
            user_prompt="Explain whales",
            models=("local-stub",),
            timestamp="2026-01-01T00:00:00.000Z",
            system_prompt="Be brief",
        )
        data = attempt.to_dict()
        assert data == {
            "attemptId": "abc-123456",
            "labId": "practice-basics",
            "userPrompt": "Explain whales",
            "models": ["local-stub"],
            "timestamp": "2026-01-01T00:00:00.000Z",
            "schemaVersion": SCHEMA_VERSION,
            "rubricVersion": "1.0",
            "systemPrompt": "Be brief",
        }
        assert Attempt.from_dict(data) == attempt

    def test_system_prompt_omitted_when_absent(self) -> None:
        attempt = Attempt("abc", "practice-basics", "Hi", ("local-stub",))
        assert "systemPrompt" not in attempt.to_dict()
        assert attempt.timestamp.endswith("Z")


class TestEvaluation:
    def test_upsert_replaces_same_model(self) -> None:
        evaluation = Evaluation(attempt_id="abc")
        evaluation.upsert_result(_scored("local-stub", "First."))
        evaluation.upsert_result(_scored("local-stub", "Second."))
        assert len(evaluation.results) == 1
        assert evaluation.results[0].model_result.text == "Second."

    def test_ordered_results(self) -> None:
        evaluation = Evaluation(attempt_id="abc")
        evaluation.upsert_result(_scored("mistral-7b"))
        evaluation.upsert_result(_scored("local-stub"))
        ordered = evaluation.ordered_results(["local-stub", "mistral-7b"])
        assert [r.model_id for r in ordered] == ["local-stub", "mistral-7b"]

    def test_round_trip_with_error(self) -> None:
        evaluation = Evaluation(
            attempt_id="abc",
            status=AttemptStatus.PARTIAL,
            results=[_scored("local-stub")],
            error=ErrorContract("dispatch", "TIMEOUT", "slow", True, "wait"),
        )
        data = evaluation.to_dict()
        assert data["status"] == "partial"
        assert data["results"][0]["scores"]["total"] == 6
        assert data["error"]["code"] == "TIMEOUT"
        assert Evaluation.from_dict(data) == evaluation

    def test_result_json_shape(self) -> None:
        data = _scored("local-stub").to_dict()
        assert set(data) == {
            "modelId", "response", "latency", "tokenCount", "source", "scores", "feedback",
        }


class TestClassifyError:
    def test_validation(self) -> None:
        contract = classify_error(ValidationError(["A", "B"]), stage="validation")
        assert contract.stage == "validation"
        assert contract.code == "VALIDATION_ERROR"
        assert contract.message == "A; B"
        assert contract.retryable is False
        assert contract.help

    def test_unknown_model(self) -> None:
        contract = classify_error(UnknownModelError("gpt-99"), stage="validation")
        assert contract.code == "UNKNOWN_MODEL"
        assert "gpt-99" in contract.message

    def test_provider_errors(self) -> None:
        assert classify_error(NoApiKeyError(), "dispatch").retryable is False
        assert classify_error(ApiError("boom", status=502), "dispatch").retryable is True
        limited = classify_error(RateLimitedError(1_700_000_000.0), "dispatch")
        assert limited.code == "RATE_LIMITED"
        assert "resets at 1700000000" in limited.message

    def test_storage_and_unknown(self) -> None:
        assert classify_error(StorageError("disk full"), "storage").retryable is True
        unknown = classify_error(RuntimeError("bug"), "dispatch")
        assert unknown.code == "UNKNOWN_ERROR"
        assert unknown.message == "bug"

    def test_poll_shape(self) -> None:
        contract = classify_error(ValidationError(["A"]), "validation")
        assert set(contract.to_poll_dict()) == {"stage", "code", "message", "retryable"}
