"""Tests for the JSON attempt store."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from prompt_practice.attempts.contracts import Attempt, AttemptStatus, Evaluation
from prompt_practice.attempts.storage import AttemptStore
from utils.exceptions import StorageError, ValidationError


def _attempt(attempt_id: str = "abc-123456") -> Attempt:
    return Attempt(attempt_id, "practice-basics", "Explain whales", ("local-stub",))


class TestAttempts:
    def test_write_and_read(self, store: AttemptStore) -> None:
        attempt = _attempt()
        path = store.write_attempt(attempt)
        assert path == store.attempts_dir / "abc-123456.json"
        assert store.read_attempt("abc-123456") == attempt

    def test_pretty_printed(self, store: AttemptStore) -> None:
        path = store.write_attempt(_attempt())
        text = path.read_text()
        assert text.startswith('{\n  "attemptId"')
        assert json.loads(text)["labId"] == "practice-basics"

    def test_missing_returns_none(self, store: AttemptStore) -> None:
        assert store.read_attempt("nope") is None

    def test_list(self, store: AttemptStore) -> None:
        assert store.list_attempts() == []
        store.write_attempt(_attempt("b-1"))
        store.write_attempt(_attempt("a-1"))
        assert store.list_attempts() == ["a-1", "b-1"]

    def test_rejects_unsafe_ids(self, store: AttemptStore) -> None:
        with pytest.raises(ValidationError):
            store.read_attempt("../secrets")


class TestEvaluations:
    def test_overwrite(self, store: AttemptStore) -> None:
        evaluation = Evaluation(attempt_id="abc-123456")
        store.write_evaluation(evaluation)
        evaluation.status = AttemptStatus.RUNNING
        store.write_evaluation(evaluation)

        assert store.read_evaluation("abc-123456").status == AttemptStatus.RUNNING
        assert store.list_evaluations() == ["abc-123456"]
        # No temp files left behind
        assert [p.name for p in store.evaluations_dir.iterdir()] == ["abc-123456.json"]

    def test_corrupt_file(self, store: AttemptStore) -> None:
        store.evaluations_dir.mkdir(parents=True)
        (store.evaluations_dir / "bad.json").write_text("{not json")
        with pytest.raises(StorageError):
            store.read_evaluation("bad")

    def test_write_failure(self, tmp_path: Path) -> None:
        store = AttemptStore(tmp_path / "data")
        with patch("prompt_practice.attempts.storage.os.replace", side_effect=OSError("read-only")):
            with pytest.raises(StorageError, match="read-only"):
                store.write_evaluation(Evaluation(attempt_id="abc"))
        assert list(store.evaluations_dir.iterdir()) == []
