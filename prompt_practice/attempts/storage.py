"""
JSON Record Store

One pretty-printed JSON document per Attempt (``attempts/<id>.json``) and per
Evaluation (``evaluations/<id>.json``) under a data directory.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional

from utils.exceptions import StorageError, ValidationError

from .contracts import Attempt, Evaluation, is_valid_attempt_id

logger = logging.getLogger(__name__)


class AttemptStore:
    """Filesystem storage for attempts and evaluations."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self.attempts_dir = self.data_dir / "attempts"
        self.evaluations_dir = self.data_dir / "evaluations"

    def _path(self, directory: Path, attempt_id: str) -> Path:
        if not is_valid_attempt_id(attempt_id):
            raise ValidationError([f"Invalid attemptId format: {attempt_id!r}"])
        return directory / f"{attempt_id}.json"

    def _write(self, path: Path, data: Dict[str, Any]) -> None:
        # Atomic replace via a sibling temp file
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
                f.write("\n")
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Failed to write {path}: {e}") from e
        logger.debug(f"Wrote {path}")

    def _read(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def _list(self, directory: Path) -> List[str]:
        if not directory.exists():
            return []
        return sorted(p.stem for p in directory.glob("*.json"))

    # -- Attempts --------------------------------------------------------------

    def write_attempt(self, attempt: Attempt) -> Path:
        path = self._path(self.attempts_dir, attempt.attempt_id)
        self._write(path, attempt.to_dict())
        return path

    def read_attempt(self, attempt_id: str) -> Optional[Attempt]:
        data = self._read(self._path(self.attempts_dir, attempt_id))
        return Attempt.from_dict(data) if data is not None else None

    def list_attempts(self) -> List[str]:
        return self._list(self.attempts_dir)

    # -- Evaluations -----------------------------------------------------------

    def write_evaluation(self, evaluation: Evaluation) -> Path:
        path = self._path(self.evaluations_dir, evaluation.attempt_id)
        self._write(path, evaluation.to_dict())
        return path

    def read_evaluation(self, attempt_id: str) -> Optional[Evaluation]:
        data = self._read(self._path(self.evaluations_dir, attempt_id))
        return Evaluation.from_dict(data) if data is not None else None

    def list_evaluations(self) -> List[str]:
        return self._list(self.evaluations_dir)
