"""
Attempt and Evaluation Contracts

Record shapes shared by the pipeline, the storage layer and callers. JSON
keys are camelCase and ``schemaVersion``/``rubricVersion`` are carried
through unchanged so older records stay readable after rubric upgrades.
"""

import logging
import re
import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from utils.exceptions import (
    NoApiKeyError,
    PromptPracticeError,
    RateLimitedError,
    ValidationError,
)

from ..providers.base import ModelResult

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"
ATTEMPT_ID_RE = re.compile(r"^[a-zA-Z0-9_-]+$")
_ID_ALPHABET = string.ascii_lowercase + string.digits


class AttemptStatus(str, Enum):
    """Evaluation lifecycle states."""

    QUEUED = "queued"
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    ERROR = "error"
    TIMEOUT = "timeout"


TERMINAL_STATUSES = frozenset(
    {AttemptStatus.SUCCESS, AttemptStatus.PARTIAL, AttemptStatus.ERROR, AttemptStatus.TIMEOUT}
)

EVALUATION_TRANSITIONS: Dict[AttemptStatus, List[AttemptStatus]] = {
    AttemptStatus.QUEUED: [AttemptStatus.RUNNING, AttemptStatus.ERROR],
    AttemptStatus.RUNNING: [
        AttemptStatus.SUCCESS,
        AttemptStatus.PARTIAL,
        AttemptStatus.ERROR,
        AttemptStatus.TIMEOUT,
    ],
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _base36(value: int) -> str:
    digits = []
    while True:
        value, rem = divmod(value, 36)
        digits.append(_ID_ALPHABET[26 + rem] if rem < 10 else _ID_ALPHABET[rem - 10])
        if value == 0:
            break
    return "".join(reversed(digits))


def generate_attempt_id() -> str:
    """Base36 millisecond timestamp, a dash and six random characters."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))
    return f"{_base36(int(time.time() * 1000))}-{suffix}"


def is_valid_attempt_id(attempt_id: str) -> bool:
    """Only letters, digits, '-' and '_' so ids can never escape the data dir."""
    return bool(attempt_id) and bool(ATTEMPT_ID_RE.match(attempt_id))


@dataclass(frozen=True)
class ErrorContract:
    """Structured, user-facing description of an attempt-level failure."""

    stage: str
    code: str
    message: str
    retryable: bool
    help: str = ""
    timestamp: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "code": self.code,
            "message": self.message,
            "help": self.help,
            "retryable": self.retryable,
            "timestamp": self.timestamp,
        }

    def to_poll_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "code": self.code,
            "message": self.message,
            "retryable": self.retryable,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorContract":
        return cls(
            stage=data.get("stage", "unknown"),
            code=data.get("code", "UNKNOWN_ERROR"),
            message=data.get("message", ""),
            retryable=bool(data.get("retryable", False)),
            help=data.get("help", ""),
            timestamp=data.get("timestamp") or utc_now_iso(),
        )


_HELP_BY_CODE = {
    "VALIDATION_ERROR": "Review your input and correct any issues.",
    "UNKNOWN_MODEL": "Pick a model from the available model list.",
    "RATE_LIMITED": "Wait for the rate limit to reset or use sample mode.",
    "NO_API_KEY": "Set HUGGINGFACE_API_KEY to use hosted models.",
    "NETWORK_ERROR": "Check your internet connection and retry.",
    "API_ERROR": "Wait a moment and try again, or continue with sample responses.",
    "TIMEOUT": "Wait a moment and check again, or retry with a new attempt.",
    "STORAGE_ERROR": "Check that the data directory is writable, then retry.",
}


def classify_error(error: BaseException, stage: str) -> ErrorContract:
    """Map an exception onto the persisted error contract."""
    if isinstance(error, PromptPracticeError):
        code = error.code
        retryable = bool(error.retryable)
    elif isinstance(error, TimeoutError):
        code, retryable = "TIMEOUT", True
    else:
        code, retryable = "UNKNOWN_ERROR", True

    message = str(error) or error.__class__.__name__
    if isinstance(error, ValidationError):
        message = "; ".join(error.errors) or message
    elif isinstance(error, RateLimitedError) and error.reset_time:
        message = f"{message} (resets at {error.reset_time:.0f})"
    elif isinstance(error, NoApiKeyError):
        retryable = False

    return ErrorContract(
        stage=stage,
        code=code,
        message=message,
        retryable=retryable,
        help=_HELP_BY_CODE.get(code, "Try again, and report the problem if it persists."),
    )


@dataclass(frozen=True)
class Attempt:
    """One immutable user submission."""

    attempt_id: str
    lab_id: str
    user_prompt: str
    models: Tuple[str, ...]
    timestamp: str = field(default_factory=utc_now_iso)
    system_prompt: Optional[str] = None
    schema_version: str = SCHEMA_VERSION
    rubric_version: str = "1.0"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "attemptId": self.attempt_id,
            "labId": self.lab_id,
            "userPrompt": self.user_prompt,
            "models": list(self.models),
            "timestamp": self.timestamp,
            "schemaVersion": self.schema_version,
            "rubricVersion": self.rubric_version,
        }
        if self.system_prompt:
            data["systemPrompt"] = self.system_prompt
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Attempt":
        return cls(
            attempt_id=data["attemptId"],
            lab_id=data["labId"],
            user_prompt=data["userPrompt"],
            models=tuple(data.get("models", [])),
            timestamp=data.get("timestamp", ""),
            system_prompt=data.get("systemPrompt"),
            schema_version=data.get("schemaVersion", SCHEMA_VERSION),
            rubric_version=data.get("rubricVersion", "1.0"),
        )


@dataclass(frozen=True)
class ScoredResult:
    """A model result together with its scores and feedback, if evaluated."""

    model_result: ModelResult
    scores: Optional[Dict[str, int]] = None
    feedback: Optional[Dict[str, str]] = None

    @property
    def model_id(self) -> str:
        return self.model_result.model_id

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_result.to_dict()
        if self.scores is not None:
            data["scores"] = dict(self.scores)
        if self.feedback is not None:
            data["feedback"] = dict(self.feedback)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoredResult":
        return cls(
            model_result=ModelResult.from_dict(data),
            scores=data.get("scores"),
            feedback=data.get("feedback"),
        )


@dataclass
class Evaluation:
    """Outcome record for an attempt; mutable until its status is terminal."""

    attempt_id: str
    status: AttemptStatus = AttemptStatus.QUEUED
    results: List[ScoredResult] = field(default_factory=list)
    error: Optional[ErrorContract] = None
    timestamp: str = field(default_factory=utc_now_iso)
    schema_version: str = SCHEMA_VERSION
    rubric_version: str = "1.0"

    def upsert_result(self, result: ScoredResult) -> None:
        """Insert or replace the result for its model id (last write wins)."""
        for i, existing in enumerate(self.results):
            if existing.model_id == result.model_id:
                self.results[i] = result
                break
        else:
            self.results.append(result)
        self.timestamp = utc_now_iso()

    def ordered_results(self, model_order: List[str]) -> List[ScoredResult]:
        """Results in the order the models were requested."""
        by_id = {r.model_id: r for r in self.results}
        ordered = [by_id[m] for m in model_order if m in by_id]
        ordered.extend(r for r in self.results if r.model_id not in model_order)
        return ordered

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "attemptId": self.attempt_id,
            "status": self.status.value,
            "results": [r.to_dict() for r in self.results],
            "rubricVersion": self.rubric_version,
            "timestamp": self.timestamp,
            "schemaVersion": self.schema_version,
        }
        if self.error is not None:
            data["error"] = self.error.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Evaluation":
        error = data.get("error")
        return cls(
            attempt_id=data["attemptId"],
            status=AttemptStatus(data.get("status", AttemptStatus.QUEUED.value)),
            results=[ScoredResult.from_dict(r) for r in data.get("results") or []],
            error=ErrorContract.from_dict(error) if error else None,
            timestamp=data.get("timestamp") or utc_now_iso(),
            schema_version=data.get("schemaVersion", SCHEMA_VERSION),
            rubric_version=data.get("rubricVersion", "1.0"),
        )
