"""
Shared test fixtures for Prompt Practice.

Provides common setup: temporary directories, a controllable clock, mock
HTTP transports for the hosted provider and a pipeline wired to temp storage.
"""

import json
from pathlib import Path
from typing import Callable, List

import httpx
import pytest

from prompt_practice.attempts import AttemptStore, EvaluationPipeline
from prompt_practice.evaluation import EvaluationEngine
from prompt_practice.providers import Dispatcher, HuggingFaceProvider
from prompt_practice.settings import PipelineSettings
from utils.rate_limiter import RateLimiter


class FakeClock:
    """Manually advanced epoch clock."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def tmp_project_dir(tmp_path: Path) -> Path:
    """Create a temporary project directory with standard structure."""
    for d in ["data", "logs", "reports"]:
        (tmp_path / d).mkdir()
    return tmp_path


@pytest.fixture
def mock_env(monkeypatch: pytest.MonkeyPatch, tmp_project_dir: Path) -> Path:
    """Set environment variables pointing to temporary directories."""
    monkeypatch.setenv("PROMPT_PRACTICE_STATE_DIR", str(tmp_project_dir))
    monkeypatch.setenv("PROMPT_PRACTICE_DATA_DIR", str(tmp_project_dir / "data"))
    monkeypatch.delenv("HUGGINGFACE_API_KEY", raising=False)
    monkeypatch.delenv("OLLAMA_HOST", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    return tmp_project_dir


@pytest.fixture(autouse=True)
def fresh_default_limiter(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test without a process-wide limiter."""
    monkeypatch.setattr("utils.rate_limiter._default_limiter", None)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(max_requests=1000, window_seconds=3600, clock=clock)


def _ok_handler(text: str = "Photosynthesis turns light into chemical energy.") -> Callable:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"generated_text": text}])

    return handler


def _status_handler(status: int, headers: dict = None, body: str = "error") -> Callable:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, headers=headers or {}, text=body)

    return handler


@pytest.fixture
def hf_ok() -> Callable[..., Callable]:
    """Factory for a handler answering 200 with generated text."""
    return _ok_handler


@pytest.fixture
def hf_status() -> Callable[..., Callable]:
    """Factory for a handler answering a fixed status code."""
    return _status_handler


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable) -> None:
        self.requests: List[httpx.Request] = []

        def recording(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording)

    def last_json(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def make_hosted(limiter: RateLimiter) -> Callable[..., HuggingFaceProvider]:
    """Factory for a hosted provider routed through a recording mock transport."""

    def factory(handler: Callable = None, api_key: str = "hf_test") -> HuggingFaceProvider:
        transport = RecordingTransport(handler or _ok_handler())
        return HuggingFaceProvider(api_key=api_key, rate_limiter=limiter, transport=transport)

    return factory


@pytest.fixture
def settings(tmp_path: Path) -> PipelineSettings:
    return PipelineSettings(data_dir=tmp_path / "data", attempt_timeout=5.0)


@pytest.fixture
def store(settings: PipelineSettings) -> AttemptStore:
    return AttemptStore(settings.data_dir)


@pytest.fixture
def offline_dispatcher(limiter: RateLimiter) -> Dispatcher:
    """Dispatcher with no API key: hosted models always fall back."""
    return Dispatcher(hosted=HuggingFaceProvider(api_key=None, rate_limiter=limiter), rate_limiter=limiter)


@pytest.fixture
def pipeline(
    settings: PipelineSettings, offline_dispatcher: Dispatcher, store: AttemptStore
) -> EvaluationPipeline:
    return EvaluationPipeline(
        settings, dispatcher=offline_dispatcher, engine=EvaluationEngine(), store=store
    )
