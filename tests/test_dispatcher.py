"""Tests for source selection and fallback in the dispatcher."""

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from prompt_practice.providers.base import ModelResult, ModelSource
from prompt_practice.providers.dispatcher import Dispatcher
from prompt_practice.providers.huggingface_provider import HuggingFaceProvider
from prompt_practice.providers.local_generator import LocalResponseGenerator
from prompt_practice.settings import PipelineSettings
from utils.exceptions import ApiError, NetworkError, NoApiKeyError, RateLimitedError, UnknownModelError
from utils.rate_limiter import get_rate_limiter


def _runtime(result: ModelResult = None, error: Exception = None) -> MagicMock:
    runtime = MagicMock()
    runtime.call = AsyncMock(return_value=result, side_effect=error)
    return runtime


class TestSampleModels:
    @pytest.mark.asyncio
    async def test_sample_uses_generator(self, offline_dispatcher: Dispatcher) -> None:
        result = await offline_dispatcher.dispatch("local-creative", "Write a poem about rain")
        expected = LocalResponseGenerator().generate("creative", "Write a poem about rain")
        assert result == expected
        assert result.source == ModelSource.SAMPLE


class TestHostedModels:
    @pytest.mark.asyncio
    async def test_hosted_success(self, make_hosted, limiter, hf_ok) -> None:
        dispatcher = Dispatcher(hosted=make_hosted(hf_ok("Plants use light.")), rate_limiter=limiter)
        result = await dispatcher.dispatch("mistral-7b", "Explain photosynthesis")
        assert result.source == ModelSource.HOSTED
        assert result.text == "Plants use light."

    @pytest.mark.asyncio
    async def test_no_key_falls_back_with_requested_identity(
        self, offline_dispatcher: Dispatcher
    ) -> None:
        result = await offline_dispatcher.dispatch("mistral-7b", "Explain photosynthesis")
        assert result.model_id == "mistral-7b"
        assert result.source == ModelSource.SAMPLE
        # mistral-7b falls back to the analytical variant
        assert result.text.startswith("Analysis of photosynthesis:")

    @pytest.mark.asyncio
    async def test_server_error_falls_back(self, make_hosted, limiter, hf_status) -> None:
        dispatcher = Dispatcher(hosted=make_hosted(hf_status(503)), rate_limiter=limiter)
        result = await dispatcher.dispatch("llama3.1-8b", "Explain photosynthesis")
        stub = LocalResponseGenerator().generate("stub", "Explain photosynthesis")
        assert result.model_id == "llama3.1-8b"
        assert result.source == ModelSource.SAMPLE
        assert result.text == stub.text

    @pytest.mark.asyncio
    async def test_rate_limited_skips_network(self, make_hosted, limiter) -> None:
        hosted = make_hosted()
        limiter.record_rate_limited()
        dispatcher = Dispatcher(hosted=hosted, rate_limiter=limiter)

        result = await dispatcher.dispatch("llama3.1-8b", "Explain photosynthesis")

        assert result.source == ModelSource.SAMPLE
        assert hosted.transport.requests == []

    @pytest.mark.asyncio
    async def test_429_limits_following_calls(self, make_hosted, limiter, hf_status) -> None:
        hosted = make_hosted(hf_status(429))
        dispatcher = Dispatcher(hosted=hosted, rate_limiter=limiter)

        await dispatcher.dispatch("llama3.1-8b", "First")
        await dispatcher.dispatch("llama3.1-8b", "Second")

        assert len(hosted.transport.requests) == 1


class TestAttemptHosted:
    @pytest.mark.asyncio
    async def test_outcome_carries_error(self, offline_dispatcher: Dispatcher) -> None:
        from prompt_practice.providers.registry import require_model

        outcome = await offline_dispatcher.attempt_hosted(require_model("mistral-7b"), "Hi")
        assert not outcome.ok
        assert isinstance(outcome.error, NoApiKeyError)

    @pytest.mark.asyncio
    async def test_outcome_when_limited(self, limiter) -> None:
        from prompt_practice.providers.registry import require_model

        limiter.record_rate_limited()
        dispatcher = Dispatcher(hosted=HuggingFaceProvider("hf_x", rate_limiter=limiter), rate_limiter=limiter)
        outcome = await dispatcher.attempt_hosted(require_model("mistral-7b"), "Hi")
        assert isinstance(outcome.error, RateLimitedError)
        assert outcome.error.reset_time == limiter.get_status()["resetTime"]

    def test_resolve_fallback_identity(self, offline_dispatcher: Dispatcher) -> None:
        result = offline_dispatcher.resolve_fallback("llama3.1-8b", "Hi", None, NetworkError())
        assert result.model_id == "llama3.1-8b"
        assert result.source == ModelSource.SAMPLE


class TestLocalModels:
    @pytest.mark.asyncio
    async def test_without_runtime_uses_generator(self, offline_dispatcher: Dispatcher) -> None:
        result = await offline_dispatcher.dispatch("local-small", "Explain photosynthesis")
        assert result.model_id == "local-small"
        assert result.source == ModelSource.SAMPLE

    @pytest.mark.asyncio
    async def test_runtime_result(self, limiter) -> None:
        produced = ModelResult("local-small", "Sugar from light.", 900, 5, ModelSource.LOCAL)
        runtime = _runtime(result=produced)
        dispatcher = Dispatcher(
            hosted=HuggingFaceProvider(None, rate_limiter=limiter), rate_limiter=limiter, runtime=runtime
        )
        result = await dispatcher.dispatch("local-small", "Explain photosynthesis", "Be brief")
        assert result == produced
        runtime.call.assert_awaited_once_with(
            "local-small", "Explain photosynthesis", "Be brief", max_tokens=512
        )

    @pytest.mark.asyncio
    async def test_runtime_failure_falls_back(self, limiter) -> None:
        dispatcher = Dispatcher(
            hosted=HuggingFaceProvider(None, rate_limiter=limiter),
            rate_limiter=limiter,
            runtime=_runtime(error=NetworkError("refused")),
        )
        result = await dispatcher.dispatch("local-tiny", "Explain photosynthesis")
        assert result.model_id == "local-tiny"
        assert result.source == ModelSource.SAMPLE


class TestErrors:
    @pytest.mark.asyncio
    async def test_unknown_model(self, offline_dispatcher: Dispatcher) -> None:
        with pytest.raises(UnknownModelError):
            await offline_dispatcher.dispatch("gpt-99", "Hi")

    @pytest.mark.asyncio
    async def test_dispatch_many_checks_all_ids_first(self, offline_dispatcher: Dispatcher) -> None:
        offline_dispatcher.generator = MagicMock(wraps=offline_dispatcher.generator)
        with pytest.raises(UnknownModelError):
            await offline_dispatcher.dispatch_many(["local-stub", "gpt-99"], "Hi")
        offline_dispatcher.generator.generate.assert_not_called()

    @pytest.mark.asyncio
    async def test_dispatch_many(self, offline_dispatcher: Dispatcher) -> None:
        results = await offline_dispatcher.dispatch_many(["local-stub", "mistral-7b"], "Hi there")
        assert list(results) == ["local-stub", "mistral-7b"]
        assert all(r.source == ModelSource.SAMPLE for r in results.values())


class TestUnexpectedFailures:
    @pytest.mark.asyncio
    async def test_hosted_exception_falls_back(self, make_hosted, limiter) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.InvalidURL("bad url")

        dispatcher = Dispatcher(hosted=make_hosted(handler), rate_limiter=limiter)
        result = await dispatcher.dispatch("mistral-7b", "Explain photosynthesis")

        assert result.model_id == "mistral-7b"
        assert result.source == ModelSource.SAMPLE

    @pytest.mark.asyncio
    async def test_hosted_exception_wrapped_in_outcome(self, make_hosted, limiter) -> None:
        from prompt_practice.providers.registry import require_model

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.InvalidURL("bad url")

        dispatcher = Dispatcher(hosted=make_hosted(handler), rate_limiter=limiter)
        outcome = await dispatcher.attempt_hosted(require_model("mistral-7b"), "Hi")

        assert isinstance(outcome.error, ApiError)
        assert outcome.error.retryable is False
        assert isinstance(outcome.error.__cause__, httpx.InvalidURL)

    @pytest.mark.asyncio
    async def test_runtime_exception_falls_back(self, limiter) -> None:
        dispatcher = Dispatcher(
            hosted=HuggingFaceProvider(None, rate_limiter=limiter),
            rate_limiter=limiter,
            runtime=_runtime(error=KeyError("response")),
        )
        result = await dispatcher.dispatch("local-small", "Explain photosynthesis")
        assert result.model_id == "local-small"
        assert result.source == ModelSource.SAMPLE


class TestFromSettings:
    def test_dispatchers_share_limiter(self, settings: PipelineSettings) -> None:
        first = Dispatcher.from_settings(settings)
        second = Dispatcher.from_settings(settings)

        assert first.rate_limiter is second.rate_limiter is get_rate_limiter()
        assert first.hosted.rate_limiter is first.rate_limiter

        first.rate_limiter.record_rate_limited()
        assert second.rate_limiter.check_limited() is True

    def test_quota_from_settings(self, tmp_path) -> None:
        settings = PipelineSettings(
            data_dir=tmp_path, rate_limit_max_requests=5, rate_limit_window_seconds=60.0
        )
        limiter = Dispatcher.from_settings(settings).rate_limiter
        assert limiter.max_requests == 5
        assert limiter.window_seconds == 60.0

    def test_explicit_limiter(self, settings: PipelineSettings, limiter) -> None:
        dispatcher = Dispatcher.from_settings(settings, rate_limiter=limiter)
        assert dispatcher.rate_limiter is limiter
        assert dispatcher.hosted.rate_limiter is limiter
