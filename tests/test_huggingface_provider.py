"""Tests for the hosted Hugging Face provider (httpx MockTransport, no network)."""

import httpx
import pytest

from prompt_practice.providers.base import ModelSource
from prompt_practice.providers.huggingface_provider import (
    HuggingFaceProvider,
    build_prompt,
    extract_generated_text,
    parse_retry_after,
)
from utils.exceptions import (
    ApiError,
    NetworkError,
    NoApiKeyError,
    RateLimitedError,
    UnknownModelError,
)


class TestHelpers:
    def test_build_prompt(self) -> None:
        assert build_prompt("Hi") == "Hi"
        assert build_prompt("Hi", "Be kind") == "System: Be kind\n\nUser: Hi"

    def test_parse_retry_after(self) -> None:
        assert parse_retry_after("120") == 120.0
        assert parse_retry_after(None) is None
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") is None

    def test_extract_list_shape(self) -> None:
        assert extract_generated_text([{"generated_text": "hello"}]) == "hello"

    def test_extract_object_shape(self) -> None:
        assert extract_generated_text({"generated_text": "hello"}) == "hello"

    @pytest.mark.parametrize("data", [[], [{"generated_text": ""}], {"error": "x"}, "text"])
    def test_extract_rejects_other_shapes(self, data) -> None:
        with pytest.raises(ApiError):
            extract_generated_text(data)


class TestCall:
    @pytest.mark.asyncio
    async def test_success(self, make_hosted, limiter, hf_ok) -> None:
        provider = make_hosted(hf_ok("  Plants use light.  "))
        result = await provider.call("mistral-7b", "Explain photosynthesis")

        assert result.model_id == "mistral-7b"
        assert result.text == "Plants use light."
        assert result.source == ModelSource.HOSTED
        assert result.token_count == 4
        assert limiter.get_status()["requestCount"] == 1

    @pytest.mark.asyncio
    async def test_request_shape(self, make_hosted) -> None:
        provider = make_hosted()
        await provider.call("llama3.1-8b", "Explain photosynthesis", "Be brief", max_tokens=256)

        transport = provider.transport
        request = transport.requests[-1]
        assert str(request.url).endswith("/models/meta-llama/Llama-3.1-8B-Instruct")
        assert request.headers["Authorization"] == "Bearer hf_test"
        body = transport.last_json()
        assert body["inputs"] == "System: Be brief\n\nUser: Explain photosynthesis"
        assert body["parameters"] == {
            "max_new_tokens": 256,
            "temperature": 0.7,
            "top_p": 0.9,
            "do_sample": True,
            "return_full_text": False,
        }

    @pytest.mark.asyncio
    async def test_no_api_key(self, make_hosted) -> None:
        provider = make_hosted(api_key=None)
        with pytest.raises(NoApiKeyError) as exc_info:
            await provider.call("mistral-7b", "Hi")
        assert exc_info.value.retryable is False
        assert provider.transport.requests == []

    @pytest.mark.asyncio
    async def test_unmapped_model(self, make_hosted) -> None:
        with pytest.raises(UnknownModelError):
            await make_hosted().call("local-stub", "Hi")

    @pytest.mark.asyncio
    async def test_429_with_retry_after(self, make_hosted, limiter, hf_status) -> None:
        provider = make_hosted(hf_status(429, headers={"retry-after": "60"}))
        with pytest.raises(RateLimitedError) as exc_info:
            await provider.call("mistral-7b", "Hi")

        assert exc_info.value.retryable is True
        assert exc_info.value.reset_time is not None
        assert limiter.check_limited() is True

    @pytest.mark.asyncio
    async def test_429_without_header_uses_window_end(self, make_hosted, clock, hf_status) -> None:
        provider = make_hosted(hf_status(429))
        with pytest.raises(RateLimitedError) as exc_info:
            await provider.call("mistral-7b", "Hi")
        assert exc_info.value.reset_time == clock.now + 3600

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self, make_hosted, hf_status) -> None:
        with pytest.raises(ApiError) as exc_info:
            await make_hosted(hf_status(503)).call("mistral-7b", "Hi")
        assert exc_info.value.status == 503
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_client_error_not_retryable(self, make_hosted, hf_status) -> None:
        with pytest.raises(ApiError) as exc_info:
            await make_hosted(hf_status(401)).call("mistral-7b", "Hi")
        assert exc_info.value.status == 401
        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_malformed_json(self, make_hosted, limiter, hf_status) -> None:
        with pytest.raises(ApiError):
            await make_hosted(hf_status(200, body="not json")).call("mistral-7b", "Hi")
        assert limiter.get_status()["requestCount"] == 0

    @pytest.mark.asyncio
    async def test_unexpected_shape(self, make_hosted) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"error": "Model is loading"})

        with pytest.raises(ApiError):
            await make_hosted(handler).call("mistral-7b", "Hi")

    @pytest.mark.asyncio
    async def test_connect_error(self, make_hosted) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("DNS failure", request=request)

        with pytest.raises(NetworkError) as exc_info:
            await make_hosted(handler).call("mistral-7b", "Hi")
        assert exc_info.value.retryable is True

    @pytest.mark.asyncio
    async def test_timeout(self, make_hosted) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(NetworkError, match="timed out"):
            await make_hosted(handler).call("mistral-7b", "Hi")


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_requires_key_and_quota(self, limiter) -> None:
        assert await HuggingFaceProvider(api_key=None, rate_limiter=limiter).health_check() is False
        provider = HuggingFaceProvider(api_key="hf_x", rate_limiter=limiter)
        assert await provider.health_check() is True
        limiter.record_rate_limited()
        assert await provider.health_check() is False
