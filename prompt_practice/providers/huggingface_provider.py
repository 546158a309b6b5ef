"""
Hugging Face Inference API Provider

Hosted text generation over HTTPS. Classifies every failure into the
provider error taxonomy and keeps the shared rate limiter informed.

Usage:
    provider = HuggingFaceProvider(api_key=os.getenv("HUGGINGFACE_API_KEY"))
    result = await provider.call("mistral-7b", "Explain photosynthesis")
"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from utils.exceptions import (
    ApiError,
    NetworkError,
    NoApiKeyError,
    RateLimitedError,
    UnknownModelError,
)
from utils.rate_limiter import RateLimitBackend, get_rate_limiter

from .base import BaseProvider, ModelResult, ModelSource, estimate_tokens
from .registry import hosted_model_name

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api-inference.huggingface.co/models"


def build_prompt(prompt: str, system_prompt: Optional[str] = None) -> str:
    """Single-string prompt for text-generation endpoints."""
    if system_prompt:
        return f"System: {system_prompt}\n\nUser: {prompt}"
    return prompt


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a ``retry-after`` header, or None if absent or unparseable."""
    if not value:
        return None
    try:
        return float(int(value.strip()))
    except ValueError:
        return None


def extract_generated_text(data: Any) -> str:
    """Normalize ``[{generated_text}]`` or ``{generated_text}`` into text."""
    if isinstance(data, list):
        if data and isinstance(data[0], dict) and data[0].get("generated_text"):
            return str(data[0]["generated_text"])
    elif isinstance(data, dict) and data.get("generated_text"):
        return str(data["generated_text"])
    raise ApiError("Unexpected response format from Hugging Face API")


class HuggingFaceProvider(BaseProvider):
    """
    Hosted provider backed by the Hugging Face Inference API.

    A fresh httpx.AsyncClient is opened per call; pass ``transport`` to route
    requests through a mock in tests.
    """

    def __init__(
        self,
        api_key: Optional[str],
        rate_limiter: Optional[RateLimitBackend] = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        temperature: float = 0.7,
        top_p: float = 0.9,
    ):
        """
        Args:
            api_key: Bearer token; None makes every call raise NoApiKeyError.
            rate_limiter: Shared limiter updated after each call.
            base_url: Endpoint prefix; the mapped repo id is appended.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport override.
        """
        self.api_key = api_key
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport
        self.temperature = temperature
        self.top_p = top_p

    def _request_body(self, full_prompt: str, max_tokens: int) -> Dict[str, Any]:
        return {
            "inputs": full_prompt,
            "parameters": {
                "max_new_tokens": max_tokens,
                "temperature": self.temperature,
                "top_p": self.top_p,
                "do_sample": True,
                "return_full_text": False,
            },
        }

    async def call(
        self,
        model_id: str,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 512,
    ) -> ModelResult:
        """Call the hosted endpoint for a registry model id."""
        if not self.api_key:
            raise NoApiKeyError()

        hf_model = hosted_model_name(model_id)
        if hf_model is None:
            raise UnknownModelError(model_id)

        url = f"{self.base_url}/{hf_model}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        body = self._request_body(build_prompt(prompt, system_prompt), max_tokens)

        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request to {hf_model} timed out: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Network connection failed: {e}") from e
        latency_ms = int((time.perf_counter() - start) * 1000)

        if response.status_code == 429:
            retry_after = parse_retry_after(response.headers.get("retry-after"))
            reset_time = time.time() + retry_after if retry_after is not None else None
            self.rate_limiter.record_rate_limited(reset_time)
            raise RateLimitedError(self.rate_limiter.get_status().get("resetTime"))

        if response.status_code >= 500:
            raise ApiError(
                f"Hugging Face API server error: {response.status_code}",
                status=response.status_code,
            )

        if response.status_code >= 400:
            raise ApiError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                status=response.status_code,
                retryable=False,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(f"Malformed JSON from Hugging Face API: {e}") from e

        text = extract_generated_text(data).strip()
        self.rate_limiter.record_success()
        logger.debug(f"Hosted response from {model_id} in {latency_ms}ms")

        return ModelResult(
            model_id=model_id,
            text=text,
            latency_ms=latency_ms,
            token_count=estimate_tokens(text),
            source=ModelSource.HOSTED,
        )

    async def health_check(self) -> bool:
        """Hosted calls are possible: credential set and quota available."""
        return bool(self.api_key) and not self.rate_limiter.check_limited()
