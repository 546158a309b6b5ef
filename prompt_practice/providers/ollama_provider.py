"""
Ollama Provider Implementation

Local inference runtime for the ``local`` source class. Runs registry models
on an Ollama server and reports latency from the server's own timings.

Usage:
    provider = OllamaProvider(host="http://localhost:11434")
    result = await provider.call("local-small", "Explain quantum computing")
    print(result.text, result.latency_ms)
"""

import logging
import time
from typing import Any, List, Optional

import httpx
from ollama import AsyncClient, ResponseError

from utils.exceptions import ApiError, NetworkError, UnknownModelError

from .base import BaseProvider, ModelResult, ModelSource, estimate_tokens
from .registry import runtime_model_tag

logger = logging.getLogger(__name__)

DEFAULT_HOST = "http://localhost:11434"


class OllamaProvider(BaseProvider):
    """
    Ollama provider for local inference.

    Connects to an Ollama server (default: http://localhost:11434) and maps
    registry ids such as ``local-small`` to runtime tags.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        timeout: float = 120.0,
        temperature: float = 0.7,
        client: Optional[AsyncClient] = None,
    ):
        """
        Args:
            host: Ollama server URL.
            timeout: Request timeout in seconds.
            temperature: Sampling temperature.
            client: Pre-built client, mainly for tests.
        """
        self.host = host
        self.timeout = timeout
        self.temperature = temperature
        self._client = client or AsyncClient(host=host, timeout=timeout)

    async def call(
        self,
        model_id: str,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 512,
    ) -> ModelResult:
        """Generate text for a registry ``local`` model."""
        tag = runtime_model_tag(model_id)
        if tag is None:
            raise UnknownModelError(model_id)

        options = {"temperature": self.temperature, "num_predict": max_tokens}
        kwargs: dict = {"model": tag, "prompt": prompt, "options": options, "stream": False}
        if system_prompt:
            kwargs["system"] = system_prompt

        start = time.perf_counter()
        try:
            response = await self._client.generate(**kwargs)
        except ResponseError as e:
            raise ApiError(
                f"Ollama error for {tag}: {e.error}",
                status=e.status_code,
                retryable=e.status_code >= 500,
            ) from e
        except (ConnectionError, httpx.HTTPError) as e:
            raise NetworkError(f"Ollama unreachable at {self.host}: {e}") from e

        text = (response.get("response") or "").strip()
        if not text:
            raise ApiError(f"Ollama returned an empty response for {tag}")

        return ModelResult(
            model_id=model_id,
            text=text,
            latency_ms=self._latency_ms(response, start),
            token_count=response.get("eval_count") or estimate_tokens(text),
            source=ModelSource.LOCAL,
        )

    async def list_models(self) -> List[str]:
        """
        Tags pulled on the Ollama server.

        Raises:
            ApiError: the server answered with an error status.
            NetworkError: the server could not be reached.
        """
        try:
            response = await self._client.list()
        except ResponseError as e:
            raise ApiError(
                f"Ollama error listing models: {e.error}",
                status=e.status_code,
                retryable=e.status_code >= 500,
            ) from e
        except (ConnectionError, httpx.HTTPError) as e:
            raise NetworkError(f"Ollama unreachable at {self.host}: {e}") from e
        return [m.get("model") or m.get("name", "") for m in response.get("models", [])]

    async def health_check(self) -> bool:
        """Check if the Ollama server is reachable."""
        try:
            await self._client.list()
            return True
        except (ResponseError, ConnectionError, httpx.HTTPError) as e:
            logger.warning(f"Ollama health check failed: {e}")
            return False

    @staticmethod
    def _latency_ms(response: Any, start: float) -> int:
        # Ollama returns durations in nanoseconds
        total_ns = response.get("total_duration") or 0
        if total_ns:
            return int(total_ns / 1_000_000)
        return int((time.perf_counter() - start) * 1000)
