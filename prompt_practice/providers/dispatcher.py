"""
Dispatcher

Routes a model id to the hosted provider, the local runtime or the local
generator. Hosted handling is two explicit steps:

    outcome = await dispatcher.attempt_hosted(descriptor, prompt)
    result = outcome.result or dispatcher.resolve_fallback(model_id, prompt, None, outcome.error)

so a hosted failure never escapes ``dispatch()``. The only error callers see
is UnknownModelError.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional

from utils.exceptions import ApiError, ProviderError, RateLimitedError
from utils.rate_limiter import RateLimitBackend, configure_rate_limiter, get_rate_limiter

from .base import BaseProvider, ModelDescriptor, ModelResult, ModelSource
from .huggingface_provider import HuggingFaceProvider
from .local_generator import LocalResponseGenerator
from .registry import fallback_variant, require_model, sample_variant

logger = logging.getLogger(__name__)


@dataclass
class HostedOutcome:
    """Either a hosted result or the provider error that prevented one."""

    result: Optional[ModelResult] = None
    error: Optional[ProviderError] = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class Dispatcher:
    """Selects a source per model and substitutes local fallbacks on failure."""

    def __init__(
        self,
        hosted: BaseProvider,
        rate_limiter: Optional[RateLimitBackend] = None,
        generator: Optional[LocalResponseGenerator] = None,
        runtime: Optional[BaseProvider] = None,
    ):
        """
        Args:
            hosted: Hosted provider client.
            rate_limiter: Limiter consulted before any hosted call.
            generator: Deterministic local generator.
            runtime: Optional local inference runtime for ``local`` models.
        """
        self.hosted = hosted
        self.rate_limiter = rate_limiter or get_rate_limiter()
        self.generator = generator or LocalResponseGenerator()
        self.runtime = runtime

    @classmethod
    def from_settings(
        cls, settings, rate_limiter: Optional[RateLimitBackend] = None
    ) -> "Dispatcher":
        """
        Build the default provider stack from PipelineSettings.

        Without an explicit ``rate_limiter`` every dispatcher shares the
        process-wide limiter, configured with the quota from ``settings``.
        """
        from .ollama_provider import OllamaProvider

        limiter = rate_limiter or configure_rate_limiter(
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        )
        hosted = HuggingFaceProvider(
            api_key=settings.api_key,
            rate_limiter=limiter,
            base_url=settings.hosted_base_url,
            timeout=settings.request_timeout,
        )
        runtime = OllamaProvider(host=settings.ollama_host) if settings.ollama_host else None
        return cls(hosted=hosted, rate_limiter=limiter, runtime=runtime)

    async def dispatch(
        self,
        model_id: str,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> ModelResult:
        """
        Produce a result for one model.

        Raises:
            UnknownModelError: model_id is not registered.
        """
        descriptor = require_model(model_id)

        if descriptor.source == ModelSource.SAMPLE:
            return self.generator.generate(
                sample_variant(model_id), prompt, system_prompt, model_id=model_id
            )

        if descriptor.source == ModelSource.LOCAL:
            return await self._dispatch_local(descriptor, prompt, system_prompt)

        outcome = await self.attempt_hosted(descriptor, prompt, system_prompt)
        if outcome.ok:
            return outcome.result
        return self.resolve_fallback(model_id, prompt, system_prompt, outcome.error)

    async def attempt_hosted(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> HostedOutcome:
        """Call the hosted provider unless the limiter says not to."""
        if self.rate_limiter.check_limited():
            reset_time = self.rate_limiter.get_status().get("resetTime")
            return HostedOutcome(error=RateLimitedError(reset_time))

        try:
            result = await self.hosted.call(
                descriptor.id, prompt, system_prompt, max_tokens=descriptor.max_tokens
            )
        except ProviderError as e:
            return HostedOutcome(error=e)
        except Exception as e:
            return HostedOutcome(error=_unexpected(descriptor.id, e))
        return HostedOutcome(result=result)

    def resolve_fallback(
        self,
        model_id: str,
        prompt: str,
        system_prompt: Optional[str],
        error: Optional[ProviderError],
    ) -> ModelResult:
        """Local substitute that keeps the requested id and reports ``sample``."""
        variant = fallback_variant(model_id)
        if error is not None:
            logger.warning(
                f"{model_id} unavailable ({error.code}: {error}), "
                f"falling back to local '{variant}'"
            )
        result = self.generator.generate(variant, prompt, system_prompt)
        return result.with_identity(model_id, ModelSource.SAMPLE)

    async def _dispatch_local(
        self,
        descriptor: ModelDescriptor,
        prompt: str,
        system_prompt: Optional[str],
    ) -> ModelResult:
        if self.runtime is None:
            return self.resolve_fallback(descriptor.id, prompt, system_prompt, None)
        try:
            return await self.runtime.call(
                descriptor.id, prompt, system_prompt, max_tokens=descriptor.max_tokens
            )
        except ProviderError as e:
            return self.resolve_fallback(descriptor.id, prompt, system_prompt, e)
        except Exception as e:
            error = _unexpected(descriptor.id, e)
            return self.resolve_fallback(descriptor.id, prompt, system_prompt, error)

    async def dispatch_many(
        self,
        model_ids: Iterable[str],
        prompt: str,
        system_prompt: Optional[str] = None,
    ) -> Dict[str, ModelResult]:
        """Dispatch models concurrently; results keyed by model id."""
        ids = list(model_ids)
        for model_id in ids:
            require_model(model_id)
        results = await asyncio.gather(
            *(self.dispatch(model_id, prompt, system_prompt) for model_id in ids)
        )
        return dict(zip(ids, results))


def _unexpected(model_id: str, error: Exception) -> ApiError:
    logger.error(f"Unexpected {type(error).__name__} from provider for {model_id}: {error}")
    wrapped = ApiError(f"Unexpected provider failure: {error}", retryable=False)
    wrapped.__cause__ = error
    return wrapped
