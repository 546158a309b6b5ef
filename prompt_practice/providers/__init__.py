"""
Model Provider Layer

Registry, hosted and local providers, and the dispatcher that picks between
them with automatic fallback.

Usage:
    from prompt_practice.providers import Dispatcher, HuggingFaceProvider

    dispatcher = Dispatcher(hosted=HuggingFaceProvider(api_key=None))
    result = await dispatcher.dispatch("llama3.1-8b", "What is 2+2?")
    assert result.source == ModelSource.SAMPLE  # no key, so it fell back
"""

from .base import BaseProvider, ModelDescriptor, ModelResult, ModelSource, estimate_tokens
from .dispatcher import Dispatcher, HostedOutcome
from .huggingface_provider import HuggingFaceProvider
from .local_generator import LocalResponseGenerator
from .ollama_provider import OllamaProvider
from .registry import (
    MODEL_REGISTRY,
    describe_model_status,
    get_by_id,
    is_hosted_available,
    list_by_source,
    require_model,
)

__all__ = [
    # Types
    "BaseProvider",
    "ModelDescriptor",
    "ModelResult",
    "ModelSource",
    "estimate_tokens",
    # Registry
    "MODEL_REGISTRY",
    "describe_model_status",
    "get_by_id",
    "is_hosted_available",
    "list_by_source",
    "require_model",
    # Providers
    "Dispatcher",
    "HostedOutcome",
    "HuggingFaceProvider",
    "LocalResponseGenerator",
    "OllamaProvider",
]
