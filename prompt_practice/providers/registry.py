"""
Provider Registry

Static catalog of selectable models plus the internal mappings the
dispatcher needs: hosted id to Hugging Face repo, hosted id to fallback
variant, sample id to generator variant and local id to runtime tag.
"""

import logging
from typing import Any, Dict, List, Optional

from utils.exceptions import UnknownModelError
from utils.rate_limiter import RateLimitBackend

from .base import ModelDescriptor, ModelSource

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 512

MODEL_REGISTRY: List[ModelDescriptor] = [
    # Local inference runtime
    ModelDescriptor("local-tiny", "Fast (Tiny)", ModelSource.LOCAL, DEFAULT_MAX_TOKENS),
    ModelDescriptor("local-small", "Better (Small)", ModelSource.LOCAL, DEFAULT_MAX_TOKENS),
    # Hosted (Hugging Face Inference API)
    ModelDescriptor("llama3.1-8b", "Llama 3.1 8B", ModelSource.HOSTED, DEFAULT_MAX_TOKENS),
    ModelDescriptor("mistral-7b", "Mistral 7B", ModelSource.HOSTED, DEFAULT_MAX_TOKENS),
    # Deterministic samples (always available)
    ModelDescriptor("local-stub", "Local Stub", ModelSource.SAMPLE, DEFAULT_MAX_TOKENS),
    ModelDescriptor("local-creative", "Local Creative", ModelSource.SAMPLE, DEFAULT_MAX_TOKENS),
    ModelDescriptor(
        "local-analytical", "Local Analytical", ModelSource.SAMPLE, DEFAULT_MAX_TOKENS
    ),
]

_BY_ID: Dict[str, ModelDescriptor] = {m.id: m for m in MODEL_REGISTRY}

HOSTED_MODEL_MAPPINGS: Dict[str, str] = {
    "llama3.1-8b": "meta-llama/Llama-3.1-8B-Instruct",
    "mistral-7b": "mistralai/Mistral-7B-Instruct-v0.3",
}

FALLBACK_VARIANTS: Dict[str, str] = {
    "llama3.1-8b": "stub",
    "mistral-7b": "analytical",
}
DEFAULT_FALLBACK_VARIANT = "stub"

SAMPLE_VARIANTS: Dict[str, str] = {
    "local-stub": "stub",
    "local-creative": "creative",
    "local-analytical": "analytical",
}

LOCAL_RUNTIME_MODELS: Dict[str, str] = {
    "local-tiny": "phi3:mini",
    "local-small": "llama3.2:3b",
}


def get_by_id(model_id: str) -> Optional[ModelDescriptor]:
    """Look up a model; None when the id is not registered."""
    return _BY_ID.get(model_id)


def require_model(model_id: str) -> ModelDescriptor:
    """Look up a model or raise UnknownModelError."""
    descriptor = _BY_ID.get(model_id)
    if descriptor is None:
        raise UnknownModelError(model_id)
    return descriptor


def list_by_source(source: Optional[ModelSource] = None) -> List[ModelDescriptor]:
    """All registered models, optionally filtered by source class."""
    if source is None:
        return list(MODEL_REGISTRY)
    return [m for m in MODEL_REGISTRY if m.source == source]


def hosted_model_name(model_id: str) -> Optional[str]:
    return HOSTED_MODEL_MAPPINGS.get(model_id)


def fallback_variant(model_id: str) -> str:
    """Generator variant substituted when a hosted or local model fails."""
    return FALLBACK_VARIANTS.get(model_id, DEFAULT_FALLBACK_VARIANT)


def sample_variant(model_id: str) -> str:
    return SAMPLE_VARIANTS.get(model_id, DEFAULT_FALLBACK_VARIANT)


def runtime_model_tag(model_id: str) -> Optional[str]:
    return LOCAL_RUNTIME_MODELS.get(model_id)


def is_hosted_available(api_key: Optional[str], limiter: RateLimitBackend) -> bool:
    """Hosted calls are worth attempting: credential present and not limited."""
    return bool(api_key) and not limiter.check_limited()


def describe_model_status(
    model_id: str,
    api_key: Optional[str],
    limiter: RateLimitBackend,
    runtime_configured: bool = False,
) -> Dict[str, Any]:
    """Availability summary for display next to a model picker."""
    descriptor = get_by_id(model_id)
    if descriptor is None:
        return {
            "isAvailable": False,
            "source": ModelSource.SAMPLE.value,
            "description": "Model not found",
        }

    if descriptor.source == ModelSource.HOSTED:
        if not api_key:
            description = "Sample responses (no API key configured)"
        elif limiter.check_limited():
            description = "Sample responses (rate limited)"
        else:
            return {
                "isAvailable": True,
                "source": ModelSource.HOSTED.value,
                "description": "Real AI model via Hugging Face API",
            }
        return {"isAvailable": True, "source": ModelSource.SAMPLE.value, "description": description}

    if descriptor.source == ModelSource.LOCAL:
        if runtime_configured:
            return {
                "isAvailable": True,
                "source": ModelSource.LOCAL.value,
                "description": "Local inference runtime",
            }
        return {
            "isAvailable": True,
            "source": ModelSource.SAMPLE.value,
            "description": "Sample responses (no local runtime configured)",
        }

    return {
        "isAvailable": True,
        "source": ModelSource.SAMPLE.value,
        "description": "Sample responses for demonstration",
    }
