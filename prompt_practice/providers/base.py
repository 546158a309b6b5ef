"""
Provider Abstraction Layer

Shared types for every model source: hosted inference, deterministic local
samples and the local inference runtime.

Usage:
    from prompt_practice.providers import Dispatcher

    dispatcher = Dispatcher.from_settings(settings)
    result = await dispatcher.dispatch("mistral-7b", "Explain photosynthesis")
    print(result.text, result.source)
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ModelSource(str, Enum):
    """Where a result actually came from."""

    HOSTED = "hosted"
    SAMPLE = "sample"
    LOCAL = "local"


@dataclass(frozen=True)
class ModelDescriptor:
    """Catalog entry for a selectable model."""

    id: str
    display_name: str
    source: ModelSource
    max_tokens: int = 512

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "sourceClass": self.source.value,
            "maxTokens": self.max_tokens,
        }


@dataclass(frozen=True)
class ModelResult:
    """One model's output for one attempt."""

    model_id: str
    text: str
    latency_ms: int
    token_count: int
    source: ModelSource

    def with_identity(self, model_id: str, source: ModelSource) -> "ModelResult":
        """Copy with a different reported model id and source."""
        return ModelResult(
            model_id=model_id,
            text=self.text,
            latency_ms=self.latency_ms,
            token_count=self.token_count,
            source=source,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "modelId": self.model_id,
            "response": self.text,
            "latency": self.latency_ms,
            "tokenCount": self.token_count,
            "source": self.source.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ModelResult":
        return cls(
            model_id=data["modelId"],
            text=data.get("response", ""),
            latency_ms=int(data.get("latency", 0)),
            token_count=int(data.get("tokenCount", 0)),
            source=ModelSource(data.get("source", ModelSource.SAMPLE.value)),
        )


def estimate_tokens(text: str) -> int:
    """Rough token estimate: characters / 4, rounded half up."""
    return int(len(text) / 4 + 0.5)


class BaseProvider(ABC):
    """
    A remote or runtime-backed text generator.

    Implementations raise a ProviderError subclass on failure; the dispatcher
    decides what to substitute.
    """

    @abstractmethod
    async def call(
        self,
        model_id: str,
        prompt: str,
        system_prompt: Optional[str] = None,
        max_tokens: int = 512,
    ) -> ModelResult:
        """
        Generate a response for one registry model id.

        Returns:
            ModelResult carrying the requested model id.
        """
        ...

    async def health_check(self) -> bool:
        """Check if the provider is reachable. Defaults to True."""
        return True
