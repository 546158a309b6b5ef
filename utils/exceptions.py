"""
Custom exception hierarchy for Prompt Practice.

All project-specific exceptions inherit from PromptPracticeError. Each class
carries a stable ``code`` that ends up in persisted error records.
"""

from typing import List, Optional


class PromptPracticeError(Exception):
    """Base exception for Prompt Practice."""

    code = "UNKNOWN_ERROR"
    retryable = False


class ConfigError(PromptPracticeError):
    """Invalid or missing configuration."""

    code = "CONFIG_ERROR"


class ValidationError(PromptPracticeError):
    """Submission request failed validation."""

    code = "VALIDATION_ERROR"

    def __init__(self, errors: List[str], attempt_id: Optional[str] = None) -> None:
        self.errors = list(errors)
        self.attempt_id = attempt_id
        super().__init__("; ".join(self.errors) or "Invalid request")


class UnknownModelError(PromptPracticeError):
    """Model id is not present in the registry."""

    code = "UNKNOWN_MODEL"

    def __init__(self, model_id: str, attempt_id: Optional[str] = None) -> None:
        self.model_id = model_id
        self.attempt_id = attempt_id
        super().__init__(f"Unknown model: {model_id}")


class AttemptNotFoundError(PromptPracticeError):
    """No attempt or evaluation record exists for the id."""

    code = "NOT_FOUND"


class StorageError(PromptPracticeError):
    """Error reading or writing persisted records."""

    code = "STORAGE_ERROR"
    retryable = True


class ReportingError(PromptPracticeError):
    """Error during report generation."""

    code = "REPORTING_ERROR"


class ProviderError(PromptPracticeError):
    """Failure while calling a model provider."""

    code = "PROVIDER_ERROR"

    def __init__(self, message: str, retryable: bool = False) -> None:
        super().__init__(message)
        self.retryable = retryable


class NoApiKeyError(ProviderError):
    """Hosted provider credential is not configured."""

    code = "NO_API_KEY"

    def __init__(self, message: str = "HUGGINGFACE_API_KEY not configured") -> None:
        super().__init__(message, retryable=False)


class RateLimitedError(ProviderError):
    """Hosted provider quota is exhausted until ``reset_time``."""

    code = "RATE_LIMITED"

    def __init__(self, reset_time: Optional[float] = None, message: str = "") -> None:
        super().__init__(
            message or "Hugging Face quota exceeded. Rate limit active.", retryable=True
        )
        self.reset_time = reset_time


class ApiError(ProviderError):
    """Remote endpoint returned an error status or a malformed body."""

    code = "API_ERROR"

    def __init__(
        self, message: str, status: Optional[int] = None, retryable: bool = True
    ) -> None:
        super().__init__(message, retryable=retryable)
        self.status = status


class NetworkError(ProviderError):
    """Transport-level failure (DNS, connect, timeout)."""

    code = "NETWORK_ERROR"

    def __init__(self, message: str = "Network connection failed") -> None:
        super().__init__(message, retryable=True)
