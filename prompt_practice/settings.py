"""
Pipeline Settings

One dataclass holding every tunable of the pipeline, loadable from the
environment (via config.py) or a YAML file.

Example YAML:

    storage:
      data_dir: ./data
    rubric:
      path: ./docs/rubric.md
      version: "1.0"
    hosted:
      base_url: https://api-inference.huggingface.co/models
      timeout_seconds: 30
    rate_limit:
      max_requests: 1000
      window_seconds: 3600
    retry:
      max_retries: 3
      base_delay: 1.0
      max_delay: 10.0
      backoff_multiplier: 2.0
    local_runtime:
      ollama_host: http://localhost:11434
    pipeline:
      attempt_timeout_seconds: 60
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from utils.exceptions import ConfigError
from utils.retry import RetryConfig

from .providers.huggingface_provider import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)


@dataclass
class PipelineSettings:
    """Runtime settings for dispatch, evaluation and storage."""

    data_dir: Path = Path("data")
    rubric_path: Optional[Path] = None
    rubric_version: Optional[str] = None
    api_key: Optional[str] = None
    hosted_base_url: str = DEFAULT_BASE_URL
    request_timeout: float = 30.0
    rate_limit_max_requests: int = 1000
    rate_limit_window_seconds: float = 3600.0
    retry: RetryConfig = field(default_factory=RetryConfig)
    ollama_host: Optional[str] = None
    attempt_timeout: float = 60.0

    @classmethod
    def from_env(cls) -> "PipelineSettings":
        """Settings from environment variables (.env is loaded by config.py)."""
        import config

        return cls(
            data_dir=config.DATA_DIR or Path("data"),
            rubric_path=config.RUBRIC_PATH,
            api_key=config.get_api_key(),
            ollama_host=config.get_ollama_host(),
            attempt_timeout=config.ATTEMPT_TIMEOUT,
        )

    @classmethod
    def from_yaml(cls, path: Path, api_key: Optional[str] = None) -> "PipelineSettings":
        """
        Load settings from YAML. Relative paths resolve against the file.

        The credential never comes from YAML; pass it explicitly or use
        from_env().
        """
        path = Path(path)
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read settings file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError(f"Settings file {path} must contain a mapping")

        base_dir = path.parent
        storage = _section(data, "storage")
        rubric = _section(data, "rubric")
        hosted = _section(data, "hosted")
        rate_limit = _section(data, "rate_limit")
        retry = _section(data, "retry")
        runtime = _section(data, "local_runtime")
        pipeline = _section(data, "pipeline")

        defaults = RetryConfig()
        try:
            return cls(
                data_dir=_resolve(base_dir, storage.get("data_dir", "data")),
                rubric_path=(
                    _resolve(base_dir, rubric["path"]) if rubric.get("path") else None
                ),
                rubric_version=(
                    str(rubric["version"]) if rubric.get("version") is not None else None
                ),
                api_key=api_key,
                hosted_base_url=hosted.get("base_url", DEFAULT_BASE_URL),
                request_timeout=float(hosted.get("timeout_seconds", 30.0)),
                rate_limit_max_requests=int(rate_limit.get("max_requests", 1000)),
                rate_limit_window_seconds=float(rate_limit.get("window_seconds", 3600.0)),
                retry=RetryConfig(
                    max_retries=int(retry.get("max_retries", defaults.max_retries)),
                    base_delay=float(retry.get("base_delay", defaults.base_delay)),
                    max_delay=float(retry.get("max_delay", defaults.max_delay)),
                    backoff_multiplier=float(
                        retry.get("backoff_multiplier", defaults.backoff_multiplier)
                    ),
                ),
                ollama_host=runtime.get("ollama_host"),
                attempt_timeout=float(pipeline.get("attempt_timeout_seconds", 60.0)),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid value in {path}: {e}") from e


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    return section


def _resolve(base_dir: Path, value: str) -> Path:
    p = Path(value).expanduser()
    return p if p.is_absolute() else (base_dir / p).resolve()
