"""
Centralized configuration for Prompt Practice.

Loads environment variables from .env and exposes resolved paths, the hosted
credential and the local runtime URL. PipelineSettings.from_env() reads from here.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

from utils.exceptions import ConfigError

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def get_path_var(var_name: str, default: str | None = None, required: bool = True) -> Path | None:
    """Retrieve a path from environment variables, resolving to absolute."""
    value = os.getenv(var_name, default)
    if not value:
        if required:
            raise ConfigError(f"Missing required environment variable '{var_name}'")
        return None
    return Path(value).expanduser().resolve()


def get_float_var(var_name: str, default: float) -> float:
    value = os.getenv(var_name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigError(f"{var_name} must be a number, got {value!r}") from e


def get_api_key() -> str | None:
    """Hosted inference credential; None means hosted models always fall back."""
    return os.getenv("HUGGINGFACE_API_KEY") or None


def get_ollama_host() -> str | None:
    """Local inference runtime URL, or None when no runtime is configured."""
    return os.getenv("OLLAMA_HOST") or None


# -- Paths -------------------------------------------------------------------

STATE_DIR = Path(os.getenv("PROMPT_PRACTICE_STATE_DIR", str(Path.home() / ".prompt_practice")))
DATA_DIR = get_path_var("PROMPT_PRACTICE_DATA_DIR", default="data")
RUBRIC_PATH = get_path_var("PROMPT_PRACTICE_RUBRIC", required=False)
LOG_DIR = STATE_DIR / "logs"

# -- Settings -----------------------------------------------------------------

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
DEBUG = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")
ATTEMPT_TIMEOUT = get_float_var("PROMPT_PRACTICE_ATTEMPT_TIMEOUT", 60.0)


def validate_config() -> None:
    """Create the state and data directories when missing."""
    for path_var in [STATE_DIR, DATA_DIR]:
        if path_var is not None and not path_var.exists():
            try:
                path_var.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                logger.warning(f"Could not create {path_var}: {e}")
