"""
Submission Validation

Checks and normalizes an incoming create-attempt request before anything is
dispatched. All problems are collected and raised together as one
ValidationError; unknown model ids raise UnknownModelError.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from utils.exceptions import UnknownModelError, ValidationError

from ..providers.registry import get_by_id

logger = logging.getLogger(__name__)

MAX_PROMPT_LENGTH = 2000
MAX_SYSTEM_PROMPT_LENGTH = 2000
MIN_MODELS = 1
MAX_MODELS = 3

KNOWN_LABS = ("practice-basics", "compare-basics", "system-prompt-lab")

_ANGLE_BRACKETS = re.compile(r"[<>]")
_JS_PROTOCOL = re.compile(r"javascript:", re.IGNORECASE)
_DATA_PROTOCOL = re.compile(r"data:", re.IGNORECASE)

INJECTION_PATTERNS = [
    re.compile(r"ignore\s+previous\s+instructions", re.IGNORECASE),
    re.compile(r"forget\s+everything", re.IGNORECASE),
    re.compile(r"system\s*:\s*you\s+are", re.IGNORECASE),
    re.compile(r"\[system\]", re.IGNORECASE),
    re.compile(r"<\|system\|>", re.IGNORECASE),
    re.compile(r"assistant\s*:\s*i\s+will", re.IGNORECASE),
    re.compile(r"human\s*:\s*actually", re.IGNORECASE),
]


@dataclass(frozen=True)
class AttemptRequest:
    """A validated, sanitized create-attempt request."""

    lab_id: str
    user_prompt: str
    models: Tuple[str, ...]
    system_prompt: Optional[str] = None


def sanitize_prompt(text: str) -> str:
    """Strip angle brackets and script/data URL schemes, then trim."""
    text = _ANGLE_BRACKETS.sub("", text)
    text = _JS_PROTOCOL.sub("", text)
    text = _DATA_PROTOCOL.sub("", text)
    return text.strip()


def detect_prompt_injection(prompt: str) -> List[str]:
    """Patterns that look like prompt injection. Informational only."""
    return [p.pattern for p in INJECTION_PATTERNS if p.search(prompt)]


def validate_model_selection(lab_id: str, models: List[str]) -> List[str]:
    """Model count rules, including per-lab rules."""
    errors: List[str] = []
    if len(models) < MIN_MODELS:
        errors.append("At least one model must be selected")
        return errors
    if len(models) > MAX_MODELS:
        errors.append(f"Maximum {MAX_MODELS} models allowed")
    if len(set(models)) != len(models):
        errors.append("Each model may only be selected once")
    if lab_id == "compare-basics" and len(models) < 2:
        errors.append("Compare lab requires at least 2 models")
    if lab_id == "practice-basics" and len(models) > 1:
        errors.append("Practice lab allows only 1 model")
    return errors


def validate_request(body: Mapping[str, Any]) -> AttemptRequest:
    """
    Validate a raw request mapping (camelCase keys, as received over HTTP).

    Raises:
        ValidationError: Shape, length or lab rules violated.
        UnknownModelError: A model id is not in the registry.
    """
    errors: List[str] = []

    lab_id = body.get("labId")
    if not isinstance(lab_id, str) or not lab_id.strip():
        errors.append("labId is required and must be a string")
        lab_id = ""
    elif lab_id not in KNOWN_LABS:
        errors.append(f"Unknown labId '{lab_id}'")

    raw_prompt = body.get("userPrompt")
    user_prompt = ""
    if not isinstance(raw_prompt, str):
        errors.append("userPrompt is required and must be a string")
    elif len(raw_prompt) > MAX_PROMPT_LENGTH:
        errors.append(f"Prompt must be {MAX_PROMPT_LENGTH} characters or less")
    else:
        user_prompt = sanitize_prompt(raw_prompt)
        if not user_prompt:
            errors.append("Prompt cannot be empty")

    raw_system = body.get("systemPrompt")
    system_prompt: Optional[str] = None
    if raw_system is not None:
        if not isinstance(raw_system, str):
            errors.append("systemPrompt must be a string")
        elif len(raw_system) > MAX_SYSTEM_PROMPT_LENGTH:
            errors.append(
                f"System prompt must be {MAX_SYSTEM_PROMPT_LENGTH} characters or less"
            )
        else:
            system_prompt = sanitize_prompt(raw_system) or None

    models = body.get("models")
    if not isinstance(models, (list, tuple)) or not all(isinstance(m, str) for m in models):
        errors.append("models is required and must be a list of model ids")
        models = []
    else:
        errors.extend(validate_model_selection(lab_id, list(models)))

    if errors:
        raise ValidationError(errors)

    for model_id in models:
        if get_by_id(model_id) is None:
            raise UnknownModelError(model_id)

    injected = detect_prompt_injection(user_prompt)
    if system_prompt:
        injected.extend(detect_prompt_injection(system_prompt))
    if injected:
        logger.warning(f"Possible prompt injection patterns detected: {injected}")

    return AttemptRequest(
        lab_id=lab_id,
        user_prompt=user_prompt,
        models=tuple(models),
        system_prompt=system_prompt,
    )
