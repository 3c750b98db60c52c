"""Helpers for turning raw model text into validated structured output."""

import json
import re
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from jobfit.utils.errors import ResponseParseError, ResponseValidationError

T = TypeVar("T", bound=BaseModel)

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.IGNORECASE | re.DOTALL)
_OPENING_FENCE = re.compile(r"^```(?:json)?", re.IGNORECASE)
_BLOCK_ID_PATTERN = re.compile(r"\(?BLOCK_ID:\s*[a-zA-Z0-9-]+\)?")


def clean_json_output(text: Optional[str]) -> str:
    """Strip markdown code fences the model sometimes wraps JSON in.

    Handles a missing closing fence, a missing opening fence and a
    case-insensitive ``json`` language tag.
    """
    if not text:
        return ""
    text = text.strip()
    match = _FENCE_PATTERN.search(text)
    if match:
        return match.group(1).strip()
    text = _OPENING_FENCE.sub("", text)
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def strip_block_ids(text: str) -> str:
    """Remove ``BLOCK_ID: <id>`` citations a model echoes into free text."""
    return _BLOCK_ID_PATTERN.sub("", text)


def parse_json_response(text: Optional[str], label: str = "response") -> Any:
    """Parse model output as JSON after removing code fences.

    Raises:
        ResponseValidationError: If the response is empty
        ResponseParseError: If the text is not valid JSON
    """
    cleaned = clean_json_output(text)
    if not cleaned:
        raise ResponseValidationError(f"Empty {label} from AI")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ResponseParseError(
            f"AI returned malformed JSON for {label}",
            details={"error": str(e), "preview": cleaned[:200]},
        ) from e


def parse_model(text: Optional[str], model: type[T], label: str = "response") -> T:
    """Parse and validate model output against a pydantic model.

    Raises:
        ResponseValidationError: If the JSON is not a valid ``model``
        ResponseParseError: If the text is not valid JSON
    """
    return validate_model(parse_json_response(text, label), model, label)


def validate_model(data: Any, model: type[T], label: str = "response") -> T:
    """Validate already-parsed JSON against a pydantic model."""
    if not isinstance(data, dict):
        raise ResponseValidationError(f"Expected a JSON object for {label}")
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise ResponseValidationError(
            f"Invalid {label} from AI: {e.error_count()} field error(s)",
            details={"errors": e.errors(include_url=False)},
        ) from e
