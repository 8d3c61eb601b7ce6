"""Parsing of JSON returned by the completion endpoint."""

import json
import re
from typing import Any

from learnhub.llm.errors import ModelOutputError
from learnhub.logging import get_logger

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def _strip_fences(text: str) -> str:
    text = text.strip()
    match = _FENCE_RE.match(text)
    return match.group(1) if match else text


def parse_json_object(text: str | None, operation: str) -> dict[str, Any]:
    """Parse a model response that must be a JSON object.

    Raises:
        ModelOutputError: Response is empty, not JSON, or not an object
    """
    if not text:
        raise ModelOutputError(operation, text)

    try:
        data = json.loads(_strip_fences(text))
    except (json.JSONDecodeError, TypeError, ValueError):
        raise ModelOutputError(operation, text)

    if not isinstance(data, dict):
        raise ModelOutputError(operation, text)

    return data


def parse_string_list(text: str | None, key: str | None = None) -> list[str]:
    """Parse a JSON string array, optionally wrapped in ``{key: [...]}``.

    Never raises; returns an empty list on anything unexpected.
    """
    if not text:
        return []

    try:
        data = json.loads(_strip_fences(text))
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        logger.warning(f"Failed to parse model list output: {e}")
        return []

    if isinstance(data, dict):
        if key and isinstance(data.get(key), list):
            data = data[key]
        else:
            # JSON mode forces an object; take the first list value
            data = next((v for v in data.values() if isinstance(v, list)), [])

    if not isinstance(data, list):
        return []

    return [str(item) for item in data if isinstance(item, (str, int, float))]


def as_string_list(value: Any) -> list[str]:
    """Coerce an optional model field into a list of strings."""
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(v) for v in value if v is not None and not isinstance(v, (dict, list))]
    return []


def as_string_dict(value: Any) -> dict[str, str]:
    """Coerce an optional model field into a ``str -> str`` mapping."""
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items() if v is not None}
