"""Encoding of the ``*_json`` Text columns.

Lists, maps and embedding vectors are stored as compact JSON. Reads never
raise: a malformed column comes back as the empty value of its shape and is
logged.
"""

import json
from typing import Any

import numpy as np

from learnhub.logging import get_logger

logger = get_logger(__name__)

_COMPACT = (",", ":")


def _encode_extra(value: Any) -> Any:
    # numpy scalars and arrays leak in from similarity scoring
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"{type(value).__name__} is not JSON serializable")


def safe_json_dumps(data: Any, default: str = "{}") -> str:
    """Encode a column value; ``None`` and unencodable data give ``default``."""
    if data is None:
        return default

    try:
        return json.dumps(data, ensure_ascii=False, separators=_COMPACT, default=_encode_extra)
    except (TypeError, ValueError, OverflowError) as e:
        logger.warning(f"Could not encode JSON column: {e}")
        return default


def safe_json_loads(text: str | None, default: dict | list | None = None) -> Any:
    """Decode a column value, ``default`` (``{}``) when empty or malformed."""
    fallback = {} if default is None else default
    if not text:
        return fallback

    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        logger.warning(f"Could not decode JSON column: {e}")
        return fallback


def load_list(text: str | None) -> list:
    value = safe_json_loads(text, default=[])
    return value if isinstance(value, list) else []


def load_dict(text: str | None) -> dict:
    value = safe_json_loads(text, default={})
    return value if isinstance(value, dict) else {}


def load_vector(text: str | None) -> list[float] | None:
    """Decode a stored embedding; ``None`` when absent, empty or non-numeric."""
    values = load_list(text)
    if not values:
        return None
    try:
        return [float(v) for v in values]
    except (TypeError, ValueError):
        logger.warning("Stored embedding contains non-numeric values")
        return None
