"""
Lenient numeric coercion for loosely typed upstream fields.
"""

import json
import math
from typing import Any, Optional

from shared.errors import NormalizationError


def as_float(value: Any, default: float) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def as_int(value: Any, default: int) -> int:
    return int(as_float(value, float(default)))


def first_present(mapping: dict, *keys: str) -> Optional[Any]:
    """Value of the first key present with a non-null value."""
    for key in keys:
        value = mapping.get(key)
        if value is not None:
            return value
    return None


def load_json(endpoint: str, raw: str) -> Any:
    """Decode an upstream JSON body or raise NormalizationError."""
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise NormalizationError(endpoint, f"invalid JSON: {exc}") from exc
