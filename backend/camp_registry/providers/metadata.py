"""Metadata sanitization for vendor write calls.

Vendor metadata maps only accept flat scalar values.
"""

import json
from collections.abc import Mapping
from typing import Any

__all__ = ["MetadataValue", "sanitize_metadata"]

MetadataValue = str | int | float | bool


def sanitize_metadata(
    metadata: Mapping[str, Any] | None,
) -> dict[str, MetadataValue] | None:
    """Flatten caller metadata into a vendor-safe scalar map.

    - str, int, float and bool values pass through unchanged
    - None values are dropped
    - anything else (dicts, lists, ...) is serialized to compact JSON

    Args:
        metadata: Caller-supplied metadata. Not mutated.

    Returns:
        New sanitized dict, or None if the input is None or nothing survives.

    Example:
        >>> sanitize_metadata({"a": "x", "b": 5, "d": None, "e": {"f": 1}})
        {'a': 'x', 'b': 5, 'e': '{"f":1}'}
    """
    if metadata is None:
        return None

    sanitized: dict[str, MetadataValue] = {}
    for key, value in metadata.items():
        if value is None:
            continue
        if isinstance(value, str | int | float | bool):
            sanitized[key] = value
        else:
            sanitized[key] = json.dumps(value, separators=(",", ":"), default=str)

    return sanitized or None
