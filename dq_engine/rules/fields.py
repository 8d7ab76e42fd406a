"""
Record field access helpers.

Records are mappings; rules address fields with dot-separated paths so
nested records (e.g., {"provider": {"id": "P100"}}) work the same way as
flat database rows.
"""

from collections.abc import Mapping
from typing import Any, Optional


def get_field(record: Mapping, path: str) -> Optional[Any]:
    """
    Safely retrieve a value from a record using dot notation.

    Args:
        record: The record to read
        path: Dot-separated path (e.g., "diagnosis_code", "provider.id")

    Returns:
        The value if found, None otherwise

    Examples:
        >>> get_field({"provider": {"id": "P100"}}, "provider.id")
        'P100'
        >>> get_field({"provider": {"id": "P100"}}, "provider.name") is None
        True
    """
    current: Any = record

    for key in path.split('.'):
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
        if current is None:
            return None

    return current


def is_missing(value: Any) -> bool:
    """NULL-like: None, or a string that is empty after stripping."""
    if value is None:
        return True
    if isinstance(value, str) and not value.strip():
        return True
    return False
