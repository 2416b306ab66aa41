"""Input validation utilities for ancv."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional

from ancv.core.exceptions import ProtocolError


def parse_label(value: Any) -> int:
    """Parse an operator supplied label.

    Anything that is not an integer means "no label" and yields 0.

    Args:
        value: Raw answer from the operator (text, number or None).

    Returns:
        The label as an int.
    """
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else 0
    try:
        return int(str(value).strip())
    except ValueError:
        return 0


def pick(payload: Mapping[str, Any], *names: str) -> Any:
    """Return the first present value among ``names`` in ``payload``."""
    for name in names:
        if name in payload and payload[name] is not None:
            return payload[name]
    return None


def validate_path_field(
    payload: Mapping[str, Any], *names: str, required: bool = False
) -> Optional[Path]:
    """Validate a path-valued request field.

    Args:
        payload: Request payload.
        *names: Accepted field names, first one is canonical.
        required: Whether the field must be present.

    Returns:
        Path, or None when optional and absent or empty.

    Raises:
        ProtocolError: If the field is missing or not a string.
    """
    value = pick(payload, *names)
    if value is None or value == "":
        if required:
            raise ProtocolError(f"'{names[0]}' is required")
        return None
    if not isinstance(value, str):
        raise ProtocolError(f"'{names[0]}' must be a string path")
    return Path(value)


def validate_bool_field(payload: Mapping[str, Any], *names: str) -> bool:
    """Validate a boolean request field, defaulting to False.

    Raises:
        ProtocolError: If the field is present but not a boolean.
    """
    value = pick(payload, *names)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ProtocolError(f"'{names[0]}' must be a boolean")
    return value


def validate_payload(payload: Any) -> Mapping[str, Any]:
    """Ensure a request payload is a JSON object.

    Raises:
        ProtocolError: If the payload is not a mapping.
    """
    if not isinstance(payload, Mapping):
        raise ProtocolError("request body must be a JSON object")
    return payload
