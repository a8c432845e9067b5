"""Input validation for deploy requests."""

import re
from typing import Any

from faas_core.constants import DEFAULT_FUNCTION_NAME, get_region_info
from faas_core.exceptions import ValidationError

# Function names become URL paths and directory names: start with a letter
# or digit, then letters, digits, underscores and hyphens
FUNCTION_NAME_RE = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_-]*$")

CRON_FIELD_RE = re.compile(r"^[0-9A-Za-z*/,\-?LW#]+$")


def validate_code(code: Any) -> str:
    """Raises ValidationError unless ``code`` is a non-empty string."""
    if not code or not isinstance(code, str):
        raise ValidationError("Code is required")
    return code


def validate_function_name(value: Any, max_length: int = 64) -> str:
    """Validate a function name, defaulting to "handler" when empty.

    Raises:
        ValidationError: If the name is not a safe identifier
    """
    if value is None or value == "":
        return DEFAULT_FUNCTION_NAME
    if not isinstance(value, str):
        raise ValidationError("functionName must be a string")
    if len(value) > max_length:
        raise ValidationError(f"functionName exceeds maximum length of {max_length}")
    if not FUNCTION_NAME_RE.match(value):
        raise ValidationError(
            "Invalid functionName: must start with alphanumeric and contain only "
            "alphanumeric characters, underscores, and hyphens"
        )
    return value


def validate_cron_schedule(value: Any) -> str | None:
    """Validate a five-field cron expression; empty means no schedule.

    Raises:
        ValidationError: If the expression is malformed
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError("cronSchedule must be a string")

    fields = value.split()
    if len(fields) != 5:
        raise ValidationError(
            f"Invalid cronSchedule: expected 5 fields, got {len(fields)}"
        )
    for item in fields:
        if not CRON_FIELD_RE.match(item):
            raise ValidationError(f"Invalid cronSchedule field: {item!r}")
    return " ".join(fields)


def validate_regions(value: Any) -> list[str] | None:
    """Validate a list of region codes against the known regions.

    Raises:
        ValidationError: If any region is unknown
    """
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(r, str) for r in value):
        raise ValidationError("regions must be a list of region codes")

    unknown = [r for r in value if get_region_info(r) is None]
    if unknown:
        raise ValidationError(f"Unknown regions: {', '.join(unknown)}")
    return list(dict.fromkeys(value)) or None
