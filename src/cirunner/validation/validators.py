"""
Validation functions for runner launch parameters.

Each validator returns the normalized value or raises ValidationError
naming the offending field.
"""

import re
from typing import Any, Dict, List, Optional, Union

from .exceptions import ValidationError

# Seconds per unit accepted by parse_duration
_DURATION_UNITS = {
    "ms": 0.001, "msec": 0.001, "millisecond": 0.001, "milliseconds": 0.001,
    "s": 1, "sec": 1, "secs": 1, "second": 1, "seconds": 1,
    "m": 60, "min": 60, "mins": 60, "minute": 60, "minutes": 60,
    "h": 3600, "hr": 3600, "hrs": 3600, "hour": 3600, "hours": 3600,
    "d": 86400, "day": 86400, "days": 86400,
    "w": 604800, "week": 604800, "weeks": 604800,
}

_DURATION_TOKEN = re.compile(r"(\d+(?:\.\d+)?)\s*([a-zA-Z]+)")

_RUNNER_NAME = re.compile(r'^[a-zA-Z0-9][a-zA-Z0-9_.-]*$')


def validate_positive_integer(
    value: Any,
    min_value: int = 1,
    max_value: Optional[int] = None,
    field_name: str = "value"
) -> int:
    """
    Validate that a value is an integer inside the given bounds.

    Args:
        value: Value to validate
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive), None for no limit
        field_name: Name of the field being validated

    Returns:
        Validated integer value

    Raises:
        ValidationError: If validation fails
    """
    if isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    try:
        int_value = int(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be a valid integer, got {value}",
            field_name=field_name,
            value=value
        )
    if int_value < min_value:
        raise ValidationError(
            f"{field_name} must be >= {min_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    if max_value is not None and int_value > max_value:
        raise ValidationError(
            f"{field_name} must be <= {max_value}, got {int_value}",
            field_name=field_name,
            value=value
        )
    return int_value


def validate_positive_float(
    value: Any,
    min_value: float = 0.0,
    max_value: Optional[float] = None,
    field_name: str = "value"
) -> float:
    """
    Validate that a value is a number inside the given bounds.

    Args:
        value: Value to validate
        min_value: Minimum allowed value (inclusive)
        max_value: Maximum allowed value (inclusive), None for no limit
        field_name: Name of the field being validated

    Returns:
        Validated float value

    Raises:
        ValidationError: If validation fails
    """
    try:
        float_value = float(value)
    except (ValueError, TypeError):
        raise ValidationError(
            f"{field_name} must be a valid number, got {value}",
            field_name=field_name,
            value=value
        )
    if float_value < min_value:
        raise ValidationError(
            f"{field_name} must be >= {min_value}, got {float_value}",
            field_name=field_name,
            value=value
        )
    if max_value is not None and float_value > max_value:
        raise ValidationError(
            f"{field_name} must be <= {max_value}, got {float_value}",
            field_name=field_name,
            value=value
        )
    return float_value


def validate_enum_choice(
    value: Any,
    choices: List[str],
    field_name: str = "value",
    case_sensitive: bool = True
) -> str:
    """
    Validate that a value is one of the allowed choices.

    Args:
        value: Value to validate
        choices: List of allowed choices
        field_name: Name of the field being validated
        case_sensitive: Whether the comparison should be case-sensitive

    Returns:
        The matching choice, in the case used by ``choices``

    Raises:
        ValidationError: If value is not in choices
    """
    str_value = str(value)

    if case_sensitive:
        if str_value not in choices:
            raise ValidationError(
                f"{field_name} must be one of {choices}, got {value}",
                field_name=field_name,
                value=value
            )
        return str_value

    lower_choices = [choice.lower() for choice in choices]
    lower_value = str_value.lower()
    if lower_value not in lower_choices:
        raise ValidationError(
            f"{field_name} must be one of {choices}, got {value}",
            field_name=field_name,
            value=value
        )
    return choices[lower_choices.index(lower_value)]


def validate_boolean(value: Any, field_name: str = "value") -> bool:
    """
    Validate a boolean flag, accepting the usual string spellings from the environment.

    Raises:
        ValidationError: If the value is not a recognizable boolean
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off", ""):
        return False
    raise ValidationError(
        f"{field_name} must be a boolean, got {value}",
        field_name=field_name,
        value=value
    )


def validate_string_list(value: Any, field_name: str = "value") -> List[str]:
    """
    Normalize a list option; a single string is split on commas.
    """
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    raise ValidationError(
        f"{field_name} must be a list or a comma-separated string",
        field_name=field_name,
        value=value
    )


def validate_runner_name(name: Any, field_name: str = "name") -> str:
    """
    Validate the runner name displayed by the CI platform.

    Raises:
        ValidationError: If the name is empty or contains unsupported characters
    """
    if not name or not isinstance(name, str):
        raise ValidationError(
            f"{field_name} must be a non-empty string",
            field_name=field_name,
            value=name
        )
    if not _RUNNER_NAME.match(name):
        raise ValidationError(
            f"{field_name} must start with an alphanumeric character and contain only "
            f"alphanumeric characters, dots, underscores, and hyphens: {name}",
            field_name=field_name,
            value=name
        )
    return name


def validate_labels(labels: Union[str, List[str]], field_name: str = "labels") -> List[str]:
    """
    Normalize a comma-delimited label string (or list) into a list of labels.

    Raises:
        ValidationError: If no label remains after stripping blanks
    """
    if isinstance(labels, str):
        items = labels.split(",")
    elif isinstance(labels, (list, tuple)):
        items = [str(item) for item in labels]
    else:
        raise ValidationError(
            f"{field_name} must be a comma-separated string or a list",
            field_name=field_name,
            value=labels
        )

    result = [item.strip() for item in items if item.strip()]
    if not result:
        raise ValidationError(
            f"{field_name} must contain at least one label",
            field_name=field_name,
            value=labels
        )
    return result


def parse_duration(value: Any, field_name: str = "duration") -> int:
    """
    Parse a duration into whole seconds.

    Accepts an integer (or integer string) number of seconds, a human
    readable duration such as ``"5 minutes"``, ``"1h30m"`` or ``"90s"``,
    and ``"never"`` which maps to 0 (disabled).

    Args:
        value: Raw duration value
        field_name: Name of the field being validated

    Returns:
        Number of seconds, 0 meaning disabled

    Raises:
        ValidationError: If the value cannot be parsed
    """
    if isinstance(value, bool):
        raise ValidationError(
            f"{field_name} must be a duration, got {value}",
            field_name=field_name,
            value=value
        )
    if isinstance(value, (int, float)):
        return max(int(value), 0)

    text = str(value).strip().lower()
    if text in ("never", ""):
        return 0
    if re.fullmatch(r"-?\d+", text):
        return max(int(text), 0)

    total = 0.0
    position = 0
    for match in _DURATION_TOKEN.finditer(text):
        gap = text[position:match.start()]
        if gap.strip(" ,") and gap.strip(" ,") != "and":
            break
        unit = _DURATION_UNITS.get(match.group(2))
        if unit is None:
            raise ValidationError(
                f"{field_name} has an unknown time unit '{match.group(2)}': {value}",
                field_name=field_name,
                value=value
            )
        total += float(match.group(1)) * unit
        position = match.end()

    if position == 0 or text[position:].strip(" ,"):
        raise ValidationError(
            f"{field_name} must be seconds, a duration like '5 minutes', or 'never': {value}",
            field_name=field_name,
            value=value
        )
    return int(total)


def parse_key_value_pairs(items: Any, field_name: str = "metadata") -> Dict[str, Optional[str]]:
    """
    Parse ``key=value`` items into a dictionary.

    Only the first ``=`` splits; an item without a value maps to None.

    Raises:
        ValidationError: If an item has an empty key
    """
    if items is None:
        return {}
    if isinstance(items, dict):
        return {str(key): (None if value is None else str(value)) for key, value in items.items()}
    if isinstance(items, str):
        items = [items]

    result: Dict[str, Optional[str]] = {}
    for item in items:
        key, sep, value = str(item).partition("=")
        key = key.strip()
        if not key:
            raise ValidationError(
                f"{field_name} entry '{item}' has an empty key (expected key=value)",
                field_name=field_name,
                value=item
            )
        result[key] = value if sep and value else None
    return result
