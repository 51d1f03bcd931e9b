"""
Input validation functions for search intents.

All validators raise ValidationError on invalid input. They are meant for
hosts that want to reject a bad intent with a clear message before
running a search; the engine itself tolerates whatever it is given.
"""

import re
from datetime import date, datetime
from typing import Optional, Tuple

from skusearch.exceptions import ValidationError
from skusearch.intent import OPERATOR_ALIASES, TIME_PRESETS, Operator, SearchIntent, SortDirection


# Maximum allowed values
MAX_LIMIT = 1000
MAX_RELATIVE_DAYS = 3650

_RELATIVE_RE = re.compile(r"^(\d+)d$", re.IGNORECASE)


def validate_limit(
    value: Optional[int],
    field: str = "limit",
    min_value: int = 1,
    max_value: int = MAX_LIMIT,
    allow_none: bool = True
) -> Optional[int]:
    """
    Validate a Top-N limit.

    Args:
        value: Limit value to validate
        field: Field name for error messages
        min_value: Minimum allowed value
        max_value: Maximum allowed value
        allow_none: Whether None (no limit) is allowed

    Returns:
        Validated limit or None

    Raises:
        ValidationError: If limit is out of range
    """
    if value is None:
        if allow_none:
            return None
        raise ValidationError(field, "Limit is required")

    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, "Must be an integer", value)

    if value < min_value:
        raise ValidationError(field, f"Must be at least {min_value}", value)

    if value > max_value:
        raise ValidationError(field, f"Cannot exceed {max_value}", value)

    return value


def validate_relative_window(
    value: str,
    field: str = "time_range",
    max_days: int = MAX_RELATIVE_DAYS
) -> int:
    """
    Validate a relative window such as "30d".

    Returns:
        Number of days

    Raises:
        ValidationError: If the value is not "<N>d" with 0 < N <= max_days
    """
    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    match = _RELATIVE_RE.match(value.strip())
    if not match:
        raise ValidationError(field, "Expected a relative window like '30d'", value)

    days = int(match.group(1))
    if days <= 0:
        raise ValidationError(field, "Window must cover at least one day", value)
    if days > max_days:
        raise ValidationError(field, f"Window cannot exceed {max_days} days", value)

    return days


def validate_date_string(
    value: str,
    field: str = "date",
    format: str = "%Y-%m-%d"
) -> date:
    """
    Validate and parse a date string.

    Args:
        value: Date string to validate
        field: Field name for error messages
        format: Expected date format (default: YYYY-MM-DD)

    Returns:
        Parsed date object

    Raises:
        ValidationError: If date is invalid or in wrong format
    """
    if not value:
        raise ValidationError(field, "Date is required", value)

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    try:
        return datetime.strptime(value.strip(), format).date()
    except ValueError:
        raise ValidationError(
            field,
            f"Invalid date format. Expected {format}",
            value
        )


def validate_sort_direction(
    value: Optional[str],
    field: str = "sort.direction"
) -> SortDirection:
    """Validate a sort direction; None defaults to descending."""
    if value is None or value == "":
        return SortDirection.DESC

    if isinstance(value, SortDirection):
        return value

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    text = value.lower().strip()
    if text not in ("asc", "desc"):
        raise ValidationError(field, "Must be one of: asc, desc", value)

    return SortDirection(text)


def validate_operator(
    value: str,
    field: str = "filter.operator"
) -> Operator:
    """Validate a filter operator, accepting symbol and word forms (">", "GT")."""
    if isinstance(value, Operator):
        return value

    if not value or not isinstance(value, str):
        raise ValidationError(field, "Operator is required", value)

    key = value.strip().upper()
    if key not in OPERATOR_ALIASES:
        raise ValidationError(
            field,
            f"Must be one of: {', '.join(op.value for op in Operator)}",
            value
        )

    return OPERATOR_ALIASES[key]


def validate_percentiles(
    top: float,
    bottom: float,
    field: str = "volume_bands"
) -> Tuple[float, float]:
    """
    Validate volume band percentiles.

    Raises:
        ValidationError: If either is outside 0..100 or the bands overlap
    """
    for name, value in (("top_percentile", top), ("bottom_percentile", bottom)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{field}.{name}", "Must be a number", value)
        if not 0 <= value <= 100:
            raise ValidationError(f"{field}.{name}", "Must be between 0 and 100", value)

    if top + bottom > 100:
        raise ValidationError(
            field,
            "Top and bottom bands cannot overlap",
            f"{top} + {bottom}"
        )

    return float(top), float(bottom)


def validate_intent(intent: SearchIntent) -> SearchIntent:
    """
    Check the values of a parsed intent beyond what its schema enforces.

    Returns:
        The same intent

    Raises:
        ValidationError: On the first invalid value
    """
    validate_limit(intent.limit)

    if intent.time_range is not None:
        kind = intent.time_range.type
        value = intent.time_range.value
        if kind == "relative":
            validate_relative_window(value)
        elif kind == "absolute":
            validate_date_string(value[:10], field="time_range")
        elif value not in TIME_PRESETS:
            raise ValidationError(
                "time_range",
                f"Must be one of: {', '.join(sorted(TIME_PRESETS))}",
                value
            )

    for index, spec in enumerate(intent.filters):
        if not spec.field.strip():
            raise ValidationError(f"filters[{index}].field", "Field is required")
        if spec.operator.is_numeric:
            try:
                float(spec.value)
            except (TypeError, ValueError):
                raise ValidationError(
                    f"filters[{index}].value",
                    f"Operator {spec.operator.value} needs a numeric value",
                    spec.value
                )

    if intent.sort is not None and not intent.sort.field.strip():
        raise ValidationError("sort.field", "Field is required")

    return intent
