"""
Record Validation Utilities
Type-level checks applied to entity records before they enter the store.

Only the record contract is enforced here (enum membership, non-negative money,
well-formed times). Whether a record is *meaningful* (a client without a name,
a booking with zero travellers) is left to the presentation layer.
"""
import re
from decimal import Decimal
from typing import Any, Iterable, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

# Regex patterns
TIME_OF_DAY_PATTERN = re.compile(r'^([01]\d|2[0-3]):[0-5]\d$')


class ValidationError(Exception):
    """Custom exception for validation errors"""
    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(self.message)


def validate_choice(value: Any, choices: Iterable[str]) -> Tuple[bool, Optional[str]]:
    """
    Validate that a value is one of the allowed choices

    Args:
        value: Value to validate
        choices: Allowed values

    Returns:
        Tuple of (is_valid, error_message)
    """
    choices = tuple(choices)
    if value not in choices:
        return False, f"Invalid value {value!r}. Must be one of: {', '.join(choices)}"
    return True, None


def validate_non_negative(value: Any) -> Tuple[bool, Optional[str]]:
    """
    Validate that a value is a number greater than or equal to zero

    Args:
        value: Number to validate (int, float or Decimal)

    Returns:
        Tuple of (is_valid, error_message)
    """
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        return False, "Value must be a number"

    if value < 0:
        return False, "Value cannot be negative"

    return True, None


def validate_time_of_day(value: Any) -> Tuple[bool, Optional[str]]:
    """
    Validate a 24-hour HH:MM time string

    Args:
        value: Time string to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(value, str) or not TIME_OF_DAY_PATTERN.match(value):
        return False, f"Invalid time {value!r}. Expected HH:MM"
    return True, None


def ensure(result: Tuple[bool, Optional[str]], field: str) -> None:
    """Raise ValidationError for a failed (is_valid, error_message) check."""
    is_valid, error = result
    if not is_valid:
        logger.debug(f"Validation failed for {field}: {error}")
        raise ValidationError(f"{field}: {error}", field=field)
