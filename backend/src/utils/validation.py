"""
Validation utilities for identifier formats.

User and team identifiers are interpolated into identity-provider admin
URLs, so they are checked against a strict UUID pattern first.
"""

import re
from typing import Iterable, Tuple

from backend.src.services.exceptions import ValidationError


# RFC 4122 UUID, versions 1-5, variant 8/9/a/b. Applied with fullmatch.
UUID_REGEX = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
    re.IGNORECASE,
)

UUID_V4_REGEX = re.compile(
    r"[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}",
    re.IGNORECASE,
)


def is_valid_uuid(value: str) -> bool:
    """
    Check whether a value is a valid UUID (any version 1-5).

    Args:
        value: Candidate identifier

    Returns:
        True if the value is a well-formed UUID string

    Example:
        >>> is_valid_uuid("3f2b8c1e-9d4a-4e6b-8f1a-2c3d4e5f6a7b")
        True
        >>> is_valid_uuid("../admin")
        False
    """
    if not isinstance(value, str):
        return False
    return bool(UUID_REGEX.fullmatch(value))


def is_valid_uuid_v4(value: str) -> bool:
    """Check whether a value is a valid version 4 UUID."""
    if not isinstance(value, str):
        return False
    return bool(UUID_V4_REGEX.fullmatch(value))


def validate_uuid(value: str, field_name: str) -> None:
    """
    Validate a UUID and raise if it is malformed.

    Args:
        value: Candidate identifier
        field_name: Field name used in the error message

    Raises:
        ValidationError: If the value is not a valid UUID
    """
    if not is_valid_uuid(value):
        raise ValidationError(f"{field_name} must be a valid UUID", field=field_name)


def validate_uuid_v4(value: str, field_name: str) -> None:
    """Validate a version 4 UUID and raise if it is malformed."""
    if not is_valid_uuid_v4(value):
        raise ValidationError(f"{field_name} must be a valid UUID v4", field=field_name)


def validate_uuids(values: Iterable[Tuple[str, str]]) -> None:
    """
    Validate several (value, field_name) pairs, failing on the first bad one.

    Raises:
        ValidationError: For the first value that is not a valid UUID
    """
    for value, field_name in values:
        validate_uuid(value, field_name)
