"""
Utility modules for the scaledtest backend.

This package contains shared utilities used across the application:
- logging_config: Structured logging setup and named loggers
- validation: UUID validation for identifiers forwarded to providers
"""

from backend.src.utils.logging_config import get_logger, init_logging
from backend.src.utils.validation import is_valid_uuid, validate_uuid, validate_uuids

__all__ = [
    "get_logger",
    "init_logging",
    "is_valid_uuid",
    "validate_uuid",
    "validate_uuids",
]
