"""
Input validation and sanitization utilities.
Used by the job API to check submissions and path parameters before any
job is created.
"""

from typing import Optional
import re

from shared_utils.error_handler import ValidationError


_UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$', re.IGNORECASE
)
_STORAGE_PATH_PATTERN = re.compile(r'^[A-Za-z0-9._\-/ ]+$')


class InputValidator:
    """Utility class for input validation."""

    @staticmethod
    def validate_non_empty_string(value: str, field_name: str) -> str:
        """Validate non-empty string.

        Args:
            value: String to validate
            field_name: Name of field for error messages

        Returns:
            Stripped string

        Raises:
            ValidationError: If validation fails
        """
        if not isinstance(value, str):
            raise ValidationError(f"{field_name} must be a string", context={"field": field_name})

        if not value or not value.strip():
            raise ValidationError(f"{field_name} cannot be empty", context={"field": field_name})

        return value.strip()

    @staticmethod
    def validate_optional_string(value: Optional[str], field_name: str) -> Optional[str]:
        """Stripped string, or None for missing/blank values."""
        if value is None:
            return None
        if not isinstance(value, str):
            raise ValidationError(f"{field_name} must be a string", context={"field": field_name})
        return value.strip() or None

    @staticmethod
    def validate_uuid(value: str, field_name: str = "id") -> str:
        """Validate UUID format.

        Raises:
            ValidationError: If validation fails
        """
        if not isinstance(value, str) or not _UUID_PATTERN.match(value):
            raise ValidationError(f"Invalid UUID format for {field_name}", context={"field": field_name})
        return value.lower()

    @staticmethod
    def validate_storage_path(value: str, max_length: int = 1024) -> str:
        """Validate an object storage path used as a job's ``input_ref``.

        Relative paths only: no leading slash, no ``..`` segments, no
        scheme prefix.

        Raises:
            ValidationError: If validation fails
        """
        path = InputValidator.validate_non_empty_string(value, "input_ref")

        if len(path) > max_length:
            raise ValidationError(f"input_ref too long (max {max_length} characters)")

        if path.startswith('/') or '..' in path.split('/'):
            raise ValidationError("input_ref must be a relative path without '..' segments")

        if not _STORAGE_PATH_PATTERN.match(path):
            raise ValidationError("input_ref contains unsupported characters")

        return path
