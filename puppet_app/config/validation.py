"""Configuration validation utilities."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


KNOWN_FIELDS = {
    "name",
    "backend",
    "watchdog_timeout_seconds",
    "endpoint",
    "token",
    "cache_max_size",
    "backend_options",
}


class ConfigValidator:
    """Validates puppet session options."""

    @staticmethod
    def validate_options(params: dict[str, Any]) -> list[ValidationError]:
        """Validate a merged options mapping."""
        errors = []

        for key in params:
            if key not in KNOWN_FIELDS:
                errors.append(ValidationError(
                    field=key,
                    message="Unknown option",
                    value=params[key]
                ))

        if "name" in params:
            value = params["name"]
            if not isinstance(value, str) or not value:
                errors.append(ValidationError(
                    field="name",
                    message="Must be a non-empty string",
                    value=value
                ))

        if "backend" in params:
            value = params["backend"]
            if not isinstance(value, str) or not value:
                errors.append(ValidationError(
                    field="backend",
                    message="Must be a non-empty string",
                    value=value
                ))

        # None means "use the backend default"
        if params.get("watchdog_timeout_seconds") is not None:
            value = params["watchdog_timeout_seconds"]
            if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
                errors.append(ValidationError(
                    field="watchdog_timeout_seconds",
                    message="Must be a positive number",
                    value=value
                ))

        if "cache_max_size" in params:
            value = params["cache_max_size"]
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                errors.append(ValidationError(
                    field="cache_max_size",
                    message="Must be a positive integer",
                    value=value
                ))

        for key in ("endpoint", "token"):
            value = params.get(key)
            if value is not None and not isinstance(value, str):
                errors.append(ValidationError(
                    field=key,
                    message="Must be a string",
                    value=value
                ))

        if "backend_options" in params and not isinstance(params["backend_options"], dict):
            errors.append(ValidationError(
                field="backend_options",
                message="Must be a mapping",
                value=params["backend_options"]
            ))

        return errors
