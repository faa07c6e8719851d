"""
Backend error classifications for mutating actions and optional features.

Only BackendFailureError is transport-level and safe to retry with backoff.
"""

from typing import Optional, Dict, Any


class BackendError(Exception):
    """Base class for errors raised by a concrete puppet backend."""

    def __init__(self, message: str, operation: Optional[str] = None,
                 context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.operation = operation
        self.context = context or {}
        self.recoverable = False


class UnsupportedError(BackendError):
    """Operation is not implemented by this backend."""


class PermissionDeniedError(BackendError):
    """Backend rejected the action for the current identity."""

    def __init__(self, message: str, target_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.target_id = target_id


class BackendFailureError(BackendError):
    """Transport or bridge failure; the caller may retry with backoff."""

    def __init__(self, message: str, retry_count: int = 0,
                 max_retries: int = 3, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_count = retry_count
        self.max_retries = max_retries
        self.recoverable = True
