"""
Error classification system for the puppet session layer.

This module provides a structured exception hierarchy separating lifecycle
misuse (programmer errors), payload errors (recoverable by the caller) and
backend errors (rejections and retryable transport failures).
"""

from .lifecycle import (
    LifecycleError,
    InvalidTransitionError,
    AlreadyOnError,
    AlreadyStartingError,
    NotLoggedInError,
    ConfigurationError,
)
from .payload import (
    PayloadError,
    NotFoundError,
    MalformedPayloadError,
)
from .backend import (
    BackendError,
    UnsupportedError,
    PermissionDeniedError,
    BackendFailureError,
)

__all__ = [
    # Lifecycle Errors
    "LifecycleError",
    "InvalidTransitionError",
    "AlreadyOnError",
    "AlreadyStartingError",
    "NotLoggedInError",
    "ConfigurationError",
    # Payload Errors
    "PayloadError",
    "NotFoundError",
    "MalformedPayloadError",
    # Backend Errors
    "BackendError",
    "UnsupportedError",
    "PermissionDeniedError",
    "BackendFailureError",
]
