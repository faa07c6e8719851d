"""
Lifecycle error classifications for session misuse.

These exceptions represent programmer errors in driving the session state
machine. They are surfaced immediately and are never retried.
"""

from typing import Optional, Dict, Any


class LifecycleError(Exception):
    """Base class for session lifecycle misuse."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = False


class InvalidTransitionError(LifecycleError):
    """State machine transition requested from an incompatible state."""

    def __init__(self, message: str, current_state: Optional[str] = None,
                 attempted_transition: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.current_state = current_state
        self.attempted_transition = attempted_transition


class AlreadyOnError(LifecycleError):
    """start() called on a session that is already on."""


class AlreadyStartingError(LifecycleError):
    """start() called while a previous start() is still in flight."""


class NotLoggedInError(LifecycleError):
    """Operation requires a logged-in session identity."""

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.operation = operation


class ConfigurationError(LifecycleError):
    """Session options failed validation at construction time."""

    def __init__(self, message: str, errors: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []
