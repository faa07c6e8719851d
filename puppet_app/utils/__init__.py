"""
Shared helpers.

``call_with_retry`` is the helper the automation layer wraps around backend
calls that may fail with BackendFailureError::

    await call_with_retry(puppet.message_send_text, receiver, "hello")

Payload and lifecycle errors are never retried.
"""

from .retry import call_with_retry

__all__ = ["call_with_retry"]
