"""
Payload error classifications for entity lookups and normalization.

These exceptions are recoverable by the caller (skip the entity or refetch)
and must stay distinguishable from transport-level backend failures.
"""

from typing import Optional, Dict, Any


class PayloadError(Exception):
    """Base class for entity payload issues that can be handled gracefully."""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.context = context or {}
        self.recoverable = True


class NotFoundError(PayloadError):
    """Entity id is unknown to the backend."""

    def __init__(self, message: str, entity_kind: Optional[str] = None,
                 entity_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.entity_kind = entity_kind
        self.entity_id = entity_id


class MalformedPayloadError(PayloadError):
    """Raw payload does not satisfy the normalized schema."""

    def __init__(self, message: str, entity_kind: Optional[str] = None,
                 raw_payload: Optional[Any] = None,
                 missing_fields: Optional[list] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.entity_kind = entity_kind
        self.raw_payload = raw_payload
        self.missing_fields = missing_fields or []
