"""Payload caching for normalized entity records."""

from .payload_cache import MemoryPayloadCache, PayloadCache

__all__ = ["MemoryPayloadCache", "PayloadCache"]
