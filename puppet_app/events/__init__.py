"""Event publication for puppet sessions."""

from .bus import Event, EventBus

__all__ = ["Event", "EventBus"]
