"""
Session state machine module.

Tracks the puppet session through OFF → PENDING_ON → ON → PENDING_OFF → OFF.
"""

from .machine import StateMachine
from .models import SessionState

__all__ = ["SessionState", "StateMachine"]
