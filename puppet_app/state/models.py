"""
Session state data models.

A session is either OFF or ON, and either of those may be the target of a
single in-flight transition, represented by the PENDING_* members.
"""

from enum import Enum


class SessionState(str, Enum):
    """Session on/off states including in-flight transitions."""
    OFF = "off"
    PENDING_ON = "pending_on"
    ON = "on"
    PENDING_OFF = "pending_off"

    @property
    def pending(self) -> bool:
        """True while a transition is in flight."""
        return self in (SessionState.PENDING_ON, SessionState.PENDING_OFF)

    @property
    def target(self) -> "SessionState":
        """Stable state this state is at or heading to."""
        if self is SessionState.PENDING_ON:
            return SessionState.ON
        if self is SessionState.PENDING_OFF:
            return SessionState.OFF
        return self

    @classmethod
    def pending_toward(cls, target: "SessionState") -> "SessionState":
        """Pending member for a stable target."""
        return cls.PENDING_ON if target is cls.ON else cls.PENDING_OFF


STABLE_STATES = (SessionState.OFF, SessionState.ON)
