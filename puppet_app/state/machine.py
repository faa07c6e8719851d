"""
Session on/off state machine.

Guards session transitions so only one may be in flight at a time and lets
coroutines synchronize on reaching a target state:

    OFF --begin(ON)--> PENDING_ON --complete(ON)--> ON
    ON --begin(OFF)--> PENDING_OFF --complete(OFF)--> OFF

OFF is both the initial state and re-enterable; there is no terminal state.
"""

import asyncio
from typing import Optional

from ..errors import InvalidTransitionError
from ..logging.config import get_state_logger, log_state_transition
from .models import STABLE_STATES, SessionState

state_logger = get_state_logger(__name__)


class StateMachine:
    """Tracks one session's state and wakes waiters on every change."""

    def __init__(self, name: str = "puppet"):
        self.name = name
        self.logger = state_logger
        self._state = SessionState.OFF
        self._previous: Optional[SessionState] = None
        # One event per state; set while the machine is in that state
        self._reached: dict[SessionState, asyncio.Event] = {
            state: asyncio.Event() for state in SessionState
        }
        self._reached[SessionState.OFF].set()
        self._settled = asyncio.Event()
        self._settled.set()

    def current_state(self) -> SessionState:
        """Current state; never blocks."""
        return self._state

    def is_on(self) -> bool:
        return self._state is SessionState.ON

    def is_off(self) -> bool:
        return self._state is SessionState.OFF

    def is_pending(self) -> bool:
        return self._state.pending

    def begin_transition(self, target: SessionState, trigger: str = "begin") -> None:
        """Record a pending transition toward ``target``."""
        self._require_stable_target(target, "begin")

        if self._state.pending:
            raise InvalidTransitionError(
                f"Transition to {self._state.target.value} already in flight",
                current_state=self._state.value,
                attempted_transition=target.value,
                context={"session": self.name}
            )

        if self._state is target:
            raise InvalidTransitionError(
                f"Session is already {target.value}",
                current_state=self._state.value,
                attempted_transition=target.value,
                context={"session": self.name}
            )

        self._previous = self._state
        self._set(SessionState.pending_toward(target), trigger)

    def complete_transition(self, target: SessionState, trigger: str = "complete") -> None:
        """Resolve the pending transition to the stable ``target``."""
        self._require_stable_target(target, "complete")

        if self._state is not SessionState.pending_toward(target):
            raise InvalidTransitionError(
                f"No pending transition toward {target.value}",
                current_state=self._state.value,
                attempted_transition=target.value,
                context={"session": self.name}
            )

        self._previous = None
        self._set(target, trigger)

    def rollback_transition(self, trigger: str = "rollback") -> None:
        """Abandon the pending transition and restore the previous stable state."""
        if not self._state.pending or self._previous is None:
            raise InvalidTransitionError(
                "No pending transition to roll back",
                current_state=self._state.value,
                attempted_transition="rollback",
                context={"session": self.name}
            )

        previous = self._previous
        self._previous = None
        self._set(previous, trigger)

    async def await_state(self, target: SessionState) -> None:
        """
        Suspend until the machine reaches ``target``.

        Every concurrent waiter resumes when the state is reached. There is
        no timeout here; wrap in ``asyncio.wait_for`` when one is needed.
        """
        if self._state is target:
            return
        await self._reached[target].wait()

    async def await_settled(self) -> SessionState:
        """Suspend until no transition is in flight and return the stable state."""
        if self._state.pending:
            await self._settled.wait()
        return self._state.target

    def _set(self, new_state: SessionState, trigger: str) -> None:
        old_state = self._state
        self._state = new_state

        self._reached[old_state].clear()
        self._reached[new_state].set()
        if new_state.pending:
            self._settled.clear()
        else:
            self._settled.set()

        log_state_transition(
            self.logger,
            session=self.name,
            from_state=old_state.value,
            to_state=new_state.value,
            trigger=trigger
        )

    def _require_stable_target(self, target: SessionState, operation: str) -> None:
        if target not in STABLE_STATES:
            raise InvalidTransitionError(
                f"Cannot {operation} a transition toward {target.value}",
                current_state=self._state.value,
                attempted_transition=target.value,
                context={"session": self.name}
            )
