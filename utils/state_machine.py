"""
Async State Machine

Drives the evaluation status lifecycle:

    queued -> running -> success | partial | error | timeout
    queued -> error        (failure before any dispatch)

Terminal states are final. Every accepted transition is recorded and handed
to the registered async listeners, which the pipeline uses to persist the
Evaluation record.

Usage:
    sm = StateMachine(
        initial_state=AttemptStatus.QUEUED,
        allowed_transitions=EVALUATION_TRANSITIONS,
        terminal_states=TERMINAL_STATUSES,
    )
    sm.on_transition(persist)
    await sm.transition_to(AttemptStatus.RUNNING, reason="dispatch started")
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, Generic, Iterable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=Enum)

TransitionListener = Callable[[S, S, str], Awaitable[None]]


@dataclass(frozen=True)
class StateTransition(Generic[S]):
    from_state: S
    to_state: S
    at: datetime
    reason: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_state.value,
            "to": self.to_state.value,
            "at": self.at.isoformat(),
            "reason": self.reason,
        }


class StateMachine(Generic[S]):
    """Enum-valued state machine with an optional transition graph."""

    def __init__(
        self,
        initial_state: S,
        allowed_transitions: Optional[Dict[S, List[S]]] = None,
        terminal_states: Iterable[S] = (),
        max_history: int = 100,
    ):
        """
        Args:
            initial_state: Starting state.
            allowed_transitions: Valid targets per state; None allows any move.
            terminal_states: States that accept no further transitions.
            max_history: Number of transitions retained.
        """
        self._state: S = initial_state
        self._allowed = allowed_transitions
        self._terminal = frozenset(terminal_states)
        self._history: Deque[StateTransition[S]] = deque(maxlen=max_history)
        self._listeners: List[TransitionListener] = []

    @property
    def state(self) -> S:
        return self._state

    @property
    def is_terminal(self) -> bool:
        return self._state in self._terminal

    @property
    def history(self) -> List[StateTransition[S]]:
        return list(self._history)

    def on_transition(self, listener: TransitionListener) -> None:
        """Add an async listener called as ``listener(old, new, reason)``."""
        self._listeners.append(listener)

    def can_transition(self, new_state: S) -> bool:
        if new_state == self._state or self.is_terminal:
            return False
        if self._allowed is None:
            return True
        return new_state in self._allowed.get(self._state, ())

    async def transition_to(self, new_state: S, reason: str = "") -> bool:
        """
        Move to ``new_state`` and notify listeners.

        Returns:
            False when the move is a no-op (same state) or rejected
            (terminal or outside the graph); True otherwise.
        """
        if new_state == self._state:
            return False
        if not self.can_transition(new_state):
            logger.warning(f"Rejected transition {self._state.value} -> {new_state.value} ({reason})")
            return False

        old_state, self._state = self._state, new_state
        self._history.append(
            StateTransition(old_state, new_state, datetime.now(timezone.utc), reason)
        )
        logger.debug(f"Status {old_state.value} -> {new_state.value} ({reason})")

        for listener in self._listeners:
            await listener(old_state, new_state, reason)
        return True

    def get_status(self) -> Dict[str, Any]:
        """Current state plus the last few transitions."""
        return {
            "state": self._state.value,
            "terminal": self.is_terminal,
            "recent": [t.to_dict() for t in list(self._history)[-5:]],
        }
