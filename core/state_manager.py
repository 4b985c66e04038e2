"""
Core Module - State Manager.

============================================================
RESPONSIBILITY
============================================================
Owns the lifecycle state of one orchestrator instance.

- Tracks orchestrator state (uninitialized ... stopped)
- Validates every transition against one table
- Keeps a bounded transition history for auditing
- Notifies listeners on state change

============================================================
STATE MACHINE
============================================================
UNINITIALIZED -> INITIALIZING | SHUTTING_DOWN
INITIALIZING  -> RUNNING | STOPPED | SHUTTING_DOWN
RUNNING       -> SHUTTING_DOWN
SHUTTING_DOWN -> STOPPED
STOPPED       -> (terminal)

Transitions are synchronous: the orchestrator runs on a single
event loop, so a check-and-transition never interleaves with
another coroutine.

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set
import logging

from .exceptions import StateTransitionError


# ============================================================
# ORCHESTRATOR STATE
# ============================================================

class OrchestratorState(Enum):
    """Orchestrator lifecycle state."""

    UNINITIALIZED = "uninitialized"
    """Controller built, Manager not yet initialized."""

    INITIALIZING = "initializing"
    """Manager initialization in progress."""

    RUNNING = "running"
    """Steady state - Manager initialized, reporter active."""

    SHUTTING_DOWN = "shutting_down"
    """Shutdown sequence in progress."""

    STOPPED = "stopped"
    """Terminal state."""

    @property
    def is_terminal(self) -> bool:
        """Check if state is terminal."""
        return self == OrchestratorState.STOPPED

    @property
    def is_stopping(self) -> bool:
        """Check if shutdown has been entered."""
        return self in (OrchestratorState.SHUTTING_DOWN, OrchestratorState.STOPPED)


# ============================================================
# STATE TRANSITIONS
# ============================================================

VALID_TRANSITIONS: Dict[OrchestratorState, Set[OrchestratorState]] = {
    OrchestratorState.UNINITIALIZED: {
        OrchestratorState.INITIALIZING,
        OrchestratorState.SHUTTING_DOWN,
    },
    OrchestratorState.INITIALIZING: {
        OrchestratorState.RUNNING,
        OrchestratorState.STOPPED,
        OrchestratorState.SHUTTING_DOWN,
    },
    OrchestratorState.RUNNING: {
        OrchestratorState.SHUTTING_DOWN,
    },
    OrchestratorState.SHUTTING_DOWN: {
        OrchestratorState.STOPPED,
    },
    OrchestratorState.STOPPED: set(),  # Terminal - no transitions
}


@dataclass
class StateTransition:
    """Record of a state transition."""

    transition_id: str
    from_state: OrchestratorState
    to_state: OrchestratorState
    reason: str
    triggered_by: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    context: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "transition_id": self.transition_id,
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "reason": self.reason,
            "triggered_by": self.triggered_by,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context,
        }


StateListener = Callable[[StateTransition], None]


# ============================================================
# STATE MANAGER
# ============================================================

class StateManager:
    """
    Manages orchestrator state with validation and notifications.
    """

    def __init__(
        self,
        initial_state: OrchestratorState = OrchestratorState.UNINITIALIZED,
        max_history: int = 100,
    ):
        self._state = initial_state
        self._reason = "Controller created"
        self._triggered_by = "system"
        self._transition_count = 0
        self._last_transition: Optional[StateTransition] = None
        self._history: List[StateTransition] = []
        self._max_history = max_history

        self._listeners: List[StateListener] = []
        self._logger = logging.getLogger(__name__)

    @property
    def state(self) -> OrchestratorState:
        """Get current state."""
        return self._state

    @property
    def reason(self) -> str:
        """Get reason for current state."""
        return self._reason

    @property
    def last_transition(self) -> Optional[StateTransition]:
        return self._last_transition

    def get_history(self, limit: int = 10) -> List[StateTransition]:
        """Get transition history."""
        return self._history[-limit:]

    def can_transition_to(self, target_state: OrchestratorState) -> bool:
        """Check if transition to target state is valid."""
        return target_state in VALID_TRANSITIONS.get(self._state, set())

    def transition_to(
        self,
        target_state: OrchestratorState,
        reason: str,
        triggered_by: str = "system",
        context: Optional[Dict[str, Any]] = None,
    ) -> StateTransition:
        """
        Transition to a new state.

        Args:
            target_state: Target state
            reason: Reason for transition
            triggered_by: Who/what triggered the transition
            context: Additional context

        Returns:
            StateTransition record

        Raises:
            StateTransitionError: If transition is invalid
        """
        if not self.can_transition_to(target_state):
            raise StateTransitionError(
                message=f"Invalid state transition: {self._state.value} -> {target_state.value}",
                from_state=self._state.value,
                to_state=target_state.value,
                reason=reason,
            )

        self._transition_count += 1
        transition = StateTransition(
            transition_id=f"transition_{self._transition_count}",
            from_state=self._state,
            to_state=target_state,
            reason=reason,
            triggered_by=triggered_by,
            context=context or {},
        )

        old_state = self._state
        self._state = target_state
        self._reason = reason
        self._triggered_by = triggered_by
        self._last_transition = transition

        self._history.append(transition)
        if len(self._history) > self._max_history:
            self._history = self._history[-self._max_history:]

        self._logger.info(
            f"State transition: {old_state.value} -> {target_state.value} "
            f"| reason={reason} | triggered_by={triggered_by}"
        )

        self._notify_listeners(transition)

        return transition

    def register_listener(self, listener: StateListener) -> None:
        """Register a state change listener."""
        self._listeners.append(listener)

    def unregister_listener(self, listener: StateListener) -> None:
        """Unregister a state change listener."""
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _notify_listeners(self, transition: StateTransition) -> None:
        for listener in list(self._listeners):
            try:
                listener(transition)
            except Exception as e:
                self._logger.error(
                    f"State listener error: {e}",
                    exc_info=True,
                )


# ============================================================
# EXPORTS
# ============================================================

__all__ = [
    "OrchestratorState",
    "StateTransition",
    "StateListener",
    "StateManager",
    "VALID_TRANSITIONS",
]
