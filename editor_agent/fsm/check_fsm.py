"""Check-client FSM: IDLE -> AWAITING_START -> COMPILING -> POSSIBLE_RELOAD -> SETTLING -> RESOLVED.

Transition implementation (app/compile_check.py):
- IDLE -> AWAITING_START: _handle_idle (refresh acknowledged)
- IDLE -> RESOLVED: _handle_idle (refresh failed: no server reachable; never a compile outcome)
- AWAITING_START -> COMPILING: _handle_awaiting_start (probe says compiling, or probe failed to connect)
- AWAITING_START -> SETTLING: _handle_awaiting_start (all start attempts quiet: nothing to compile)
- AWAITING_START -> RESOLVED: malformed response / bad status
- COMPILING -> POSSIBLE_RELOAD: _handle_compiling (probe failed to connect; reconnect counter = 1)
- COMPILING -> SETTLING: _handle_compiling (probe says not compiling)
- COMPILING -> RESOLVED: malformed response / bad status
- POSSIBLE_RELOAD -> SETTLING: _handle_possible_reload (any successful probe, flag ignored; counter reset)
- POSSIBLE_RELOAD -> RESOLVED: counter exceeded max_reconnect_failures, or malformed / bad status
- SETTLING -> RESOLVED: _handle_settling (settle delay, then one fetch)

A dropped connection right after the trigger is fatal; the same drop once compilation has
been observed is progress. The state at the time of the drop decides.
"""

import enum
import logging
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class CheckState(str, enum.Enum):
    """Check-run states. RESOLVED is terminal and carries the CheckOutcome on the runner."""

    IDLE = "idle"
    AWAITING_START = "awaiting_start"
    COMPILING = "compiling"
    POSSIBLE_RELOAD = "possible_reload"  # listener gone mid-compile; counting reconnect failures
    SETTLING = "settling"
    RESOLVED = "resolved"


# Valid transitions: from_state -> set of allowed to_states
_TRANSITIONS: dict[CheckState, set[CheckState]] = {
    CheckState.IDLE: {CheckState.AWAITING_START, CheckState.RESOLVED},
    CheckState.AWAITING_START: {
        CheckState.COMPILING,
        CheckState.SETTLING,
        CheckState.RESOLVED,
    },
    CheckState.COMPILING: {
        CheckState.POSSIBLE_RELOAD,
        CheckState.SETTLING,
        CheckState.RESOLVED,
    },
    CheckState.POSSIBLE_RELOAD: {CheckState.SETTLING, CheckState.RESOLVED},
    CheckState.SETTLING: {CheckState.RESOLVED},
    CheckState.RESOLVED: set(),
}


class CheckFSM:
    """Manages check-run state and transitions."""

    def __init__(
        self,
        on_transition: Optional[Callable[[CheckState, CheckState], None]] = None,
    ):
        self._current = CheckState.IDLE
        self._on_transition = on_transition

    @property
    def current(self) -> CheckState:
        return self._current

    def can_transition_to(self, to_state: CheckState) -> bool:
        """Check if transition from current state to to_state is valid."""
        allowed = _TRANSITIONS.get(self._current, set())
        return to_state in allowed

    def transition(self, to_state: CheckState) -> bool:
        """
        Transition to new state if valid. Returns True on success, False otherwise.
        Calls on_transition(from, to) callback if provided.
        """
        if not self.can_transition_to(to_state):
            logger.warning(
                "Invalid transition: %s -> %s (allowed: %s)",
                self._current.value,
                to_state.value,
                sorted(s.value for s in _TRANSITIONS.get(self._current, set())),
            )
            return False
        from_state = self._current
        self._current = to_state
        logger.debug("State: %s -> %s", from_state.value, to_state.value)
        if self._on_transition:
            try:
                self._on_transition(from_state, to_state)
            except Exception as e:
                logger.debug("on_transition callback error: %s", e)
        return True

    def force_resolve(self) -> None:
        """Jump to RESOLVED from any state; used when a handler fails unexpectedly."""
        if self._current == CheckState.RESOLVED:
            return
        if not self.transition(CheckState.RESOLVED):
            self._current = CheckState.RESOLVED

    def is_resolved(self) -> bool:
        return self._current == CheckState.RESOLVED
