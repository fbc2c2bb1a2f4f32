"""FSM package: check-client polling state machine."""

from editor_agent.fsm.check_fsm import CheckFSM, CheckState

__all__ = ["CheckFSM", "CheckState"]
