"""Core data model, metrics and logging helpers."""

from editor_agent.core.models import CheckOutcome, CompileError, OutcomeKind

__all__ = ["CheckOutcome", "CompileError", "OutcomeKind"]
