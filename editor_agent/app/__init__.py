"""Application entry: one compile check run and run_check."""

from editor_agent.app.compile_check import CompileCheck, run_check

__all__ = ["CompileCheck", "run_check"]
