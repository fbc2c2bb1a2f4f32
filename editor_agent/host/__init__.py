"""Editor host collaborators: the compiling process the status server lives in."""

from editor_agent.host.base import EditorHost, LogEntry, default_error_predicate
from editor_agent.host.python_host import PythonSourceHost

__all__ = ["EditorHost", "LogEntry", "PythonSourceHost", "default_error_predicate"]
