"""EditorHost abstract interface: the long-lived process the status server lives in.

The host owns compilation and its log buffer. The server core only asks it three things:
is it compiling, please rescan sources, and which log entries are compile errors. What
counts as a compile error is decided by an injected predicate, never by the core.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

from editor_agent.core.models import CompileError

logger = logging.getLogger(__name__)

# Log lines emitted by the agent itself start with this; they are never compile errors.
AGENT_LOG_PREFIX = "Editor Agent Server"

LEVEL_ERROR = "error"
LEVEL_WARNING = "warning"
LEVEL_INFO = "info"


@dataclass(frozen=True)
class LogEntry:
    """One record of the host's log buffer."""

    level: str
    message: str
    file: str = ""
    line: int = 0


ErrorPredicate = Callable[[LogEntry], bool]


def default_error_predicate(entry: LogEntry) -> bool:
    """Error-level entries that point at a source file and are not the agent's own output."""
    return (
        entry.level == LEVEL_ERROR
        and bool(entry.file)
        and not entry.message.startswith(AGENT_LOG_PREFIX)
    )


class EditorHost(ABC):
    """Abstract host. Implementations decide how compilation is started and how logs are kept.

    on_domain_reload, when set, is called by the host after a compile that requires the
    scripting runtime (and with it the status server) to be rebuilt.
    """

    def __init__(self, error_predicate: Optional[ErrorPredicate] = None):
        self.error_predicate: ErrorPredicate = error_predicate or default_error_predicate
        self.on_domain_reload: Optional[Callable[[], None]] = None

    @abstractmethod
    def is_compiling(self) -> bool:
        """Live compilation state at the instant of the call."""

    @abstractmethod
    def request_refresh(self) -> None:
        """Rescan sources for changes. May or may not start a compilation."""

    @abstractmethod
    def read_log_entries(self) -> Sequence[LogEntry]:
        """Current log buffer, oldest first."""

    def extract_compile_errors(self) -> List[CompileError]:
        """Filter the log buffer through error_predicate into CompileError records."""
        return [
            CompileError(file=e.file, line=e.line, message=e.message)
            for e in self.read_log_entries()
            if self.error_predicate(e)
        ]

    def _signal_domain_reload(self) -> None:
        cb = self.on_domain_reload
        if cb is None:
            return
        try:
            cb()
        except Exception as e:
            logger.exception("[Host] domain reload callback failed: %s", e)

    def close(self) -> None:
        """Release host resources. Default: nothing to release."""
