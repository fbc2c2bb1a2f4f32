"""CompileError record and CheckOutcome: the data crossing the loopback boundary.

Wire shape of one error record: {"File": str, "Line": int, "Message": str}. Field names are
capitalized and must round-trip exactly.
"""

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class CompileError:
    """One diagnostic produced by the host's log collaborator. Immutable once recorded."""

    file: str
    line: int
    message: str

    def to_wire(self) -> Dict[str, Any]:
        return {"File": self.file, "Line": self.line, "Message": self.message}

    @classmethod
    def from_wire(cls, obj: Any) -> "CompileError":
        """Parse one wire record. Raises ValueError on anything but the exact shape."""
        if not isinstance(obj, dict):
            raise ValueError(f"error record is not an object: {obj!r}")
        file = obj.get("File")
        line = obj.get("Line")
        message = obj.get("Message")
        if not isinstance(file, str):
            raise ValueError(f"error record 'File' is not a string: {file!r}")
        # bool is an int subclass; reject it explicitly
        if not isinstance(line, int) or isinstance(line, bool) or line < 0:
            raise ValueError(f"error record 'Line' is not a non-negative int: {line!r}")
        if not isinstance(message, str):
            raise ValueError(f"error record 'Message' is not a string: {message!r}")
        return cls(file=file, line=line, message=message)


def errors_to_wire(errors: Iterable[CompileError]) -> List[Dict[str, Any]]:
    return [e.to_wire() for e in errors]


def errors_from_wire(payload: Any) -> Tuple[CompileError, ...]:
    """Parse a /compile-errors body. Raises ValueError if it is not a list of records."""
    if not isinstance(payload, list):
        raise ValueError(f"expected a JSON array of error records, got {type(payload).__name__}")
    return tuple(CompileError.from_wire(item) for item in payload)


class OutcomeKind(str, enum.Enum):
    """Terminal result kinds of one check run. Only SUCCESS exits 0."""

    SUCCESS = "success"
    COMPILE_ERRORS = "compile_errors"
    SERVER_UNREACHABLE = "server_unreachable"
    TIMEOUT = "timeout"
    MALFORMED_RESPONSE = "malformed_response"
    BAD_STATUS = "bad_status"
    DISCONNECTED_TOO_LONG = "disconnected_too_long"
    INTERNAL_ERROR = "internal_error"


@dataclass(frozen=True)
class CheckOutcome:
    """Created once per run, rendered, discarded.

    errors is only meaningful for COMPILE_ERRORS; detail carries the diagnostic text for
    infrastructure failures.
    """

    kind: OutcomeKind
    errors: Tuple[CompileError, ...] = field(default_factory=tuple)
    detail: Optional[str] = None

    @classmethod
    def from_errors(cls, errors: Iterable[CompileError]) -> "CheckOutcome":
        errs = tuple(errors)
        if not errs:
            return cls(OutcomeKind.SUCCESS)
        return cls(OutcomeKind.COMPILE_ERRORS, errors=errs)

    @property
    def is_success(self) -> bool:
        return self.kind == OutcomeKind.SUCCESS

    @property
    def is_infrastructure_failure(self) -> bool:
        """True when the build verdict is unknown because the server could not be read."""
        return self.kind not in (OutcomeKind.SUCCESS, OutcomeKind.COMPILE_ERRORS)

    @property
    def exit_code(self) -> int:
        return 0 if self.is_success else 1
