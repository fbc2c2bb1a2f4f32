"""Structured logging for check-client FSM transitions and outcomes, plus entry-point setup."""

import logging
import uuid
from typing import Any, Dict, Optional, TextIO

from editor_agent.core.models import CheckOutcome

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"


_LEVEL_COLORS = {
    logging.DEBUG: "\033[90m",
    logging.INFO: "\033[36m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[1;31m",
    logging.CRITICAL: "\033[1;31m",
}
_RESET = "\033[0m"


class ColoredFormatter(logging.Formatter):
    """Wraps the level name in a per-level ANSI color for terminal output."""

    def format(self, record: logging.LogRecord) -> str:
        color = _LEVEL_COLORS.get(record.levelno)
        if not color:
            return super().format(record)
        plain = record.levelname
        record.levelname = f"{color}{plain}{_RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


def resolve_level(logging_cfg: Optional[Dict[str, Any]] = None, debug: bool = False) -> int:
    if debug:
        return logging.DEBUG
    name = str((logging_cfg or {}).get("level") or "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def build_handler(
    logging_cfg: Optional[Dict[str, Any]] = None,
    colored: bool = False,
    stream: Optional[TextIO] = None,
) -> logging.Handler:
    """Stream handler using the configured format; colored for interactive scripts."""
    fmt = (logging_cfg or {}).get("format") or DEFAULT_FORMAT
    formatter_cls = ColoredFormatter if colored else logging.Formatter
    handler = logging.StreamHandler(stream)
    handler.setFormatter(formatter_cls(fmt=fmt, datefmt=DEFAULT_DATEFMT))
    return handler


def configure_logging(
    logging_cfg: Optional[Dict[str, Any]] = None,
    colored: bool = False,
    debug: bool = False,
) -> None:
    """basicConfig for scripts and the CLI from the `logging` config section.

    No-op when the root logger already has handlers.
    """
    logging.basicConfig(
        level=resolve_level(logging_cfg, debug=debug),
        handlers=[build_handler(logging_cfg, colored=colored)],
    )


def new_trace_id() -> str:
    return str(uuid.uuid4())[:8]


def _ensure_trace_id(extra: dict) -> str:
    trace_id = extra.get("trace_id")
    if not trace_id:
        trace_id = new_trace_id()
        extra["trace_id"] = trace_id
    return trace_id


def log_fsm_transition(
    from_state: str,
    to_state: str,
    event: str,
    trace_id: Optional[str] = None,
    extra: Optional[dict] = None,
) -> None:
    """Log FSM state transition: trace_id, from_state, to_state, event."""
    extra = dict(extra or {})
    if trace_id:
        extra["trace_id"] = trace_id
    _ensure_trace_id(extra)
    extra["from_state"] = from_state
    extra["to_state"] = to_state
    extra["event"] = event
    msg = "fsm_transition " + " ".join(f"{k}={v}" for k, v in sorted(extra.items()))
    logger.info(msg)


def log_check_outcome(
    outcome: CheckOutcome,
    trace_id: Optional[str] = None,
    extra: Optional[dict] = None,
) -> None:
    """Log the terminal outcome of one check run."""
    extra = dict(extra or {})
    if trace_id:
        extra["trace_id"] = trace_id
    _ensure_trace_id(extra)
    extra["outcome"] = outcome.kind.value
    extra["error_count"] = len(outcome.errors)
    extra["exit_code"] = outcome.exit_code
    if outcome.detail:
        extra["detail"] = repr(outcome.detail)
    msg = "check_outcome " + " ".join(f"{k}={v}" for k, v in sorted(extra.items()))
    logger.info(msg)
