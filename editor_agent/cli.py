"""Command line: `editor-agent check`. Any other invocation prints usage and exits 0."""

import argparse
import logging
import sys
from typing import List, Optional, TextIO

from editor_agent.app.compile_check import run_check
from editor_agent.config.settings import get_logging_config, read_config
from editor_agent.core.logging_utils import configure_logging
from editor_agent.core.models import CheckOutcome, OutcomeKind

logger = logging.getLogger(__name__)

USAGE = "Usage: editor-agent check"

SUCCESS_LINE = "✅ Compile Success"
ERRORS_HEADER = "❌ Compilation Errors Found:"

# One distinct line per infrastructure failure so automation can tell them from compile errors.
_FAILURE_LINES = {
    OutcomeKind.SERVER_UNREACHABLE: "Editor is not open or the status server is not running.",
    OutcomeKind.TIMEOUT: "Timed out waiting for the status server to respond.",
    OutcomeKind.MALFORMED_RESPONSE: "Failed to parse response from the status server.",
    OutcomeKind.BAD_STATUS: "Unexpected HTTP status from the status server.",
    OutcomeKind.DISCONNECTED_TOO_LONG: "Status server disconnected too long; the editor did not come back after reloading.",
    OutcomeKind.INTERNAL_ERROR: "Check failed unexpectedly.",
}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="editor-agent", add_help=False)
    parser.add_argument("command", nargs="?")
    return parser


def render_outcome(outcome: CheckOutcome, out: Optional[TextIO] = None, err: Optional[TextIO] = None) -> int:
    """Print the verdict and return the process exit code."""
    out = out or sys.stdout
    err = err or sys.stderr
    if outcome.kind == OutcomeKind.SUCCESS:
        print(SUCCESS_LINE, file=out)
    elif outcome.kind == OutcomeKind.COMPILE_ERRORS:
        print(ERRORS_HEADER, file=err)
        for e in outcome.errors:
            print(f"\nFile: {e.file}:{e.line}", file=err)
            print(f"Message: {e.message}", file=err)
    else:
        line = _FAILURE_LINES.get(outcome.kind, "Check failed.")
        if outcome.kind == OutcomeKind.SERVER_UNREACHABLE or not outcome.detail:
            print(line, file=err)
        else:
            print(f"{line} ({outcome.detail})", file=err)
    return outcome.exit_code


def main(argv: Optional[List[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    parsed, extra = _build_parser().parse_known_args(args)
    if parsed.command != "check" or extra:
        print(USAGE)
        return 0
    config, _ = read_config()
    log_cfg = get_logging_config(config)
    configure_logging({"level": log_cfg["cli_level"], "format": log_cfg["format"]})
    outcome = run_check(config)
    return render_outcome(outcome)


def entry() -> None:
    sys.exit(main())
