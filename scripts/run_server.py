#!/usr/bin/env python3
"""Entry point: run the editor host loop with its status server on 127.0.0.1:5142.

Usage: python scripts/run_server.py [config.yaml] [--debug]

Log level and format come from the `logging` config section; --debug forces DEBUG.
A busy port is fatal: the server does not start and nothing is killed or retried.
"""

import logging
import os
import sys

# Project root: always resolve relative to script location, not cwd
_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, _PROJECT_ROOT)

from editor_agent.config.settings import get_logging_config, read_config  # noqa: E402
from editor_agent.core.logging_utils import configure_logging  # noqa: E402
from editor_agent.host.runner import run_host  # noqa: E402
from editor_agent.status_server.app import ServerBindError  # noqa: E402

logger = logging.getLogger("run_server")


def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    paths = [a for a in argv if not a.startswith("--")]
    config_path = os.path.abspath(paths[0]) if paths else None

    config, resolved_path = read_config(config_path)
    configure_logging(get_logging_config(config), colored=sys.stderr.isatty(), debug="--debug" in argv)
    logger.info("Using config %s", resolved_path)

    try:
        run_host(resolved_path)
    except ServerBindError as e:
        print(f"{e}. Is another editor agent already running?", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
