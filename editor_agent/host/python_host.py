"""PythonSourceHost: an EditorHost that byte-compiles a directory of Python sources.

A refresh rescans mtimes. Nothing changed: nothing compiles. Otherwise every source is
compiled on a worker thread while is_compiling() is True, the log buffer is replaced with
one error entry per SyntaxError, and a clean compile triggers a domain reload (the
runtime is rebuilt, taking the status server down with it) when reload_on_compile is set.
The compiling flag is held until the reload callback has returned, so the listener is gone
before the flag can read False.
"""

import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from editor_agent.host.base import (
    LEVEL_ERROR,
    LEVEL_INFO,
    LEVEL_WARNING,
    EditorHost,
    ErrorPredicate,
    LogEntry,
)

logger = logging.getLogger(__name__)


class PythonSourceHost(EditorHost):
    """Compiles *.py files under source_root with the builtin compile()."""

    def __init__(
        self,
        source_root: str,
        include: str = "**/*.py",
        reload_on_compile: bool = True,
        error_predicate: Optional[ErrorPredicate] = None,
    ):
        super().__init__(error_predicate=error_predicate)
        self.source_root = Path(source_root).resolve()
        self.include = include
        self.reload_on_compile = reload_on_compile
        self._lock = threading.Lock()
        self._compiling = threading.Event()
        self._mtimes: Dict[str, int] = {}
        self._log: Tuple[LogEntry, ...] = ()
        self._worker: Optional[threading.Thread] = None

    def is_compiling(self) -> bool:
        return self._compiling.is_set()

    def read_log_entries(self) -> Sequence[LogEntry]:
        with self._lock:
            return self._log

    def request_refresh(self) -> None:
        if self._compiling.is_set():
            logger.debug("[Host] refresh ignored: compilation already running")
            return
        current = self._scan()
        with self._lock:
            changed = current != self._mtimes
            self._mtimes = current
        if not changed:
            logger.info("[Host] refresh: no source changes under %s", self.source_root)
            return
        logger.info("[Host] refresh: %s source file(s) changed or added; compiling", len(current))
        self._compiling.set()
        self._worker = threading.Thread(
            target=self._compile_all,
            args=(sorted(current),),
            name="host-compile",
            daemon=True,
        )
        self._worker.start()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until the current compilation (if any) has finished. Returns False on timeout."""
        worker = self._worker
        if worker is not None:
            worker.join(timeout)
            return not worker.is_alive()
        return True

    def _scan(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for p in self.source_root.glob(self.include):
            try:
                if p.is_file():
                    out[str(p)] = p.stat().st_mtime_ns
            except OSError:
                continue  # removed between glob and stat
        return out

    def _relative(self, path: str) -> str:
        try:
            return Path(path).relative_to(self.source_root).as_posix()
        except ValueError:
            return path

    def _compile_one(self, path: str) -> Optional[LogEntry]:
        rel = self._relative(path)
        try:
            source = Path(path).read_bytes()
        except OSError as e:
            return LogEntry(LEVEL_WARNING, f"{rel}: could not read source: {e}")
        try:
            compile(source, rel, "exec", dont_inherit=True)
        except SyntaxError as e:
            line = e.lineno or 0
            col = e.offset or 0
            return LogEntry(LEVEL_ERROR, f"{rel}({line},{col}): error: {e.msg}", file=rel, line=line)
        except ValueError as e:
            # source contains null bytes
            return LogEntry(LEVEL_ERROR, f"{rel}(0,0): error: {e}", file=rel, line=0)
        return None

    def _compile_all(self, paths: List[str]) -> None:
        entries: List[LogEntry] = []
        errors = 0
        try:
            for path in paths:
                entry = self._compile_one(path)
                if entry is None:
                    continue
                entries.append(entry)
                if entry.level == LEVEL_ERROR:
                    errors += 1
            entries.append(
                LogEntry(LEVEL_INFO, f"Compilation finished: {len(paths)} file(s), {errors} error(s)")
            )
            with self._lock:
                self._log = tuple(entries)
            logger.info("[Host] compilation finished: files=%s errors=%s", len(paths), errors)
            if self.reload_on_compile and errors == 0:
                logger.info("[Host] clean compile → domain reload")
                self._signal_domain_reload()
        except Exception as e:
            logger.exception("[Host] compilation worker failed: %s", e)
        finally:
            self._compiling.clear()

    def close(self) -> None:
        self.wait_idle(timeout=5.0)
