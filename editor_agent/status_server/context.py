"""ServerContext: all mutable status-server state, constructed at startup and closed at shutdown.

Ownership:
- listener thread (request handlers): reads is_compiling / errors(), calls enqueue().
- host update step (update()): sole writer of the compiling flag and the error cache, sole
  consumer of the action queue.

The error cache is an immutable tuple replaced by one reference assignment, so a reader
on the listener thread sees either the old or the new snapshot, never a partial one.
"""

import logging
import queue
import time
from typing import Callable, Optional, Tuple

from editor_agent.core.metrics import ServerMetrics
from editor_agent.core.models import CompileError
from editor_agent.host.base import EditorHost

logger = logging.getLogger(__name__)

Action = Callable[[], None]


class ServerContext:
    """Process-scoped state for one status-server lifetime (one runtime generation of the host)."""

    def __init__(
        self,
        host: EditorHost,
        cache_refresh_interval_sec: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        metrics: Optional[ServerMetrics] = None,
    ):
        self.host = host
        self.cache_refresh_interval_sec = cache_refresh_interval_sec
        self._clock = clock
        self.metrics = metrics or ServerMetrics()
        self._is_compiling = False
        self._errors: Tuple[CompileError, ...] = ()
        self._last_refresh: Optional[float] = None
        self._actions: "queue.SimpleQueue[Action]" = queue.SimpleQueue()
        self._closed = False

    # --- Listener-thread side (read-only except enqueue) ---

    @property
    def is_compiling(self) -> bool:
        """CompilingFlag as of the last update tick."""
        return self._is_compiling

    def errors(self) -> Tuple[CompileError, ...]:
        """Current ErrorCache snapshot. Reads never mutate the cache."""
        return self._errors

    def enqueue(self, action: Action) -> None:
        """Hand an action to the update step. The caller keeps no reference to its outcome."""
        if self._closed:
            logger.warning("Action enqueued on a closed context; dropped")
            return
        self._actions.put(action)

    def request_refresh(self) -> None:
        """TriggerRefresh: ask the host, on its own update step, to rescan sources."""
        self.enqueue(self.host.request_refresh)

    @property
    def pending_actions(self) -> int:
        return self._actions.qsize()

    @property
    def closed(self) -> bool:
        return self._closed

    # --- Update-step side ---

    def update(self) -> None:
        """One host tick: sample compiling flag, refresh cache on cadence, drain queued actions."""
        if self._closed:
            return
        self.metrics.inc_ticks()
        self._is_compiling = bool(self.host.is_compiling())

        now = self._clock()
        if self._last_refresh is None or (now - self._last_refresh) >= self.cache_refresh_interval_sec:
            self.refresh_cache()
            self._last_refresh = now

        self._drain_actions()

    def refresh_cache(self) -> None:
        """Rebuild the error snapshot from the host; on failure keep serving the previous one."""
        try:
            fresh = tuple(self.host.extract_compile_errors())
        except Exception as e:
            self.metrics.inc_extraction_failures()
            logger.error("Error extracting compile errors from host log (serving previous cache): %s", e)
            return
        self._errors = fresh
        self.metrics.inc_cache_refreshes()
        logger.debug("Error cache refreshed: %s error(s)", len(fresh))

    def _drain_actions(self) -> None:
        while True:
            try:
                action = self._actions.get_nowait()
            except queue.Empty:
                return
            try:
                action()
                self.metrics.record_action(ok=True)
            except Exception as e:
                self.metrics.record_action(ok=False)
                logger.exception("Queued action failed: %s", e)

    def close(self) -> None:
        """Tear down: drop pending actions and stop accepting new ones."""
        if self._closed:
            return
        self._closed = True
        dropped = 0
        while True:
            try:
                self._actions.get_nowait()
                dropped += 1
            except queue.Empty:
                break
        if dropped:
            logger.info("Context closed with %s pending action(s) dropped", dropped)
        self.metrics.log_snapshot()
