"""In-memory counters for the status server: update ticks, cache refreshes, queued actions, requests."""

import logging
import threading
from collections import Counter
from typing import Dict

logger = logging.getLogger(__name__)


class ServerMetrics:
    """Thread-safe counters; the listener thread and the update step both write here."""

    def __init__(self):
        self._lock = threading.Lock()
        self._ticks = 0
        self._cache_refreshes = 0
        self._extraction_failures = 0
        self._actions_run = 0
        self._action_failures = 0
        self._requests: Counter = Counter()

    def inc_ticks(self) -> None:
        with self._lock:
            self._ticks += 1

    def inc_cache_refreshes(self) -> None:
        with self._lock:
            self._cache_refreshes += 1

    def inc_extraction_failures(self) -> None:
        with self._lock:
            self._extraction_failures += 1

    def record_action(self, ok: bool) -> None:
        with self._lock:
            self._actions_run += 1
            if not ok:
                self._action_failures += 1

    def record_request(self, endpoint: str) -> None:
        with self._lock:
            self._requests[endpoint] += 1

    @property
    def ticks(self) -> int:
        with self._lock:
            return self._ticks

    @property
    def cache_refreshes(self) -> int:
        with self._lock:
            return self._cache_refreshes

    @property
    def extraction_failures(self) -> int:
        with self._lock:
            return self._extraction_failures

    @property
    def actions_run(self) -> int:
        with self._lock:
            return self._actions_run

    @property
    def action_failures(self) -> int:
        with self._lock:
            return self._action_failures

    def requests(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._requests)

    def log_snapshot(self) -> None:
        """Log current metrics snapshot."""
        with self._lock:
            parts = [
                f"ticks={self._ticks}",
                f"cache_refreshes={self._cache_refreshes}",
                f"actions_run={self._actions_run}",
            ]
            if self._extraction_failures:
                parts.append(f"extraction_failures={self._extraction_failures}")
            if self._action_failures:
                parts.append(f"action_failures={self._action_failures}")
            for endpoint, n in sorted(self._requests.items()):
                parts.append(f"requests[{endpoint}]={n}")
        logger.info("metrics " + " ".join(parts))
