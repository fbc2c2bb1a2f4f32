"""Pytest fixtures for editor-agent tests."""

import socket
import sys
from pathlib import Path
from typing import List, Optional, Sequence

import pytest

# Ensure project root is in path for editor_agent imports
_project_root = Path(__file__).resolve().parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

from editor_agent.core.models import CompileError  # noqa: E402
from editor_agent.host.base import EditorHost, LogEntry  # noqa: E402


class ScriptedClient:
    """Stand-in for StatusClient. Each ping pops the next scripted bool or exception."""

    base_url = "http://127.0.0.1:5142"

    def __init__(self, refresh=None, pings: Sequence = (), errors=(), default_ping=False):
        self.refresh_result = refresh
        self.pings = list(pings)
        self.errors_result = errors
        self.default_ping = default_ping
        self.calls: List[str] = []

    def refresh(self) -> None:
        self.calls.append("refresh")
        if isinstance(self.refresh_result, Exception):
            raise self.refresh_result

    def ping(self) -> bool:
        self.calls.append("ping")
        item = self.pings.pop(0) if self.pings else self.default_ping
        if isinstance(item, Exception):
            raise item
        return item

    def fetch_errors(self):
        self.calls.append("fetch_errors")
        if isinstance(self.errors_result, Exception):
            raise self.errors_result
        return tuple(self.errors_result)


class FakeHost(EditorHost):
    """EditorHost with directly settable compiling flag and log buffer."""

    def __init__(self, entries: Optional[List[LogEntry]] = None, error_predicate=None):
        super().__init__(error_predicate=error_predicate)
        self.compiling = False
        self.entries: List[LogEntry] = list(entries or [])
        self.refresh_calls = 0
        self.fail_extraction = False

    def is_compiling(self) -> bool:
        return self.compiling

    def request_refresh(self) -> None:
        self.refresh_calls += 1

    def read_log_entries(self):
        if self.fail_extraction:
            raise RuntimeError("log buffer unavailable")
        return list(self.entries)


class FakeClock:
    def __init__(self, start: float = 100.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, sec: float) -> None:
        self.now += sec


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def fake_sleep(sleeps):
    """Async sleep that records the requested delay and returns immediately."""

    async def _sleep(sec: float) -> None:
        sleeps.append(sec)

    return _sleep


@pytest.fixture
def fake_host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_errors() -> List[CompileError]:
    return [
        CompileError("scripts/player.py", 12, "invalid syntax"),
        CompileError("scripts/enemy.py", 3, 'unterminated string literal "oops'),
    ]


@pytest.fixture
def free_port() -> int:
    """A loopback port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest.fixture
def make_client():
    """Factory for ScriptedClient(refresh=..., pings=[...], errors=...)."""
    return ScriptedClient


@pytest.fixture
def make_host():
    return FakeHost
