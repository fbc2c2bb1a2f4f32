"""Status server endpoints (FastAPI TestClient) and StatusServer socket lifecycle."""

import socket
import threading
import time

import pytest
from fastapi.testclient import TestClient

from editor_agent.client.status_client import ServerUnreachable, StatusClient
from editor_agent.core.models import CompileError
from editor_agent.host.base import LEVEL_ERROR, LogEntry
from editor_agent.status_server.app import ServerBindError, StatusServer, create_app
from editor_agent.status_server.context import ServerContext


@pytest.fixture
def context(fake_host, fake_clock) -> ServerContext:
    return ServerContext(fake_host, cache_refresh_interval_sec=1.0, clock=fake_clock)


@pytest.fixture
def client(context) -> TestClient:
    return TestClient(create_app(context), raise_server_exceptions=False)


class TestEndpoints:
    def test_refresh_acknowledges_and_enqueues(self, client, context, fake_host):
        resp = client.get("/refresh")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}
        assert fake_host.refresh_calls == 0
        context.update()
        assert fake_host.refresh_calls == 1

    def test_ping_reports_last_tick(self, client, context, fake_host):
        assert client.get("/ping").json() == {"isCompiling": False}
        fake_host.compiling = True
        assert client.get("/ping").json() == {"isCompiling": False}
        context.update()
        assert client.get("/ping").json() == {"isCompiling": True}

    def test_compile_errors_shape(self, client, context, fake_host):
        fake_host.entries = [
            LogEntry(LEVEL_ERROR, 'msg with "quotes" \\ and\nnewline', file="a.py", line=4),
        ]
        context.update()
        resp = client.get("/compile-errors")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("application/json")
        assert resp.json() == [{"File": "a.py", "Line": 4, "Message": 'msg with "quotes" \\ and\nnewline'}]

    def test_compile_errors_idempotent_between_ticks(self, client, context, fake_host):
        fake_host.entries = [LogEntry(LEVEL_ERROR, "x", file="a.py", line=1)]
        context.update()
        first = client.get("/compile-errors").json()
        fake_host.entries = []
        second = client.get("/compile-errors").json()
        assert first == second

    def test_compile_errors_never_extracts(self, client, fake_host):
        fake_host.entries = [LogEntry(LEVEL_ERROR, "x", file="a.py", line=1)]
        assert client.get("/compile-errors").json() == []

    def test_unknown_path_is_404(self, client):
        assert client.get("/nope").status_code == 404

    def test_handler_exception_is_500(self, fake_host, fake_clock):
        class BrokenContext(ServerContext):
            def errors(self):
                raise RuntimeError("cache exploded")

        ctx = BrokenContext(fake_host, clock=fake_clock)
        client = TestClient(create_app(ctx), raise_server_exceptions=False)
        assert client.get("/compile-errors").status_code == 500

    def test_requests_are_counted(self, client, context):
        client.get("/ping")
        client.get("/ping")
        client.get("/refresh")
        assert context.metrics.requests() == {"ping": 2, "refresh": 1}


def _wait_until_serving(port: int, timeout: float = 5.0) -> None:
    client = StatusClient(port=port, timeout=1.0)
    deadline = time.monotonic() + timeout
    while True:
        try:
            client.ping()
            return
        except ServerUnreachable:
            if time.monotonic() > deadline:
                raise
            time.sleep(0.05)


class TestStatusServer:
    def test_serves_over_loopback_and_stops(self, context, fake_host, free_port):
        fake_host.entries = [LogEntry(LEVEL_ERROR, "boom", file="a.py", line=2)]
        context.update()
        server = StatusServer(context, port=free_port)
        server.start()
        try:
            _wait_until_serving(free_port)
            client = StatusClient(port=free_port)
            client.refresh()
            assert client.ping() is False
            assert client.fetch_errors() == (CompileError("a.py", 2, "boom"),)
        finally:
            server.stop()
        assert not server.is_running
        with pytest.raises(ServerUnreachable):
            StatusClient(port=free_port, timeout=1.0).ping()

    def test_port_in_use_is_fatal(self, context, free_port):
        blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        blocker.bind(("127.0.0.1", free_port))
        blocker.listen(1)
        try:
            server = StatusServer(context, port=free_port)
            with pytest.raises(ServerBindError) as ei:
                server.start()
            assert ei.value.port == free_port
            assert not server.is_running
        finally:
            blocker.close()

    def test_restart_on_same_port(self, context, free_port):
        server = StatusServer(context, port=free_port)
        server.start()
        _wait_until_serving(free_port)
        server.stop()
        again = StatusServer(context, port=free_port)
        again.start()
        try:
            _wait_until_serving(free_port)
        finally:
            again.stop()

    def test_concurrent_stop_from_two_threads(self, context, free_port):
        server = StatusServer(context, port=free_port)
        server.start()
        _wait_until_serving(free_port)
        barrier = threading.Barrier(2)
        raised = []

        def stop_together():
            barrier.wait()
            try:
                server.stop()
            except Exception as e:  # collected for the assertion below
                raised.append(e)

        threads = [threading.Thread(target=stop_together) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(10.0)
        assert raised == []
        assert not server.is_running
        # both callers returned only after the port was released
        again = StatusServer(context, port=free_port)
        again.start()
        try:
            _wait_until_serving(free_port)
        finally:
            again.stop()

    def test_stop_is_idempotent(self, context, free_port):
        server = StatusServer(context, port=free_port)
        server.stop()
        server.start()
        _wait_until_serving(free_port)
        server.stop()
        server.stop()
        assert not server.is_running
