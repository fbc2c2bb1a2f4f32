"""StatusClient: error classification and response-shape validation."""

import io
import socket
import urllib.error
from unittest.mock import MagicMock

import pytest

import editor_agent.client.status_client as status_client_module
from editor_agent.client.status_client import (
    BadStatus,
    MalformedResponse,
    ServerTimeout,
    ServerUnreachable,
    StatusClient,
)
from editor_agent.core.models import CompileError


def _fake_urlopen(body: bytes = b"", exc: Exception = None):
    def _urlopen(req, timeout=None):
        if exc is not None:
            raise exc
        resp = MagicMock()
        resp.read.return_value = body
        resp.__enter__.return_value = resp
        resp.__exit__.return_value = False
        return resp

    return _urlopen


@pytest.fixture
def patch_urlopen(monkeypatch):
    def _patch(**kwargs):
        monkeypatch.setattr(status_client_module.urllib.request, "urlopen", _fake_urlopen(**kwargs))

    return _patch


class TestAgainstClosedPort:
    def test_refused_when_nothing_listens(self, free_port):
        client = StatusClient(port=free_port, timeout=1.0)
        with pytest.raises(ServerUnreachable) as ei:
            client.refresh()
        assert ei.value.refused is True
        assert not isinstance(ei.value, ServerTimeout)


class TestErrorClassification:
    def test_url_error_refused(self, patch_urlopen):
        patch_urlopen(exc=urllib.error.URLError(ConnectionRefusedError(111, "Connection refused")))
        with pytest.raises(ServerUnreachable) as ei:
            StatusClient().ping()
        assert ei.value.refused is True

    def test_url_error_timeout(self, patch_urlopen):
        patch_urlopen(exc=urllib.error.URLError(socket.timeout("timed out")))
        with pytest.raises(ServerTimeout):
            StatusClient().ping()

    def test_read_timeout(self, patch_urlopen):
        patch_urlopen(exc=TimeoutError("read timed out"))
        with pytest.raises(ServerTimeout):
            StatusClient().ping()

    def test_connection_reset_is_unreachable(self, patch_urlopen):
        patch_urlopen(exc=ConnectionResetError(104, "Connection reset by peer"))
        with pytest.raises(ServerUnreachable) as ei:
            StatusClient().ping()
        assert ei.value.refused is False

    def test_http_error_is_bad_status(self, patch_urlopen):
        err = urllib.error.HTTPError("http://x/ping", 500, "Internal", {}, io.BytesIO(b""))
        patch_urlopen(exc=err)
        with pytest.raises(BadStatus) as ei:
            StatusClient().ping()
        assert ei.value.status == 500


class TestShapes:
    def test_refresh_ok(self, patch_urlopen):
        patch_urlopen(body=b'{"status":"ok"}')
        assert StatusClient().refresh() is None

    def test_refresh_wrong_body(self, patch_urlopen):
        patch_urlopen(body=b'{"status":"busy"}')
        with pytest.raises(MalformedResponse):
            StatusClient().refresh()

    @pytest.mark.parametrize("body,expected", [(b'{"isCompiling":true}', True), (b'{"isCompiling": false}', False)])
    def test_ping(self, patch_urlopen, body, expected):
        patch_urlopen(body=body)
        assert StatusClient().ping() is expected

    @pytest.mark.parametrize("body", [b"not json", b'{"isCompiling":"yes"}', b"[]", b"\xff\xfe"])
    def test_ping_malformed(self, patch_urlopen, body):
        patch_urlopen(body=body)
        with pytest.raises(MalformedResponse):
            StatusClient().ping()

    def test_fetch_errors(self, patch_urlopen):
        patch_urlopen(body=b'[{"File":"a.py","Line":3,"Message":"bad \\"quote\\"\\nnext"}]')
        assert StatusClient().fetch_errors() == (CompileError("a.py", 3, 'bad "quote"\nnext'),)

    def test_fetch_errors_empty(self, patch_urlopen):
        patch_urlopen(body=b"[]")
        assert StatusClient().fetch_errors() == ()

    def test_fetch_errors_wrong_shape(self, patch_urlopen):
        patch_urlopen(body=b'{"errors": []}')
        with pytest.raises(MalformedResponse):
            StatusClient().fetch_errors()
