"""StatusClient: blocking GET /refresh, /ping, /compile-errors against the loopback status server.

Every call has a bounded timeout. Failures are raised as the StatusClientError hierarchy so
the check FSM can decide what a failure means in its current state.
"""

import http.client
import json
import logging
import socket
import urllib.error
import urllib.request
from typing import Any, Optional, Tuple

from editor_agent.core.models import CompileError, errors_from_wire

logger = logging.getLogger(__name__)


class StatusClientError(Exception):
    """Base for every failure talking to the status server."""


class ServerUnreachable(StatusClientError):
    """Could not connect, or the connection dropped before a response arrived."""

    def __init__(self, message: str, refused: bool = False):
        super().__init__(message)
        self.refused = refused


class ServerTimeout(ServerUnreachable):
    """Request exceeded its bound without a response. Same transitions as ServerUnreachable."""


class MalformedResponse(StatusClientError):
    """Body is not JSON or not the expected shape. Always fatal."""

    def __init__(self, message: str, body: Optional[bytes] = None):
        super().__init__(message)
        self.body = body


class BadStatus(StatusClientError):
    """Server answered with a non-200 status."""

    def __init__(self, status: int, path: str):
        super().__init__(f"Received status code {status} from status server for {path}")
        self.status = status
        self.path = path


def _is_timeout(exc: BaseException) -> bool:
    return isinstance(exc, (socket.timeout, TimeoutError))


def _is_refused(exc: BaseException) -> bool:
    return isinstance(exc, ConnectionRefusedError)


class StatusClient:
    """Thin urllib client. One request at a time; no retries here."""

    def __init__(self, host: str = "127.0.0.1", port: int = 5142, timeout: float = 2.0):
        self.host = host
        self.port = port
        self.timeout = timeout

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def _get_json(self, path: str) -> Any:
        req = urllib.request.Request(self.base_url + path, headers={"Accept": "application/json"})
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                body = resp.read()
        except urllib.error.HTTPError as e:
            raise BadStatus(e.code, path) from e
        except urllib.error.URLError as e:
            reason = e.reason
            if _is_timeout(reason):
                raise ServerTimeout(f"GET {path} timed out after {self.timeout:.1f}s") from e
            raise ServerUnreachable(f"GET {path} failed: {reason}", refused=_is_refused(reason)) from e
        except (socket.timeout, TimeoutError) as e:
            raise ServerTimeout(f"GET {path} timed out after {self.timeout:.1f}s") from e
        except (ConnectionError, http.client.HTTPException) as e:
            # reset or closed mid-response: the listener went away (e.g. domain reload)
            raise ServerUnreachable(f"GET {path} connection dropped: {e}", refused=_is_refused(e)) from e
        except OSError as e:
            raise ServerUnreachable(f"GET {path} failed: {e}") from e
        try:
            return json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedResponse(f"GET {path} returned invalid JSON: {e}", body=body) from e

    def refresh(self) -> None:
        """TriggerRefresh. Expects {"status": "ok"}."""
        payload = self._get_json("/refresh")
        if not isinstance(payload, dict) or payload.get("status") != "ok":
            raise MalformedResponse(f"GET /refresh returned unexpected body: {payload!r}")

    def ping(self) -> bool:
        """Probe. Returns isCompiling."""
        payload = self._get_json("/ping")
        flag = payload.get("isCompiling") if isinstance(payload, dict) else None
        if not isinstance(flag, bool):
            raise MalformedResponse(f"GET /ping returned unexpected body: {payload!r}")
        return flag

    def fetch_errors(self) -> Tuple[CompileError, ...]:
        """FetchErrors. Returns the server's cached error snapshot in order."""
        payload = self._get_json("/compile-errors")
        try:
            return errors_from_wire(payload)
        except ValueError as e:
            raise MalformedResponse(f"GET /compile-errors returned unexpected body: {e}") from e
