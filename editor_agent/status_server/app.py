"""FastAPI app for GET /refresh, GET /ping, GET /compile-errors, and the StatusServer that hosts it.

Handlers only read ServerContext snapshots or enqueue work for the host update step; none
of them compiles or extracts anything. The server binds its socket up front so a busy
port fails startup loudly instead of inside the listener thread.
"""

import logging
import os
import socket
import threading
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from editor_agent.core.models import errors_to_wire
from editor_agent.status_server.context import ServerContext

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5142


class ServerBindError(RuntimeError):
    """The listening socket could not be bound (port in use or not permitted). Fatal, no retry."""

    def __init__(self, host: str, port: int, cause: OSError):
        super().__init__(f"Failed to start status server on {host}:{port}: {cause}")
        self.host = host
        self.port = port
        self.cause = cause


def create_app(context: ServerContext) -> FastAPI:
    """Build FastAPI app over one ServerContext. Unknown paths fall through to FastAPI's 404."""
    app = FastAPI(title="Editor Agent Status Server", description="Compile status for external check clients")

    @app.exception_handler(Exception)
    async def _on_handler_error(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Error handling request %s: %s", request.url.path, exc)
        return JSONResponse(status_code=500, content={"error": "internal error"})

    @app.get("/refresh")
    def get_refresh() -> JSONResponse:
        """Enqueue a source rescan on the host update step; acknowledge immediately."""
        context.metrics.record_request("refresh")
        context.request_refresh()
        return JSONResponse(status_code=200, content={"status": "ok"})

    @app.get("/ping")
    def get_ping() -> JSONResponse:
        """Compiling flag as of the last host tick."""
        context.metrics.record_request("ping")
        return JSONResponse(status_code=200, content={"isCompiling": context.is_compiling})

    @app.get("/compile-errors")
    def get_compile_errors() -> JSONResponse:
        """Current error-cache snapshot; never triggers extraction."""
        context.metrics.record_request("compile-errors")
        return JSONResponse(status_code=200, content=errors_to_wire(context.errors()))

    return app


def bind_socket(host: str, port: int) -> socket.socket:
    """Bind and listen on host:port. Raises ServerBindError; the caller must not retry."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    if os.name != "nt":
        # TIME_WAIT from the previous runtime generation must not block a rebind after reload
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
        sock.listen(128)
    except OSError as e:
        sock.close()
        raise ServerBindError(host, port, e) from e
    sock.set_inheritable(True)
    return sock


class StatusServer:
    """Runs uvicorn for one ServerContext on a single background listener thread.

    start() and stop() may be called from different threads (the host loop, the host's
    compile worker during a domain reload). The lifecycle lock is held for the whole of
    stop(), so a second caller returns only once the listener is gone and the port is free.
    """

    def __init__(self, context: ServerContext, host: str = DEFAULT_HOST, port: int = DEFAULT_PORT):
        self.context = context
        self.host = host
        self.port = port
        self._lifecycle_lock = threading.Lock()
        self._server: Optional[uvicorn.Server] = None
        self._thread: Optional[threading.Thread] = None
        self._sock: Optional[socket.socket] = None

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def start(self) -> None:
        """Bind, then serve on a daemon thread. Raises ServerBindError if the port is taken."""
        with self._lifecycle_lock:
            if self.is_running:
                return
            try:
                sock = bind_socket(self.host, self.port)
            except ServerBindError as e:
                logger.error("%s", e)
                raise
            config = uvicorn.Config(
                create_app(self.context),
                host=self.host,
                port=self.port,
                log_level="warning",
                access_log=False,
            )
            server = uvicorn.Server(config)
            thread = threading.Thread(
                target=server.run,
                kwargs={"sockets": [sock]},
                name="status-server-listener",
                daemon=True,
            )
            self._sock, self._server, self._thread = sock, server, thread
            thread.start()
        logger.info("Editor Agent Server started on http://%s:%s/", self.host, self.port)

    def stop(self, timeout: float = 5.0) -> None:
        """Ask uvicorn to exit, wait for the listener thread, and release the socket. Idempotent."""
        with self._lifecycle_lock:
            server, thread, sock = self._server, self._thread, self._sock
            self._server = self._thread = self._sock = None
            if server is None and sock is None:
                return
            if server is not None:
                server.should_exit = True
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout)
                if thread.is_alive():
                    logger.warning("Status server listener did not exit within %.1fs", timeout)
            if sock is not None:
                try:
                    sock.close()
                except OSError as e:
                    logger.debug("Socket close: %s", e)
        logger.info("Editor Agent Server stopped (%s:%s)", self.host, self.port)
