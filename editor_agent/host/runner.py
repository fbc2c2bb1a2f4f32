"""EditorHostRunner: the host's frame loop, and the owner of the status server lifecycle.

Each tick calls ServerContext.update(). A domain reload (signalled by the host, from any
thread) stops the listener immediately; the loop then closes the context, stays down for
reload_duration_sec, and starts a fresh context and server. SIGTERM/SIGINT stop the loop.
"""

import asyncio
import logging
import signal
import threading
from typing import Any, Dict, Optional

from editor_agent.config.settings import get_host_config, get_server_config, read_config
from editor_agent.core.metrics import ServerMetrics
from editor_agent.host.base import EditorHost
from editor_agent.host.python_host import PythonSourceHost
from editor_agent.status_server.app import ServerBindError, StatusServer
from editor_agent.status_server.context import ServerContext

logger = logging.getLogger(__name__)


class EditorHostRunner:
    """Drives one EditorHost: tick loop, status server, runtime reloads."""

    def __init__(
        self,
        host: EditorHost,
        server_host: str = "127.0.0.1",
        port: int = 5142,
        cache_refresh_interval_sec: float = 1.0,
        tick_interval_sec: float = 0.1,
        reload_duration_sec: float = 2.0,
    ):
        self.host = host
        self.server_host = server_host
        self.port = port
        self.cache_refresh_interval_sec = cache_refresh_interval_sec
        self.tick_interval_sec = tick_interval_sec
        self.reload_duration_sec = reload_duration_sec
        self.context: Optional[ServerContext] = None
        self.server: Optional[StatusServer] = None
        self.reload_count = 0
        self._lock = threading.Lock()
        self._reload_requested = threading.Event()
        self._stop_requested = False
        self.host.on_domain_reload = self._on_domain_reload

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "EditorHostRunner":
        server_cfg = get_server_config(config)
        host_cfg = get_host_config(config)
        host = PythonSourceHost(
            host_cfg["source_root"],
            include=host_cfg["include"],
            reload_on_compile=host_cfg["reload_on_compile"],
        )
        return cls(
            host,
            server_host=server_cfg["host"],
            port=server_cfg["port"],
            cache_refresh_interval_sec=server_cfg["cache_refresh_interval_sec"],
            tick_interval_sec=server_cfg["tick_interval_sec"],
            reload_duration_sec=server_cfg["reload_duration_sec"],
        )

    def start_runtime(self) -> None:
        """Construct context + server for a new runtime generation. ServerBindError propagates."""
        context = ServerContext(
            self.host,
            cache_refresh_interval_sec=self.cache_refresh_interval_sec,
            metrics=ServerMetrics(),
        )
        server = StatusServer(context, host=self.server_host, port=self.port)
        server.start()
        with self._lock:
            self.context = context
            self.server = server

    def stop_runtime(self) -> None:
        """Stop the listener and close the context of the current generation."""
        with self._lock:
            server, self.server = self.server, None
            context, self.context = self.context, None
        if server is not None:
            server.stop()
        if context is not None:
            context.close()

    def _on_domain_reload(self) -> None:
        """Called by the host (worker thread). The listener goes down before this returns."""
        logger.info("[Host] domain reload requested; stopping status server")
        self._reload_requested.set()
        with self._lock:
            server = self.server
        if server is not None:
            server.stop()

    async def _reload(self) -> None:
        self.stop_runtime()
        logger.info("[Host] runtime reloading (%.1fs)", self.reload_duration_sec)
        await asyncio.sleep(self.reload_duration_sec)
        self._reload_requested.clear()
        self.start_runtime()
        self.reload_count += 1
        logger.info("[Host] runtime reload #%s complete", self.reload_count)

    def tick(self) -> None:
        """One frame: run the context update step if a runtime is up."""
        with self._lock:
            context = self.context
        if context is not None:
            context.update()

    async def run(self) -> None:
        """Start the first runtime (fatal on bind failure), then tick until stop() is called."""
        self.start_runtime()
        logger.info(
            "[Host] started (tick=%.2fs, cache refresh=%.1fs, port=%s)",
            self.tick_interval_sec,
            self.cache_refresh_interval_sec,
            self.port,
        )
        try:
            while not self._stop_requested:
                if self._reload_requested.is_set():
                    try:
                        await self._reload()
                    except ServerBindError:
                        raise
                    except Exception as e:
                        # retried on the next pass
                        logger.exception("[Host] runtime reload failed: %s", e)
                        self._reload_requested.set()
                        await asyncio.sleep(self.tick_interval_sec)
                    continue
                try:
                    self.tick()
                except Exception as e:
                    logger.exception("[Host] update step raised: %s", e)
                await asyncio.sleep(self.tick_interval_sec)
        finally:
            self.stop_runtime()
            self.host.close()
            logger.info("[Host] stopped")

    def stop(self) -> None:
        self._stop_requested = True


async def _run_host_main(config_path: Optional[str] = None) -> None:
    """Load config, register signals, run EditorHostRunner. SIGTERM/SIGINT call runner.stop() on main loop."""
    config, resolved_path = read_config(config_path)
    logger.info("[Host] config=%s", resolved_path)
    runner = EditorHostRunner.from_config(config)
    loop = asyncio.get_running_loop()

    def _on_stop_signal(*_args: Any) -> None:
        logger.info("[Host] received SIGTERM/SIGINT → stopping")
        loop.call_soon_threadsafe(runner.stop)

    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, _on_stop_signal)
        except (NotImplementedError, OSError):
            pass  # add_signal_handler not supported on Windows
    await runner.run()


def run_host(config_path: Optional[str] = None) -> None:
    """Entry: run the host loop and status server until SIGTERM/SIGINT."""
    asyncio.run(_run_host_main(config_path))
