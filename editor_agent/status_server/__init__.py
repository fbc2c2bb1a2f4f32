"""Status server hosted inside the editor: GET /refresh, GET /ping, GET /compile-errors."""

from editor_agent.status_server.context import ServerContext

__all__ = ["ServerContext"]
