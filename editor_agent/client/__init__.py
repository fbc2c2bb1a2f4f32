"""HTTP client for the status server endpoints."""

from editor_agent.client.status_client import (
    BadStatus,
    MalformedResponse,
    ServerTimeout,
    ServerUnreachable,
    StatusClient,
    StatusClientError,
)

__all__ = [
    "BadStatus",
    "MalformedResponse",
    "ServerTimeout",
    "ServerUnreachable",
    "StatusClient",
    "StatusClientError",
]
