"""Route definitions for public HTTP and WebSocket endpoints."""

from guildrank_backend.api.routers.session import router as session_router

__all__ = ["session_router"]
