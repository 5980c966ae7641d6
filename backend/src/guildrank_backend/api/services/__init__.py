"""Service layer for API-specific business logic."""

from guildrank_backend.api.services.game_session import (
    GameSessionService,
    SessionNotFoundError,
    SessionRuntime,
)

__all__ = ["GameSessionService", "SessionNotFoundError", "SessionRuntime"]
