"""Dependency providers for FastAPI routers."""

from __future__ import annotations

from functools import cache
from typing import Annotated

from fastapi import Depends, HTTPException, status

from guildrank_backend.api.services import (
    GameSessionService,
    SessionNotFoundError,
    SessionRuntime,
)


@cache
def get_game_session_service() -> GameSessionService:
    """Return the shared :class:`GameSessionService` instance."""

    return GameSessionService.create_default()


SessionServiceDep = Annotated[GameSessionService, Depends(get_game_session_service)]


def get_session_runtime(session_id: str, service: SessionServiceDep) -> SessionRuntime:
    """Resolve the runtime addressed by the ``session_id`` path parameter."""

    try:
        return service.get_runtime(session_id)
    except SessionNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)
        ) from exc


SessionRuntimeDep = Annotated[SessionRuntime, Depends(get_session_runtime)]

__all__ = [
    "SessionRuntimeDep",
    "SessionServiceDep",
    "get_game_session_service",
    "get_session_runtime",
]
