"""Factory for constructing the FastAPI application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from guildrank_backend.api.routers import session_router
from guildrank_backend.game_logic import FlowConfigurationError, MigrationGraphError
from guildrank_backend.settings import get_settings

logger = logging.getLogger(__name__)


async def _configuration_error_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """Surface fatal engine configuration errors as HTTP 500."""
    logger.error("Fatal configuration error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": {"reason": type(exc).__name__, "message": str(exc)}},
    )


def create_api() -> FastAPI:
    """Instantiate and configure the FastAPI application."""
    app = FastAPI(title="Guild Rank API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(FlowConfigurationError, _configuration_error_handler)
    app.add_exception_handler(MigrationGraphError, _configuration_error_handler)
    app.include_router(session_router)
    return app


app = create_api()
