"""Factories wiring the database layer into the session service."""

from __future__ import annotations

from functools import cache

from guildrank_backend.database.service import DatabaseService
from guildrank_backend.database.storage import DatabaseSaveStorage
from guildrank_backend.settings import BackendSettings, get_settings


@cache
def build_database_service(database_url: str) -> DatabaseService:
    """Create a cached :class:`DatabaseService` for the given connection string."""
    return DatabaseService(database_url)


def build_save_storage(settings: BackendSettings | None = None) -> DatabaseSaveStorage:
    """Return save storage backed by the configured database."""
    config = settings or get_settings()
    return DatabaseSaveStorage(build_database_service(config.database_url))


__all__ = ["build_database_service", "build_save_storage"]
