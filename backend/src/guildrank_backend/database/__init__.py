"""Database connectivity helpers and save-slot persistence."""

from guildrank_backend.database.base import BaseSchema
from guildrank_backend.database.dependencies import (
    build_database_service,
    build_save_storage,
)
from guildrank_backend.database.repositories import SaveSlotRepository
from guildrank_backend.database.schemas import SaveSlotSchema
from guildrank_backend.database.service import DatabaseService
from guildrank_backend.database.storage import DatabaseSaveStorage
from guildrank_backend.settings import BackendSettings, get_settings, settings

__all__ = [
    "BackendSettings",
    "BaseSchema",
    "DatabaseSaveStorage",
    "DatabaseService",
    "SaveSlotRepository",
    "SaveSlotSchema",
    "build_database_service",
    "build_save_storage",
    "get_settings",
    "settings",
]
