"""Database-backed implementation of the save storage protocol."""

from __future__ import annotations

import asyncio
import logging

from guildrank_backend.database.repositories import SaveSlotRepository
from guildrank_backend.database.service import DatabaseService  # noqa: TC001

logger = logging.getLogger(__name__)


class DatabaseSaveStorage:
    """Persist save blobs in the ``save_slots`` table.

    SQLAlchemy sessions are synchronous, so every call runs in a worker thread
    to keep the event loop free.
    """

    def __init__(self, database: DatabaseService) -> None:
        self._database = database

    async def save(self, key: str, blob: str) -> None:
        """Insert or overwrite the blob stored under *key*."""
        await asyncio.to_thread(self._save, key, blob)

    async def load(self, key: str) -> str | None:
        """Return the blob stored under *key* or ``None``."""
        return await asyncio.to_thread(self._load, key)

    async def delete(self, key: str) -> None:
        """Remove *key* if present."""
        await asyncio.to_thread(self._delete, key)

    def _save(self, key: str, blob: str) -> None:
        with self._database.session() as session:
            SaveSlotRepository(session).upsert(key, blob)
        logger.debug("Stored save slot '%s' (%d bytes)", key, len(blob))

    def _load(self, key: str) -> str | None:
        with self._database.session() as session:
            slot = SaveSlotRepository(session).get(key)
            return None if slot is None else slot.blob

    def _delete(self, key: str) -> None:
        with self._database.session() as session:
            removed = SaveSlotRepository(session).delete(key)
        logger.debug("Deleted save slot '%s' (existed=%s)", key, removed)


__all__ = ["DatabaseSaveStorage"]
