"""Database repositories."""

from guildrank_backend.database.repositories.save_slot import SaveSlotRepository

__all__ = ["SaveSlotRepository"]
