"""SQLAlchemy schemas."""

from guildrank_backend.database.schemas.save_slot import SaveSlotSchema

__all__ = ["SaveSlotSchema"]
