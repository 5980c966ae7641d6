"""Repository helpers for working with save slots."""

from sqlalchemy import delete
from sqlalchemy.orm import Session

from guildrank_backend.database.schemas import SaveSlotSchema


class SaveSlotRepository:
    """Encapsulates persistence operations for :class:`SaveSlotSchema`."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def get(self, key: str) -> SaveSlotSchema | None:
        """Return the slot stored under *key*."""
        return self._session.get(SaveSlotSchema, key)

    def upsert(self, key: str, blob: str) -> SaveSlotSchema:
        """Insert a new slot or overwrite the blob of an existing one."""
        slot = self.get(key)
        if slot is None:
            slot = SaveSlotSchema(key=key, blob=blob)
            self._session.add(slot)
        else:
            slot.blob = blob
        self._session.flush()
        return slot

    def delete(self, key: str) -> bool:
        """Remove the slot under *key*; return whether a row was deleted."""
        result = self._session.execute(
            delete(SaveSlotSchema).where(SaveSlotSchema.key == key)
        )
        return bool(result.rowcount)
