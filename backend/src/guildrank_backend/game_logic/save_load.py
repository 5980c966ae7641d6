"""Save and load game state through a pluggable storage collaborator.

Saves are written as JSON documents ``{version, timestamp, payload}``. Loads
run the recorded version through the migration registry before restoring the
state manager. Only one save or load may be outstanding per service; a
concurrent request is refused without touching storage.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError
from pydantic.config import ConfigDict

from guildrank_backend.game_logic.migrations import (
    MigrationRegistry,
    migrate_payload,
)
from guildrank_backend.game_logic.save_schema import (
    CURRENT_SAVE_VERSION,
    build_default_registry,
    payload_to_state,
    state_to_payload,
)
from guildrank_backend.game_logic.state import GameState  # noqa: TC001
from guildrank_backend.shared.enums import (
    GameEventType,
    MigrationFailureReason,
    StorageFailureReason,
)
from guildrank_backend.shared.events import GameEvent

if TYPE_CHECKING:
    from guildrank_backend.game_logic.event_bus import EventBus
    from guildrank_backend.game_logic.persistence import SaveStorage
    from guildrank_backend.game_logic.state_manager import StateManager

logger = logging.getLogger(__name__)

DEFAULT_KEY_PREFIX = "save:"


class SaveData(BaseModel):
    """Versioned envelope written to storage."""

    model_config = ConfigDict(frozen=True)

    version: str = Field(..., min_length=1)
    timestamp: datetime
    payload: dict[str, Any]

    def to_blob(self) -> str:
        """Serialize the envelope as JSON text."""
        return self.model_dump_json()


class SaveResult(BaseModel):
    """Outcome of a save request."""

    model_config = ConfigDict(frozen=True)

    success: bool
    slot: str
    version: str | None = None
    timestamp: datetime | None = None
    reason: StorageFailureReason | None = None
    error_message: str | None = None


class LoadResult(BaseModel):
    """Outcome of a load request.

    ``fallback`` tells the caller to start a fresh game because the save could
    not be restored safely. A refused request (``busy``) does not set it.
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    slot: str
    state: GameState | None = None
    from_version: str | None = None
    steps_applied: tuple[str, ...] = Field(default_factory=tuple)
    reason: MigrationFailureReason | StorageFailureReason | None = None
    error_message: str | None = None
    fallback: bool = False


class SaveLoadService:
    """Snapshot and restore the state manager's content."""

    def __init__(
        self,
        state_manager: StateManager,
        storage: SaveStorage,
        event_bus: EventBus,
        *,
        registry: MigrationRegistry | None = None,
        target_version: str = CURRENT_SAVE_VERSION,
        key_prefix: str = DEFAULT_KEY_PREFIX,
    ) -> None:
        self._state = state_manager
        self._storage = storage
        self._bus = event_bus
        self._registry = registry or build_default_registry()
        self._target_version = target_version
        self._key_prefix = key_prefix
        self._busy = False

    @property
    def busy(self) -> bool:
        """Return whether a save or load is outstanding."""
        return self._busy

    @property
    def target_version(self) -> str:
        """Return the schema version written by :meth:`save`."""
        return self._target_version

    def storage_key(self, slot: str) -> str:
        """Return the storage key used for *slot*."""
        if not slot:
            msg = "Save slot name must not be empty."
            raise ValueError(msg)
        return f"{self._key_prefix}{slot}"

    async def save(self, slot: str) -> SaveResult:
        """Write the current state to *slot*."""
        key = self.storage_key(slot)
        if self._busy:
            logger.warning("Refused save to '%s': another request is in flight", slot)
            return SaveResult(
                success=False,
                slot=slot,
                reason=StorageFailureReason.BUSY,
                error_message="A save or load is already in progress.",
            )

        data = SaveData(
            version=self._target_version,
            timestamp=datetime.now(tz=UTC),
            payload=state_to_payload(self._state.get_state()),
        )
        self._busy = True
        try:
            await self._storage.save(key, data.to_blob())
        except Exception as exc:
            logger.exception("Storage failed while saving '%s'", slot)
            return SaveResult(
                success=False,
                slot=slot,
                reason=StorageFailureReason.STORAGE_ERROR,
                error_message=str(exc),
            )
        finally:
            self._busy = False

        self._bus.publish(
            GameEvent.create(GameEventType.GAME_SAVED, slot=slot, version=data.version)
        )
        logger.info("Saved game to '%s' (schema %s)", slot, data.version)
        return SaveResult(
            success=True, slot=slot, version=data.version, timestamp=data.timestamp
        )

    async def load(self, slot: str) -> LoadResult:
        """Restore the state saved in *slot*, migrating it when needed."""
        key = self.storage_key(slot)
        if self._busy:
            logger.warning("Refused load of '%s': another request is in flight", slot)
            return LoadResult(
                success=False,
                slot=slot,
                reason=StorageFailureReason.BUSY,
                error_message="A save or load is already in progress.",
            )

        self._busy = True
        try:
            blob = await self._storage.load(key)
        except Exception as exc:
            logger.exception("Storage failed while loading '%s'", slot)
            return self._load_failure(
                slot, StorageFailureReason.STORAGE_ERROR, str(exc)
            )
        finally:
            self._busy = False

        if blob is None:
            return self._load_failure(
                slot, StorageFailureReason.NOT_FOUND, f"No save found in '{slot}'."
            )
        try:
            raw = json.loads(blob)
        except json.JSONDecodeError as exc:
            return self._load_failure(
                slot, StorageFailureReason.CORRUPT_DATA, f"Save is not JSON: {exc}"
            )
        if not isinstance(raw, dict):
            return self._load_failure(
                slot,
                MigrationFailureReason.INVALID_STRUCTURE,
                "Save document must be a JSON object.",
            )

        result = migrate_payload(
            raw.get("version"),
            raw.get("payload"),
            target=self._target_version,
            registry=self._registry,
        )
        if not result.success or result.payload is None:
            return LoadResult(
                success=False,
                slot=slot,
                from_version=result.from_version,
                steps_applied=result.steps_applied,
                reason=result.reason,
                error_message=result.error_message,
                fallback=True,
            )

        try:
            state = payload_to_state(result.payload)
        except ValidationError as exc:
            return self._load_failure(
                slot, MigrationFailureReason.VALIDATION_FAILED, str(exc)
            )

        self._state.restore(state)
        self._bus.publish(
            GameEvent.create(
                GameEventType.GAME_LOADED,
                slot=slot,
                from_version=result.from_version,
                steps_applied=len(result.steps_applied),
            )
        )
        logger.info(
            "Loaded '%s' from schema %s (%d migration steps)",
            slot,
            result.from_version,
            len(result.steps_applied),
        )
        return LoadResult(
            success=True,
            slot=slot,
            state=state,
            from_version=result.from_version,
            steps_applied=result.steps_applied,
        )

    async def delete(self, slot: str) -> SaveResult:
        """Remove *slot* from storage."""
        key = self.storage_key(slot)
        if self._busy:
            logger.warning("Refused delete of '%s': another request is in flight", slot)
            return SaveResult(
                success=False,
                slot=slot,
                reason=StorageFailureReason.BUSY,
                error_message="A save or load is already in progress.",
            )
        self._busy = True
        try:
            await self._storage.delete(key)
        except Exception as exc:
            logger.exception("Storage failed while deleting '%s'", slot)
            return SaveResult(
                success=False,
                slot=slot,
                reason=StorageFailureReason.STORAGE_ERROR,
                error_message=str(exc),
            )
        finally:
            self._busy = False
        logger.info("Deleted save '%s'", slot)
        return SaveResult(success=True, slot=slot)

    async def has_save(self, slot: str) -> bool:
        """Return whether *slot* holds any saved document."""
        return await self._storage.load(self.storage_key(slot)) is not None

    @staticmethod
    def _load_failure(
        slot: str,
        reason: MigrationFailureReason | StorageFailureReason,
        message: str,
    ) -> LoadResult:
        logger.warning("Load of '%s' failed (%s): %s", slot, reason, message)
        return LoadResult(
            success=False,
            slot=slot,
            reason=reason,
            error_message=message,
            fallback=True,
        )


__all__ = [
    "DEFAULT_KEY_PREFIX",
    "LoadResult",
    "SaveData",
    "SaveLoadService",
    "SaveResult",
]
