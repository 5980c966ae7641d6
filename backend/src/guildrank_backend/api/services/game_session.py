"""Game session runtime registry exposed to the API layer."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from guildrank_backend.database import build_save_storage
from guildrank_backend.game_logic import (
    EventBus,
    GameFlowManager,
    InMemorySaveStorage,
    SaveLoadService,
    StateManager,
    build_default_registry,
    build_rules,
)
from guildrank_backend.settings import BackendSettings, get_settings

if TYPE_CHECKING:
    from guildrank_backend.game_logic import (
        GameRules,
        MigrationRegistry,
        OperationGuards,
        RuleOverrides,
        SaveStorage,
    )

logger = logging.getLogger(__name__)


class SessionNotFoundError(LookupError):
    """Raised when an unknown session identifier is requested."""


@dataclass(slots=True)
class SessionRuntime:
    """Components wired together for one player's session."""

    session_id: str
    bus: EventBus
    state_manager: StateManager
    flow: GameFlowManager
    save_load: SaveLoadService

    @property
    def rules(self) -> GameRules:
        """Return the rule set of the session."""
        return self.state_manager.rules


class GameSessionService:
    """Create, look up and discard per-session runtimes."""

    def __init__(
        self,
        *,
        storage: SaveStorage,
        registry: MigrationRegistry | None = None,
    ) -> None:
        self._storage = storage
        self._registry = registry or build_default_registry()
        self._runtimes: dict[str, SessionRuntime] = {}

    @classmethod
    def create_default(
        cls, settings: BackendSettings | None = None
    ) -> GameSessionService:
        """Return a service backed by the storage named in *settings*."""
        config = settings or get_settings()
        if config.save_backend == "database":
            storage: SaveStorage = build_save_storage(config)
        else:
            storage = InMemorySaveStorage()
        logger.info("Game sessions use the '%s' save backend", config.save_backend)
        return cls(storage=storage)

    def create_runtime(
        self,
        session_id: str,
        *,
        overrides: RuleOverrides | None = None,
        operation_guards: OperationGuards | None = None,
    ) -> SessionRuntime:
        """Build a fresh runtime for *session_id*, replacing any previous one."""
        self.close_session(session_id)
        bus = EventBus()
        state_manager = StateManager(bus, build_rules(overrides))
        runtime = SessionRuntime(
            session_id=session_id,
            bus=bus,
            state_manager=state_manager,
            flow=GameFlowManager(state_manager, operation_guards=operation_guards),
            save_load=SaveLoadService(
                state_manager,
                self._storage,
                bus,
                registry=self._registry,
                key_prefix=f"{session_id}:",
            ),
        )
        self._runtimes[session_id] = runtime
        logger.info("Created session runtime '%s'", session_id)
        return runtime

    def get_runtime(self, session_id: str) -> SessionRuntime:
        """Return the runtime for *session_id*."""
        runtime = self._runtimes.get(session_id)
        if runtime is None:
            msg = f"Session '{session_id}' does not exist."
            raise SessionNotFoundError(msg)
        return runtime

    def close_session(self, session_id: str) -> bool:
        """Drop the runtime for *session_id* and release its subscriptions."""
        runtime = self._runtimes.pop(session_id, None)
        if runtime is None:
            return False
        runtime.bus.clear()
        logger.info("Closed session runtime '%s'", session_id)
        return True


__all__ = ["GameSessionService", "SessionNotFoundError", "SessionRuntime"]
