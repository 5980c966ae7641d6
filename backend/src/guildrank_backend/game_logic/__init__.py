"""Session orchestration core: events, state, flow and save migrations."""

from guildrank_backend.game_logic.configuration import (
    GameRules,
    GameRulesDefaults,
    RuleOverrides,
    build_rules,
    get_default_rules,
)
from guildrank_backend.game_logic.event_bus import (
    EventBus,
    HandlerFailure,
    SubscriptionHandle,
    SubscriptionScope,
)
from guildrank_backend.game_logic.flow import ActionOutcome, GameFlowManager
from guildrank_backend.game_logic.migrations import (
    MigrationGraphError,
    MigrationRegistry,
    MigrationResult,
    MigrationStep,
    migrate_payload,
)
from guildrank_backend.game_logic.overflow import (
    ActionDescriptor,
    ActionPreview,
    FlowConfigurationError,
    compute_overflow,
)
from guildrank_backend.game_logic.persistence import InMemorySaveStorage, SaveStorage
from guildrank_backend.game_logic.phases import OperationGuards, PhaseSwitchResult
from guildrank_backend.game_logic.save_load import (
    LoadResult,
    SaveData,
    SaveLoadService,
    SaveResult,
)
from guildrank_backend.game_logic.save_schema import (
    CURRENT_SAVE_VERSION,
    build_default_registry,
)
from guildrank_backend.game_logic.state import GameState, initial_state
from guildrank_backend.game_logic.state_manager import StateManager, StateMutationError

__all__ = [
    "CURRENT_SAVE_VERSION",
    "ActionDescriptor",
    "ActionOutcome",
    "ActionPreview",
    "EventBus",
    "FlowConfigurationError",
    "GameFlowManager",
    "GameRules",
    "GameRulesDefaults",
    "GameState",
    "HandlerFailure",
    "InMemorySaveStorage",
    "LoadResult",
    "MigrationGraphError",
    "MigrationRegistry",
    "MigrationResult",
    "MigrationStep",
    "OperationGuards",
    "PhaseSwitchResult",
    "RuleOverrides",
    "SaveData",
    "SaveLoadService",
    "SaveResult",
    "SaveStorage",
    "StateManager",
    "StateMutationError",
    "SubscriptionHandle",
    "SubscriptionScope",
    "build_default_registry",
    "build_rules",
    "compute_overflow",
    "get_default_rules",
    "initial_state",
    "migrate_payload",
]
