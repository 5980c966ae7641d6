"""Shared enumerations, event models and value objects for the backend."""

from guildrank_backend.shared.enums import (
    RANK_LADDER,
    ActionOutcomeStatus,
    ActionRejectionReason,
    GameEndReason,
    GameEventType,
    GamePhase,
    GuildRank,
    MigrationFailureReason,
    MutationFailureReason,
    OverflowConfirmation,
    PhaseSwitchFailureReason,
    StorageFailureReason,
)
from guildrank_backend.shared.events import (
    EVENT_PAYLOAD_TYPES,
    EventPayload,
    GameEvent,
)
from guildrank_backend.shared.value_objects import SaveVersion

__all__ = [
    "EVENT_PAYLOAD_TYPES",
    "RANK_LADDER",
    "ActionOutcomeStatus",
    "ActionRejectionReason",
    "EventPayload",
    "GameEndReason",
    "GameEvent",
    "GameEventType",
    "GamePhase",
    "GuildRank",
    "MigrationFailureReason",
    "MutationFailureReason",
    "OverflowConfirmation",
    "PhaseSwitchFailureReason",
    "SaveVersion",
    "StorageFailureReason",
]
