"""Shared enumerations used across the backend."""

from enum import StrEnum


class GamePhase(StrEnum):
    """Modes of play available within a single day."""

    QUEST_ACCEPT = "quest_accept"
    GATHERING = "gathering"
    ALCHEMY = "alchemy"
    DELIVERY = "delivery"
    SHOP = "shop"
    RANK_TEST = "rank_test"


class GuildRank(StrEnum):
    """Guild ranks ordered from the lowest to the highest."""

    G = "G"
    F = "F"
    E = "E"
    D = "D"
    C = "C"
    B = "B"
    A = "A"
    S = "S"

    @property
    def order(self) -> int:
        """Return the zero-based position of the rank on the ladder."""
        return RANK_LADDER.index(self)

    @property
    def next_rank(self) -> "GuildRank | None":
        """Return the rank above this one or ``None`` at the top."""
        position = self.order
        if position + 1 >= len(RANK_LADDER):
            return None
        return RANK_LADDER[position + 1]

    @property
    def is_top(self) -> bool:
        """Return whether no further promotion is possible."""
        return self.next_rank is None


RANK_LADDER: tuple[GuildRank, ...] = tuple(GuildRank)


class GameEventType(StrEnum):
    """Tags for every event published on the event bus."""

    PHASE_CHANGED = "phase_changed"
    DAY_ADVANCED = "day_advanced"
    ACTION_POINTS_CONSUMED = "action_points_consumed"
    AP_OVERFLOW_RESOLVED = "ap_overflow_resolved"
    RANK_GAUGE_CHANGED = "rank_gauge_changed"
    RANK_UP = "rank_up"
    OPERATION_CHANGED = "operation_changed"
    GAME_OVER = "game_over"
    GAME_CLEARED = "game_cleared"
    STATE_RESTORED = "state_restored"
    GAME_SAVED = "game_saved"
    GAME_LOADED = "game_loaded"


class GameEndReason(StrEnum):
    """Why a session reached a terminal state."""

    TOP_RANK_REACHED = "top_rank_reached"
    DAY_LIMIT_EXCEEDED = "day_limit_exceeded"
    TIME_EXPIRED = "time_expired"
    DEADLINES_MISSED = "deadlines_missed"


class PhaseSwitchFailureReason(StrEnum):
    """Typed reasons for rejecting a phase transition request."""

    GAME_FINISHED = "game_finished"
    PHASE_LOCKED = "phase_locked"
    OPERATION_IN_PROGRESS = "operation_in_progress"


class ActionRejectionReason(StrEnum):
    """Typed reasons for rejecting an AP-consuming action."""

    GAME_FINISHED = "game_finished"
    WRONG_PHASE = "wrong_phase"
    EXCEEDS_OVERFLOW_LIMIT = "exceeds_overflow_limit"
    PROMOTION_NOT_READY = "promotion_not_ready"


class ActionOutcomeStatus(StrEnum):
    """Discriminator for the result of an action or day-end request."""

    COMMITTED = "committed"
    REJECTED = "rejected"
    CONFIRMATION_REQUIRED = "confirmation_required"
    GAME_OVER = "game_over"


class MutationFailureReason(StrEnum):
    """Reasons reported by the state manager when a mutation is refused."""

    GAME_FINISHED = "game_finished"
    INSUFFICIENT_ACTION_POINTS = "insufficient_action_points"
    INVALID_AMOUNT = "invalid_amount"
    ALREADY_TOP_RANK = "already_top_rank"
    PROMOTION_NOT_READY = "promotion_not_ready"
    OPERATION_ALREADY_ACTIVE = "operation_already_active"
    OPERATION_NOT_ACTIVE = "operation_not_active"


class MigrationFailureReason(StrEnum):
    """Why a persisted payload could not be brought to the current schema."""

    INVALID_STRUCTURE = "invalid_structure"
    VERSION_MISSING = "version_missing"
    VERSION_INVALID = "version_invalid"
    MAJOR_VERSION_MISMATCH = "major_version_mismatch"
    DOWNGRADE_NOT_SUPPORTED = "downgrade_not_supported"
    NO_MIGRATION_PATH = "no_migration_path"
    STEP_EXECUTION_ERROR = "step_execution_error"
    VALIDATION_FAILED = "validation_failed"


class StorageFailureReason(StrEnum):
    """Why a save or load request failed before migration was attempted."""

    BUSY = "busy"
    NOT_FOUND = "not_found"
    CORRUPT_DATA = "corrupt_data"
    STORAGE_ERROR = "storage_error"


class OverflowConfirmation(StrEnum):
    """Policy describing how AP overflow commits must be confirmed."""

    NONE = "none"
    ONCE = "once"
    PER_DAY = "per_day"


__all__ = [
    "RANK_LADDER",
    "ActionOutcomeStatus",
    "ActionRejectionReason",
    "GameEndReason",
    "GameEventType",
    "GamePhase",
    "GuildRank",
    "MigrationFailureReason",
    "MutationFailureReason",
    "OverflowConfirmation",
    "PhaseSwitchFailureReason",
    "StorageFailureReason",
]
