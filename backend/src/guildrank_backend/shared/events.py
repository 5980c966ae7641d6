"""Event envelopes and typed payloads published on the event bus."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field, SerializeAsAny, model_validator
from pydantic.config import ConfigDict

from guildrank_backend.shared.enums import (
    GameEndReason,
    GameEventType,
    GamePhase,
    GuildRank,
)


class EventPayload(BaseModel):
    """Base class for all event payloads."""

    model_config = ConfigDict(frozen=True)


class PhaseChangedPayload(EventPayload):
    from_phase: GamePhase
    to_phase: GamePhase


class DayAdvancedPayload(EventPayload):
    from_day: int = Field(..., ge=1)
    to_day: int = Field(..., ge=1)
    action_points: int = Field(..., ge=0)


class ActionPointsConsumedPayload(EventPayload):
    amount: int = Field(..., ge=0)
    remaining: int = Field(..., ge=0)


class OverflowResolvedPayload(EventPayload):
    cost: int = Field(..., ge=0)
    days_advanced: int = Field(..., ge=0)
    final_action_points: int = Field(..., ge=0)
    resulting_day: int = Field(..., ge=1)


class RankGaugeChangedPayload(EventPayload):
    amount: int
    rank_gauge: int = Field(..., ge=0)
    required: int | None = None


class RankUpPayload(EventPayload):
    previous_rank: GuildRank
    new_rank: GuildRank


class OperationChangedPayload(EventPayload):
    phase: GamePhase
    active: bool


class GameOverPayload(EventPayload):
    reason: GameEndReason
    day: int = Field(..., ge=1)
    rank: GuildRank


class GameClearedPayload(EventPayload):
    day: int = Field(..., ge=1)
    rank: GuildRank


class StateRestoredPayload(EventPayload):
    day: int = Field(..., ge=1)
    phase: GamePhase


class GameSavedPayload(EventPayload):
    slot: str = Field(..., min_length=1)
    version: str


class GameLoadedPayload(EventPayload):
    slot: str = Field(..., min_length=1)
    from_version: str
    steps_applied: int = Field(..., ge=0)


EVENT_PAYLOAD_TYPES: dict[GameEventType, type[EventPayload]] = {
    GameEventType.PHASE_CHANGED: PhaseChangedPayload,
    GameEventType.DAY_ADVANCED: DayAdvancedPayload,
    GameEventType.ACTION_POINTS_CONSUMED: ActionPointsConsumedPayload,
    GameEventType.AP_OVERFLOW_RESOLVED: OverflowResolvedPayload,
    GameEventType.RANK_GAUGE_CHANGED: RankGaugeChangedPayload,
    GameEventType.RANK_UP: RankUpPayload,
    GameEventType.OPERATION_CHANGED: OperationChangedPayload,
    GameEventType.GAME_OVER: GameOverPayload,
    GameEventType.GAME_CLEARED: GameClearedPayload,
    GameEventType.STATE_RESTORED: StateRestoredPayload,
    GameEventType.GAME_SAVED: GameSavedPayload,
    GameEventType.GAME_LOADED: GameLoadedPayload,
}


class GameEvent(BaseModel):
    """Immutable envelope delivered to subscribers of a single event type."""

    model_config = ConfigDict(frozen=True)

    type: GameEventType
    payload: SerializeAsAny[EventPayload]
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))

    @model_validator(mode="after")
    def _ensure_payload_matches_type(self) -> GameEvent:
        """Ensure the payload model is the one registered for the event type."""
        expected = EVENT_PAYLOAD_TYPES[self.type]
        if not isinstance(self.payload, expected):
            msg = (
                f"Event '{self.type}' requires a {expected.__name__} payload, "
                f"got {type(self.payload).__name__}."
            )
            raise ValueError(msg)
        return self

    @classmethod
    def create(cls, event_type: GameEventType, **fields: object) -> GameEvent:
        """Build an event, validating *fields* against the registered payload."""
        payload_type = EVENT_PAYLOAD_TYPES[event_type]
        return cls(type=event_type, payload=payload_type(**fields))

    def to_message(self) -> dict[str, object]:
        """Return a JSON-friendly mapping of the event."""
        return {
            "type": self.type.value,
            "payload": self.payload.model_dump(mode="json"),
            "occurred_at": self.occurred_at.isoformat(),
        }


__all__ = [
    "EVENT_PAYLOAD_TYPES",
    "ActionPointsConsumedPayload",
    "DayAdvancedPayload",
    "EventPayload",
    "GameClearedPayload",
    "GameEvent",
    "GameLoadedPayload",
    "GameOverPayload",
    "GameSavedPayload",
    "OperationChangedPayload",
    "OverflowResolvedPayload",
    "PhaseChangedPayload",
    "RankGaugeChangedPayload",
    "RankUpPayload",
    "StateRestoredPayload",
]
