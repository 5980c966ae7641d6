"""Schema history of the persisted game-state payload.

* ``1.0``: legacy camelCase layout with upper-case phase names.
* ``1.1``: snake_case layout with terminal flags.
* ``1.2``: adds open operations, missed deadlines and the end reason.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic.config import ConfigDict

from guildrank_backend.game_logic.migrations import MigrationRegistry, MigrationStep
from guildrank_backend.game_logic.state import GameState
from guildrank_backend.shared.enums import GameEndReason, GamePhase, GuildRank

CURRENT_SAVE_VERSION = "1.2"

_LEGACY_PHASE_NAMES = frozenset(phase.name for phase in GamePhase)


class SavePayloadV10(BaseModel):
    """Legacy payload written by the first public release."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    phase: str = Field(alias="currentPhase")
    day: int = Field(alias="currentDay", ge=1)
    action_points: int = Field(alias="actionPoints", ge=0)
    rank: GuildRank = Field(alias="currentRank")
    rank_gauge: int = Field(default=0, alias="promotionGauge", ge=0)

    @field_validator("phase")
    @classmethod
    def _check_phase(cls, value: str) -> str:
        if value not in _LEGACY_PHASE_NAMES:
            msg = f"Unknown legacy phase name: {value}"
            raise ValueError(msg)
        return value


class SavePayloadV11(BaseModel):
    """Snake_case payload with terminal flags."""

    phase: GamePhase
    day: int = Field(..., ge=1)
    action_points: int = Field(..., ge=0)
    rank: GuildRank
    rank_gauge: int = Field(..., ge=0)
    completed: bool = False
    game_over: bool = False


class SavePayloadV12(BaseModel):
    """Current payload layout; mirrors :class:`GameState` field for field."""

    model_config = ConfigDict(extra="forbid")

    phase: GamePhase
    day: int = Field(..., ge=1)
    action_points: int = Field(..., ge=0)
    rank: GuildRank
    rank_gauge: int = Field(..., ge=0)
    in_progress_operations: list[GamePhase] = Field(default_factory=list)
    missed_deadlines: int = Field(default=0, ge=0)
    completed: bool = False
    game_over: bool = False
    end_reason: GameEndReason | None = None

    @model_validator(mode="after")
    def _check_consistency(self) -> SavePayloadV12:
        """Ensure the payload describes a state the engine accepts."""
        self.to_state()
        return self

    @classmethod
    def from_state(cls, state: GameState) -> SavePayloadV12:
        """Capture *state* in the current payload layout."""
        return cls(
            phase=state.phase,
            day=state.day,
            action_points=state.action_points,
            rank=state.rank,
            rank_gauge=state.rank_gauge,
            in_progress_operations=sorted(state.in_progress_operations),
            missed_deadlines=state.missed_deadlines,
            completed=state.completed,
            game_over=state.game_over,
            end_reason=state.end_reason,
        )

    def to_state(self) -> GameState:
        """Build the runtime state described by the payload."""
        return GameState(
            phase=self.phase,
            day=self.day,
            action_points=self.action_points,
            rank=self.rank,
            rank_gauge=self.rank_gauge,
            in_progress_operations=frozenset(self.in_progress_operations),
            missed_deadlines=self.missed_deadlines,
            completed=self.completed,
            game_over=self.game_over,
            end_reason=self.end_reason,
        )


def upgrade_1_0_to_1_1(payload: dict[str, Any]) -> dict[str, Any]:
    """Rename camelCase keys and lower-case the phase name."""
    return {
        "phase": str(payload["currentPhase"]).lower(),
        "day": payload["currentDay"],
        "action_points": payload["actionPoints"],
        "rank": payload["currentRank"],
        "rank_gauge": payload.get("promotionGauge", 0),
        "completed": bool(payload.get("isGameClear", False)),
        "game_over": bool(payload.get("isGameOver", False)),
    }


def upgrade_1_1_to_1_2(payload: dict[str, Any]) -> dict[str, Any]:
    """Add operation flags, deadline tally and the end reason."""
    end_reason = None
    if payload.get("completed"):
        end_reason = GameEndReason.TOP_RANK_REACHED.value
    elif payload.get("game_over"):
        end_reason = GameEndReason.TIME_EXPIRED.value
    return {
        **payload,
        "in_progress_operations": [],
        "missed_deadlines": 0,
        "end_reason": end_reason,
    }


DEFAULT_MIGRATION_STEPS: tuple[MigrationStep, ...] = (
    MigrationStep(
        from_version="1.0",
        to_version="1.1",
        transform=upgrade_1_0_to_1_1,
        description="camelCase keys to snake_case",
    ),
    MigrationStep(
        from_version="1.1",
        to_version="1.2",
        transform=upgrade_1_1_to_1_2,
        description="track open operations, deadlines and end reason",
    ),
)

DEFAULT_VALIDATORS: dict[str, type[BaseModel]] = {
    "1.0": SavePayloadV10,
    "1.1": SavePayloadV11,
    "1.2": SavePayloadV12,
}


def build_default_registry(
    steps: tuple[MigrationStep, ...] = DEFAULT_MIGRATION_STEPS,
    *,
    verify_target: str | None = CURRENT_SAVE_VERSION,
) -> MigrationRegistry:
    """Return a registry holding *steps* and every known validator.

    When *verify_target* is set the graph is checked to reach it.
    """
    registry = MigrationRegistry()
    for step in steps:
        registry.register(step)
    for version, model in DEFAULT_VALIDATORS.items():
        registry.register_validator(version, model)
    if verify_target is not None:
        registry.verify(verify_target)
    return registry


def state_to_payload(state: GameState) -> dict[str, Any]:
    """Serialize *state* in the current payload layout."""
    return SavePayloadV12.from_state(state).model_dump(mode="json")


def payload_to_state(payload: dict[str, Any]) -> GameState:
    """Rebuild a :class:`GameState` from a current-version payload."""
    return SavePayloadV12.model_validate(payload).to_state()


__all__ = [
    "CURRENT_SAVE_VERSION",
    "DEFAULT_MIGRATION_STEPS",
    "DEFAULT_VALIDATORS",
    "SavePayloadV10",
    "SavePayloadV11",
    "SavePayloadV12",
    "build_default_registry",
    "payload_to_state",
    "state_to_payload",
    "upgrade_1_0_to_1_1",
    "upgrade_1_1_to_1_2",
]
