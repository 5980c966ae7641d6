"""Authoritative game-state container shared by the game logic layer."""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict

from guildrank_backend.shared.enums import GameEndReason, GamePhase, GuildRank


class GameState(BaseModel):
    """Immutable snapshot of a single player's session.

    Instances are frozen: the state manager replaces the whole snapshot on
    every mutation, so any reference handed out is a stable read-only view.
    """

    model_config = ConfigDict(frozen=True)

    phase: GamePhase = GamePhase.QUEST_ACCEPT
    day: int = Field(default=1, ge=1)
    action_points: int = Field(default=0, ge=0)
    rank: GuildRank = GuildRank.G
    rank_gauge: int = Field(default=0, ge=0)
    in_progress_operations: frozenset[GamePhase] = Field(default_factory=frozenset)
    missed_deadlines: int = Field(default=0, ge=0)
    completed: bool = False
    game_over: bool = False
    end_reason: GameEndReason | None = None

    @model_validator(mode="after")
    def _validate_terminal_flags(self) -> GameState:
        """Ensure terminal markers are consistent with each other."""
        if self.completed and self.game_over:
            msg = "A session cannot be both completed and game over."
            raise ValueError(msg)
        if self.is_finished and self.end_reason is None:
            msg = "Terminal states must record an end reason."
            raise ValueError(msg)
        if not self.is_finished and self.end_reason is not None:
            msg = "Only terminal states may carry an end reason."
            raise ValueError(msg)
        return self

    @property
    def is_finished(self) -> bool:
        """Return whether the session reached a terminal state."""
        return self.completed or self.game_over

    def operation_blocks(self, target: GamePhase) -> bool:
        """Return whether an open operation owned by another phase exists."""
        return any(phase is not target for phase in self.in_progress_operations)


def initial_state(max_action_points: int) -> GameState:
    """Return the state a brand-new session starts from."""
    return GameState(action_points=max_action_points)


__all__ = ["GameState", "initial_state"]
