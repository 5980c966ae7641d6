"""Pydantic models for the game session HTTP and WebSocket contract."""

# ruff: noqa: TC001

from __future__ import annotations

from pydantic import BaseModel, Field

from guildrank_backend.game_logic import (
    ActionDescriptor,
    GameRules,
    GameState,
    RuleOverrides,
)
from guildrank_backend.shared import GamePhase, GuildRank


class StartSessionRequest(BaseModel):
    """Client request to start a brand-new game."""

    overrides: RuleOverrides | None = None


class RulesSummary(BaseModel):
    """Subset of the rule set clients need to render progress."""

    max_action_points: int
    max_days: int
    missed_deadline_tolerance: int
    promotion_requires_test: bool
    required_gauge: int | None

    @classmethod
    def from_rules(cls, rules: GameRules, rank: GuildRank) -> RulesSummary:
        """Summarize *rules* for a player currently at *rank*."""
        return cls(
            max_action_points=rules.max_action_points,
            max_days=rules.max_days,
            missed_deadline_tolerance=rules.missed_deadline_tolerance,
            promotion_requires_test=rules.promotion_requires_test,
            required_gauge=rules.requirement_for(rank),
        )


class SessionStateResponse(BaseModel):
    """Read-only view of a session's state."""

    session_id: str
    state: GameState
    allowed_phases: list[GamePhase]
    rules: RulesSummary


class PhasesResponse(BaseModel):
    """Current phase and the destinations reachable from it."""

    current: GamePhase
    allowed: list[GamePhase]


class PhaseTransitionRequest(BaseModel):
    """Client request to switch the active phase."""

    target: GamePhase
    force_abort: bool = False


class ActionRequest(BaseModel):
    """Client request to preview or commit an AP-consuming action."""

    name: str = "action"
    ap_cost: int = Field(..., ge=0)
    phase: GamePhase | None = None
    contribution: int = Field(default=0, ge=0)
    confirmed_days: int = Field(default=0, ge=0)

    def to_descriptor(self) -> ActionDescriptor:
        """Convert the request into the game-logic action descriptor."""
        return ActionDescriptor(
            name=self.name,
            ap_cost=self.ap_cost,
            phase=self.phase,
            contribution=self.contribution,
        )


class RankTestRequest(BaseModel):
    """Outcome of the rank test played on the client."""

    passed: bool


class ErrorDetail(BaseModel):
    """Structured detail attached to rejected requests."""

    reason: str
    message: str | None = None


__all__ = [
    "ActionRequest",
    "ErrorDetail",
    "PhaseTransitionRequest",
    "PhasesResponse",
    "RankTestRequest",
    "RulesSummary",
    "SessionStateResponse",
    "StartSessionRequest",
]
