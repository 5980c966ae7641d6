"""Action-point overflow arithmetic.

Everything here is pure: previews are computed from a state snapshot and the
rule set and never touch the state manager.
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

from guildrank_backend.game_logic.configuration import GameRules  # noqa: TC001
from guildrank_backend.game_logic.state import GameState  # noqa: TC001
from guildrank_backend.shared.enums import GamePhase  # noqa: TC001


class FlowConfigurationError(RuntimeError):
    """Raised when the rule set makes the flow computation impossible."""


class ActionDescriptor(BaseModel):
    """AP-consuming action requested by the presentation layer."""

    model_config = ConfigDict(frozen=True)

    name: str = "action"
    ap_cost: int = Field(..., ge=0)
    phase: GamePhase | None = None
    contribution: int = Field(default=0, ge=0)


class ActionPreview(BaseModel):
    """Side-effect-free description of what committing an action would do."""

    model_config = ConfigDict(frozen=True)

    cost: int = Field(..., ge=0)
    current_day: int = Field(..., ge=1)
    current_action_points: int = Field(..., ge=0)
    days_advanced: int = Field(..., ge=0)
    final_action_points: int = Field(..., ge=0)
    resulting_day: int = Field(..., ge=1)
    overflow_occurred: bool = False
    triggers_game_over: bool = False


def compute_overflow(state: GameState, cost: int, rules: GameRules) -> ActionPreview:
    """Resolve *cost* against the remaining AP and future daily allotments.

    The number of advanced days is the smallest count whose fresh allotments
    cover the deficit. A resolution that would pass ``rules.max_days`` is
    flagged with ``triggers_game_over`` instead of being clamped.
    """
    if cost < 0:
        msg = f"Action cost must be non-negative, got {cost}."
        raise ValueError(msg)

    deficit = cost - state.action_points
    if deficit <= 0:
        return ActionPreview(
            cost=cost,
            current_day=state.day,
            current_action_points=state.action_points,
            days_advanced=0,
            final_action_points=-deficit,
            resulting_day=state.day,
        )

    allotment = rules.max_action_points
    if allotment <= 0:
        msg = (
            f"Cannot resolve an overflow of {deficit} AP with a daily allotment "
            f"of {allotment}."
        )
        raise FlowConfigurationError(msg)

    days = -(-deficit // allotment)
    resulting_day = state.day + days
    return ActionPreview(
        cost=cost,
        current_day=state.day,
        current_action_points=state.action_points,
        days_advanced=days,
        final_action_points=days * allotment - deficit,
        resulting_day=resulting_day,
        overflow_occurred=True,
        triggers_game_over=resulting_day > rules.max_days,
    )


__all__ = [
    "ActionDescriptor",
    "ActionPreview",
    "FlowConfigurationError",
    "compute_overflow",
]
