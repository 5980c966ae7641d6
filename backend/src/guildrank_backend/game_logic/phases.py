"""Phase navigation rules for the daily free-order loop."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING

from pydantic import BaseModel
from pydantic.config import ConfigDict

from guildrank_backend.shared.enums import GamePhase, PhaseSwitchFailureReason

if TYPE_CHECKING:
    from guildrank_backend.game_logic.configuration import GameRules
    from guildrank_backend.game_logic.state import GameState

OperationQuery = Callable[[], bool]


class PhaseSwitchResult(BaseModel):
    """Outcome of a phase transition request."""

    model_config = ConfigDict(frozen=True)

    success: bool
    from_phase: GamePhase
    to_phase: GamePhase
    reason: PhaseSwitchFailureReason | None = None
    message: str | None = None

    @classmethod
    def accepted(cls, from_phase: GamePhase, to_phase: GamePhase) -> PhaseSwitchResult:
        """Build a successful result."""
        return cls(success=True, from_phase=from_phase, to_phase=to_phase)

    @classmethod
    def rejected(
        cls,
        from_phase: GamePhase,
        to_phase: GamePhase,
        reason: PhaseSwitchFailureReason,
        message: str,
    ) -> PhaseSwitchResult:
        """Build a rejection carrying *reason*."""
        return cls(
            success=False,
            from_phase=from_phase,
            to_phase=to_phase,
            reason=reason,
            message=message,
        )


class OperationGuards:
    """External "operation in progress" predicates keyed by owning phase."""

    def __init__(
        self, queries: Mapping[GamePhase, OperationQuery] | None = None
    ) -> None:
        self._queries: dict[GamePhase, OperationQuery] = dict(queries or {})

    def register(self, phase: GamePhase, query: OperationQuery) -> None:
        """Install *query* as the busy check for operations owned by *phase*."""
        self._queries[phase] = query

    def busy_phases(self) -> frozenset[GamePhase]:
        """Return phases whose collaborator currently reports an open operation."""
        return frozenset(phase for phase, query in self._queries.items() if query())

    def blocks(self, target: GamePhase) -> bool:
        """Return whether an operation owned by another phase is open."""
        return any(phase is not target for phase in self.busy_phases())


def rank_test_ready(state: GameState, rules: GameRules) -> bool:
    """Return whether the rank gauge is full and a test is required to promote."""
    requirement = rules.requirement_for(state.rank)
    if requirement is None or not rules.promotion_requires_test:
        return False
    return state.rank_gauge >= requirement


def is_phase_unlocked(phase: GamePhase, state: GameState, rules: GameRules) -> bool:
    """Return whether *phase* can be entered with the current rank and gauge."""
    if not rules.is_unlocked(phase, state.rank):
        return False
    if phase is GamePhase.RANK_TEST:
        return rank_test_ready(state, rules)
    return True


def unlocked_phases(state: GameState, rules: GameRules) -> tuple[GamePhase, ...]:
    """Return unlocked phases in their canonical order."""
    return tuple(phase for phase in GamePhase if is_phase_unlocked(phase, state, rules))


__all__ = [
    "OperationGuards",
    "OperationQuery",
    "PhaseSwitchResult",
    "is_phase_unlocked",
    "rank_test_ready",
    "unlocked_phases",
]
