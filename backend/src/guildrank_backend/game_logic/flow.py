"""Game flow manager: free phase navigation and the daily AP economy.

The manager never mutates :class:`GameState` directly. It validates requests
against the current snapshot and the rule set, then commits through the
:class:`StateManager`, which announces every change on the event bus.
Validation problems are returned as typed results; only configuration errors
raise.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from pydantic import BaseModel
from pydantic.config import ConfigDict

from guildrank_backend.game_logic.overflow import (
    ActionDescriptor,
    ActionPreview,
    compute_overflow,
)
from guildrank_backend.game_logic.phases import (
    OperationGuards,
    PhaseSwitchResult,
    is_phase_unlocked,
    unlocked_phases,
)
from guildrank_backend.game_logic.state import GameState, initial_state
from guildrank_backend.shared.enums import (
    ActionOutcomeStatus,
    ActionRejectionReason,
    GameEndReason,
    GamePhase,
    OverflowConfirmation,
    PhaseSwitchFailureReason,
)

if TYPE_CHECKING:
    from guildrank_backend.game_logic.configuration import GameRules
    from guildrank_backend.game_logic.state_manager import StateManager

logger = logging.getLogger(__name__)

DeadlineQuery = Callable[[int], int]
RestHook = Callable[[], None]


class ActionOutcome(BaseModel):
    """Discriminated result of an action, day end or rank test request."""

    model_config = ConfigDict(frozen=True)

    status: ActionOutcomeStatus
    state: GameState
    preview: ActionPreview | None = None
    reason: ActionRejectionReason | None = None
    message: str | None = None

    @property
    def committed(self) -> bool:
        """Return whether the request changed the game state."""
        return self.status in {
            ActionOutcomeStatus.COMMITTED,
            ActionOutcomeStatus.GAME_OVER,
        }


class GameFlowManager:
    """Drive phase transitions, AP spending and day progression."""

    def __init__(
        self,
        state_manager: StateManager,
        *,
        operation_guards: OperationGuards | None = None,
        deadline_query: DeadlineQuery | None = None,
        rest_hook: RestHook | None = None,
    ) -> None:
        self._state = state_manager
        self._guards = operation_guards or OperationGuards()
        self._deadline_query = deadline_query
        self._rest_hook = rest_hook

    @property
    def rules(self) -> GameRules:
        """Return the rule set of the underlying state manager."""
        return self._state.rules

    @property
    def operation_guards(self) -> OperationGuards:
        """Return the external operation predicates consulted on transitions."""
        return self._guards

    def get_state(self) -> GameState:
        """Return the current state snapshot."""
        return self._state.get_state()

    # Lifecycle -----------------------------------------------------------------

    def start_new_game(self) -> GameState:
        """Discard the current session and start from day one."""
        state = self._state.reset(initial_state(self.rules.max_action_points))
        logger.info("Started a new game")
        return state

    def continue_game(self, state: GameState) -> GameState:
        """Resume play from a previously saved *state*."""
        restored = self._state.restore(state)
        logger.info("Continuing game on day %d in %s", restored.day, restored.phase)
        return restored

    # Phase navigation ------------------------------------------------------------

    def allowed_phases(self) -> tuple[GamePhase, ...]:
        """Return the phases a transition request would currently accept."""
        state = self.get_state()
        if state.is_finished:
            return ()
        busy = self._guards.busy_phases()
        return tuple(
            phase
            for phase in unlocked_phases(state, self.rules)
            if phase is state.phase
            or not (
                state.operation_blocks(phase)
                or any(owner is not phase for owner in busy)
            )
        )

    def request_phase_transition(
        self, target: GamePhase, *, force_abort: bool = False
    ) -> PhaseSwitchResult:
        """Switch to *target* when it is unlocked and nothing blocks it.

        ``force_abort`` discards open sub-operations recorded in the state and
        ignores external busy predicates.
        """
        state = self.get_state()
        if state.is_finished:
            return self._reject_transition(
                state,
                target,
                PhaseSwitchFailureReason.GAME_FINISHED,
                "The session has ended.",
            )
        if target is state.phase:
            return PhaseSwitchResult.accepted(state.phase, target)
        if not is_phase_unlocked(target, state, self.rules):
            return self._reject_transition(
                state,
                target,
                PhaseSwitchFailureReason.PHASE_LOCKED,
                f"Phase {target} is not available at rank {state.rank}.",
            )
        blocked = state.operation_blocks(target) or self._guards.blocks(target)
        if blocked and not force_abort:
            return self._reject_transition(
                state,
                target,
                PhaseSwitchFailureReason.OPERATION_IN_PROGRESS,
                "Finish or abort the open operation before switching phases.",
            )

        if force_abort:
            self._state.abort_operations()
        self._state.set_phase(target)
        self.evaluate_end_conditions()
        return PhaseSwitchResult.accepted(state.phase, target)

    # Actions and AP --------------------------------------------------------------

    def preview_action(self, action: ActionDescriptor) -> ActionPreview:
        """Describe what committing *action* would do without changing state."""
        return compute_overflow(self.get_state(), action.ap_cost, self.rules)

    def request_action(
        self, action: ActionDescriptor, *, confirmed_days: int = 0
    ) -> ActionOutcome:
        """Spend AP for *action*, auto-advancing days when it overflows."""
        state = self.get_state()
        if state.is_finished:
            return self._reject_action(
                state, ActionRejectionReason.GAME_FINISHED, "The session has ended."
            )
        if action.phase is not None and action.phase is not state.phase:
            return self._reject_action(
                state,
                ActionRejectionReason.WRONG_PHASE,
                f"{action.name} belongs to {action.phase}, not {state.phase}.",
            )

        preview = compute_overflow(state, action.ap_cost, self.rules)
        limit = self.rules.max_overflow_days
        if limit is not None and preview.days_advanced > limit:
            return self._reject_action(
                state,
                ActionRejectionReason.EXCEEDS_OVERFLOW_LIMIT,
                f"{action.name} would advance {preview.days_advanced} days "
                f"(limit {limit}).",
                preview=preview,
            )
        if self._needs_confirmation(preview, confirmed_days):
            return ActionOutcome(
                status=ActionOutcomeStatus.CONFIRMATION_REQUIRED,
                state=state,
                preview=preview,
                message=(
                    f"{action.name} advances {preview.days_advanced} day(s); "
                    "confirm to continue."
                ),
            )
        if preview.triggers_game_over:
            final = self._state.mark_game_over(GameEndReason.DAY_LIMIT_EXCEEDED)
            return ActionOutcome(
                status=ActionOutcomeStatus.GAME_OVER, state=final, preview=preview
            )

        if preview.overflow_occurred:
            self._state.resolve_overflow(
                cost=preview.cost,
                days=preview.days_advanced,
                final_action_points=preview.final_action_points,
                missed_deadlines=self._missed_deadlines(
                    state.day, preview.days_advanced
                ),
            )
        elif preview.cost > 0:
            self._state.consume_action_points(preview.cost)
        if action.contribution:
            self._state.apply_rank_progress(action.contribution)
        return self._finish(preview)

    def end_day(self) -> ActionOutcome:
        """Close the current day and start the next one in quest acceptance.

        Ending the last allowed day below the top rank loses the game.
        """
        state = self.get_state()
        if state.is_finished:
            return self._reject_action(
                state, ActionRejectionReason.GAME_FINISHED, "The session has ended."
            )
        self._state.abort_operations()
        missed = self._missed_deadlines(state.day, 1)
        if state.day >= self.rules.max_days:
            self._state.record_missed_deadlines(missed)
            if not self.evaluate_end_conditions().is_finished:
                self._state.mark_game_over(GameEndReason.TIME_EXPIRED)
            return self._finish(None)

        self._state.advance_day(phase=GamePhase.QUEST_ACCEPT, missed_deadlines=missed)
        return self._finish(None)

    def rest(self) -> ActionOutcome:
        """End the day without spending AP."""
        if not self.get_state().is_finished and self._rest_hook is not None:
            self._rest_hook()
        return self.end_day()

    def complete_rank_test(self, *, passed: bool) -> ActionOutcome:
        """Resolve the promotion test and return to quest acceptance.

        Passing promotes one rank; failing empties the rank gauge.
        """
        state = self.get_state()
        if state.is_finished:
            return self._reject_action(
                state, ActionRejectionReason.GAME_FINISHED, "The session has ended."
            )
        if state.phase is not GamePhase.RANK_TEST:
            return self._reject_action(
                state,
                ActionRejectionReason.WRONG_PHASE,
                f"Rank tests are taken in {GamePhase.RANK_TEST}, not {state.phase}.",
            )
        requirement = self.rules.requirement_for(state.rank)
        if requirement is None or state.rank_gauge < requirement:
            return self._reject_action(
                state,
                ActionRejectionReason.PROMOTION_NOT_READY,
                "The rank gauge is not full.",
            )

        if passed:
            self._state.promote()
        else:
            self._state.apply_rank_progress(-state.rank_gauge)
        self._state.set_phase(GamePhase.QUEST_ACCEPT)
        logger.info("Rank test at %s %s", state.rank, "passed" if passed else "failed")
        return self._finish(None)

    # End conditions --------------------------------------------------------------

    def evaluate_end_conditions(self) -> GameState:
        """Commit a terminal state when a win or loss condition holds."""
        state = self.get_state()
        if state.is_finished:
            return state
        if state.rank.is_top:
            return self._state.mark_completed()
        if state.missed_deadlines > self.rules.missed_deadline_tolerance:
            return self._state.mark_game_over(GameEndReason.DEADLINES_MISSED)
        return state

    # Internals -------------------------------------------------------------------

    def _needs_confirmation(self, preview: ActionPreview, confirmed_days: int) -> bool:
        if not preview.overflow_occurred:
            return False
        policy = self.rules.overflow_confirmation
        if policy is OverflowConfirmation.ONCE:
            return confirmed_days < 1
        if policy is OverflowConfirmation.PER_DAY:
            return confirmed_days < preview.days_advanced
        return False

    def _missed_deadlines(self, first_day: int, days: int) -> int:
        if self._deadline_query is None:
            return 0
        ended = range(first_day, first_day + days)
        return sum(self._deadline_query(day) for day in ended)

    def _finish(self, preview: ActionPreview | None) -> ActionOutcome:
        state = self.evaluate_end_conditions()
        status = (
            ActionOutcomeStatus.GAME_OVER
            if state.game_over
            else ActionOutcomeStatus.COMMITTED
        )
        return ActionOutcome(status=status, state=state, preview=preview)

    @staticmethod
    def _reject_transition(
        state: GameState,
        target: GamePhase,
        reason: PhaseSwitchFailureReason,
        message: str,
    ) -> PhaseSwitchResult:
        logger.warning(
            "Rejected transition %s -> %s: %s", state.phase, target, reason
        )
        return PhaseSwitchResult.rejected(state.phase, target, reason, message)

    @staticmethod
    def _reject_action(
        state: GameState,
        reason: ActionRejectionReason,
        message: str,
        *,
        preview: ActionPreview | None = None,
    ) -> ActionOutcome:
        logger.warning("Rejected action: %s (%s)", reason, message)
        return ActionOutcome(
            status=ActionOutcomeStatus.REJECTED,
            state=state,
            preview=preview,
            reason=reason,
            message=message,
        )


__all__ = [
    "ActionOutcome",
    "DeadlineQuery",
    "GameFlowManager",
    "RestHook",
]
