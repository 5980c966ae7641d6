"""Single owner of the mutable game state.

Every mutation validates its preconditions against the current snapshot,
computes the complete next snapshot, commits it in one assignment and only
then publishes the matching events. A refused mutation raises
:class:`StateMutationError` and leaves both the state and the bus untouched.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, NoReturn

from guildrank_backend.game_logic.state import GameState, initial_state
from guildrank_backend.shared.enums import (
    GameEndReason,
    GameEventType,
    GamePhase,
    MutationFailureReason,
)
from guildrank_backend.shared.events import GameEvent

if TYPE_CHECKING:
    from guildrank_backend.game_logic.configuration import GameRules
    from guildrank_backend.game_logic.event_bus import EventBus

logger = logging.getLogger(__name__)


class StateMutationError(ValueError):
    """Raised when a state mutation violates its preconditions."""

    def __init__(self, reason: MutationFailureReason, message: str) -> None:
        super().__init__(message)
        self.reason = reason


class StateManager:
    """Own the :class:`GameState` and expose named mutation operations."""

    def __init__(
        self,
        event_bus: EventBus,
        rules: GameRules,
        *,
        state: GameState | None = None,
    ) -> None:
        self._bus = event_bus
        self._rules = rules
        self._state = state or initial_state(rules.max_action_points)

    @property
    def rules(self) -> GameRules:
        """Return the rule set the manager enforces."""
        return self._rules

    def get_state(self) -> GameState:
        """Return the current read-only snapshot."""
        return self._state

    def set_phase(self, phase: GamePhase) -> GameState:
        """Switch the active phase, publishing ``phase_changed`` on change."""
        current = self._require_active()
        if current.phase is phase:
            return current
        self._commit(
            {"phase": phase},
            GameEvent.create(
                GameEventType.PHASE_CHANGED,
                from_phase=current.phase,
                to_phase=phase,
            ),
        )
        logger.info("Phase changed %s -> %s", current.phase, phase)
        return self._state

    def consume_action_points(self, amount: int) -> GameState:
        """Debit *amount* AP from the current day."""
        current = self._require_active()
        if amount < 0:
            self._refuse(
                MutationFailureReason.INVALID_AMOUNT,
                f"Cannot consume a negative amount of action points: {amount}.",
            )
        if amount > current.action_points:
            self._refuse(
                MutationFailureReason.INSUFFICIENT_ACTION_POINTS,
                f"Requested {amount} AP but only {current.action_points} remain.",
            )
        remaining = current.action_points - amount
        self._commit(
            {"action_points": remaining},
            GameEvent.create(
                GameEventType.ACTION_POINTS_CONSUMED,
                amount=amount,
                remaining=remaining,
            ),
        )
        return self._state

    def advance_day(
        self,
        *,
        days: int = 1,
        phase: GamePhase | None = None,
        missed_deadlines: int = 0,
    ) -> GameState:
        """Move forward *days* days with a fresh AP allotment."""
        current = self._require_active()
        if days < 1 or missed_deadlines < 0:
            self._refuse(
                MutationFailureReason.INVALID_AMOUNT,
                f"Invalid day advance: days={days}, missed={missed_deadlines}.",
            )
        update: dict[str, Any] = {
            "day": current.day + days,
            "action_points": self._rules.max_action_points,
            "missed_deadlines": current.missed_deadlines + missed_deadlines,
        }
        events = [
            GameEvent.create(
                GameEventType.DAY_ADVANCED,
                from_day=current.day,
                to_day=current.day + days,
                action_points=self._rules.max_action_points,
            )
        ]
        if phase is not None and phase is not current.phase:
            update["phase"] = phase
            events.append(
                GameEvent.create(
                    GameEventType.PHASE_CHANGED,
                    from_phase=current.phase,
                    to_phase=phase,
                )
            )
        self._commit(update, *events)
        logger.info("Advanced to day %d", self._state.day)
        return self._state

    def resolve_overflow(
        self,
        *,
        cost: int,
        days: int,
        final_action_points: int,
        missed_deadlines: int = 0,
    ) -> GameState:
        """Apply a multi-day AP overflow as one step.

        The caller supplies the precomputed resolution; it must balance, i.e.
        ``action_points + days * max_action_points - cost`` equals
        ``final_action_points``.
        """
        current = self._require_active()
        allotment = self._rules.max_action_points
        if days < 1 or cost < 0 or final_action_points < 0 or missed_deadlines < 0:
            self._refuse(
                MutationFailureReason.INVALID_AMOUNT,
                "Overflow resolution requires positive days and non-negative values.",
            )
        if current.action_points + days * allotment - cost != final_action_points:
            self._refuse(
                MutationFailureReason.INSUFFICIENT_ACTION_POINTS,
                "Overflow resolution does not balance against the AP allotment.",
            )
        resulting_day = current.day + days
        self._commit(
            {
                "day": resulting_day,
                "action_points": final_action_points,
                "missed_deadlines": current.missed_deadlines + missed_deadlines,
            },
            GameEvent.create(
                GameEventType.DAY_ADVANCED,
                from_day=current.day,
                to_day=resulting_day,
                action_points=final_action_points,
            ),
            GameEvent.create(
                GameEventType.AP_OVERFLOW_RESOLVED,
                cost=cost,
                days_advanced=days,
                final_action_points=final_action_points,
                resulting_day=resulting_day,
            ),
        )
        logger.info(
            "Resolved AP overflow: cost=%d days=%d final_ap=%d",
            cost,
            days,
            final_action_points,
        )
        return self._state

    def apply_rank_progress(self, amount: int) -> GameState:
        """Add *amount* contribution to the rank gauge.

        Without a mandatory rank test, every filled gauge promotes immediately
        and the surplus carries over. With the test enabled the gauge stops at
        the requirement until :meth:`promote` is called.
        """
        current = self._require_active()
        if amount == 0:
            return current
        rank = current.rank
        gauge = max(current.rank_gauge + amount, 0)
        events: list[GameEvent] = []

        requirement = self._rules.requirement_for(rank)
        while requirement is not None and gauge >= requirement:
            if self._rules.promotion_requires_test:
                gauge = requirement
                break
            next_rank = rank.next_rank
            if next_rank is None:
                break
            events.append(
                GameEvent.create(
                    GameEventType.RANK_UP, previous_rank=rank, new_rank=next_rank
                )
            )
            gauge -= requirement
            rank = next_rank
            requirement = self._rules.requirement_for(rank)
        if rank.is_top:
            gauge = 0

        events.insert(
            0,
            GameEvent.create(
                GameEventType.RANK_GAUGE_CHANGED,
                amount=amount,
                rank_gauge=gauge,
                required=self._rules.requirement_for(rank),
            ),
        )
        self._commit({"rank": rank, "rank_gauge": gauge}, *events)
        return self._state

    def promote(self) -> GameState:
        """Promote one rank, consuming a full gauge."""
        current = self._require_active()
        next_rank = current.rank.next_rank
        if next_rank is None:
            self._refuse(
                MutationFailureReason.ALREADY_TOP_RANK,
                f"Rank {current.rank} has no further promotion.",
            )
        requirement = self._rules.requirement_for(current.rank) or 0
        if current.rank_gauge < requirement:
            self._refuse(
                MutationFailureReason.PROMOTION_NOT_READY,
                f"Rank gauge {current.rank_gauge} is below {requirement}.",
            )
        self._commit(
            {"rank": next_rank, "rank_gauge": current.rank_gauge - requirement},
            GameEvent.create(
                GameEventType.RANK_UP, previous_rank=current.rank, new_rank=next_rank
            ),
        )
        logger.info("Promoted %s -> %s", current.rank, next_rank)
        return self._state

    def begin_operation(self, phase: GamePhase) -> GameState:
        """Flag an uncommitted sub-operation owned by *phase*."""
        current = self._require_active()
        if phase in current.in_progress_operations:
            self._refuse(
                MutationFailureReason.OPERATION_ALREADY_ACTIVE,
                f"An operation is already open for {phase}.",
            )
        self._commit(
            {"in_progress_operations": current.in_progress_operations | {phase}},
            GameEvent.create(GameEventType.OPERATION_CHANGED, phase=phase, active=True),
        )
        return self._state

    def end_operation(self, phase: GamePhase) -> GameState:
        """Clear the sub-operation flag owned by *phase*."""
        current = self._require_active()
        if phase not in current.in_progress_operations:
            self._refuse(
                MutationFailureReason.OPERATION_NOT_ACTIVE,
                f"No operation is open for {phase}.",
            )
        self._commit(
            {"in_progress_operations": current.in_progress_operations - {phase}},
            GameEvent.create(
                GameEventType.OPERATION_CHANGED, phase=phase, active=False
            ),
        )
        return self._state

    def abort_operations(self) -> GameState:
        """Clear every open sub-operation flag."""
        current = self._require_active()
        if not current.in_progress_operations:
            return current
        events = [
            GameEvent.create(GameEventType.OPERATION_CHANGED, phase=phase, active=False)
            for phase in sorted(current.in_progress_operations)
        ]
        self._commit({"in_progress_operations": frozenset()}, *events)
        logger.info("Aborted %d open operations", len(events))
        return self._state

    def record_missed_deadlines(self, count: int) -> GameState:
        """Add *count* failed quest deadlines to the running total."""
        current = self._require_active()
        if count < 0:
            self._refuse(
                MutationFailureReason.INVALID_AMOUNT,
                f"Missed deadline count must be non-negative: {count}.",
            )
        if count == 0:
            return current
        self._commit({"missed_deadlines": current.missed_deadlines + count})
        return self._state

    def mark_game_over(self, reason: GameEndReason) -> GameState:
        """Commit the losing terminal state."""
        current = self._require_active()
        self._commit(
            {"game_over": True, "end_reason": reason},
            GameEvent.create(
                GameEventType.GAME_OVER,
                reason=reason,
                day=current.day,
                rank=current.rank,
            ),
        )
        logger.info("Game over on day %d: %s", current.day, reason)
        return self._state

    def mark_completed(self) -> GameState:
        """Commit the winning terminal state."""
        current = self._require_active()
        self._commit(
            {"completed": True, "end_reason": GameEndReason.TOP_RANK_REACHED},
            GameEvent.create(
                GameEventType.GAME_CLEARED, day=current.day, rank=current.rank
            ),
        )
        logger.info("Game cleared on day %d", current.day)
        return self._state

    def reset(self, state: GameState | None = None) -> GameState:
        """Start over from *state* or the initial state, without events."""
        self._state = state or initial_state(self._rules.max_action_points)
        return self._state

    def restore(self, state: GameState) -> GameState:
        """Replace the snapshot with a loaded *state* and announce it."""
        self._state = state
        self._bus.publish(
            GameEvent.create(
                GameEventType.STATE_RESTORED, day=state.day, phase=state.phase
            )
        )
        return self._state

    def _require_active(self) -> GameState:
        if self._state.is_finished:
            self._refuse(
                MutationFailureReason.GAME_FINISHED,
                "The session has ended; only reads are accepted.",
            )
        return self._state

    def _commit(self, update: dict[str, Any], *events: GameEvent) -> None:
        self._state = self._state.model_copy(update=update)
        for event in events:
            self._bus.publish(event)

    @staticmethod
    def _refuse(reason: MutationFailureReason, message: str) -> NoReturn:
        logger.debug("Mutation refused (%s): %s", reason, message)
        raise StateMutationError(reason, message)


__all__ = ["StateManager", "StateMutationError"]
