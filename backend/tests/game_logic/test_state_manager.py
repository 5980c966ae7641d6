"""Tests for the state manager mutations and their events."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from guildrank_backend.game_logic import (
    EventBus,
    GameRules,
    GameState,
    StateManager,
    StateMutationError,
)
from guildrank_backend.shared import (
    GameEndReason,
    GameEventType,
    GamePhase,
    GuildRank,
    MutationFailureReason,
)

if TYPE_CHECKING:
    from conftest import EventRecorder


def test_new_manager_starts_on_day_one_with_full_allotment(
    state_manager: StateManager,
) -> None:
    state = state_manager.get_state()

    assert state.day == 1
    assert state.action_points == 3
    assert state.phase is GamePhase.QUEST_ACCEPT
    assert state.rank is GuildRank.G
    assert not state.is_finished


def test_state_snapshot_is_read_only(state_manager: StateManager) -> None:
    state = state_manager.get_state()

    with pytest.raises(ValueError, match="frozen"):
        state.day = 5  # type: ignore[misc]


def test_set_phase_publishes_a_single_event(
    state_manager: StateManager, recorder: EventRecorder
) -> None:
    state_manager.set_phase(GamePhase.GATHERING)
    state_manager.set_phase(GamePhase.GATHERING)

    assert recorder.types == ["phase_changed"]
    payload = recorder.events[0].payload
    assert payload.from_phase is GamePhase.QUEST_ACCEPT
    assert payload.to_phase is GamePhase.GATHERING


def test_consume_action_points_debits_the_day(
    state_manager: StateManager, recorder: EventRecorder
) -> None:
    state = state_manager.consume_action_points(2)

    assert state.action_points == 1
    assert recorder.types == ["action_points_consumed"]
    assert recorder.events[0].payload.remaining == 1


def test_insufficient_action_points_leave_state_and_bus_untouched(
    state_manager: StateManager, recorder: EventRecorder
) -> None:
    before = state_manager.get_state()

    with pytest.raises(StateMutationError) as excinfo:
        state_manager.consume_action_points(4)

    assert excinfo.value.reason is MutationFailureReason.INSUFFICIENT_ACTION_POINTS
    assert state_manager.get_state() == before
    assert recorder.events == []


def test_negative_consumption_is_refused(state_manager: StateManager) -> None:
    with pytest.raises(StateMutationError) as excinfo:
        state_manager.consume_action_points(-1)

    assert excinfo.value.reason is MutationFailureReason.INVALID_AMOUNT


def test_advance_day_restores_allotment_and_switches_phase(
    state_manager: StateManager, recorder: EventRecorder
) -> None:
    state_manager.set_phase(GamePhase.ALCHEMY)
    state_manager.consume_action_points(3)
    recorder.events.clear()

    state = state_manager.advance_day(phase=GamePhase.QUEST_ACCEPT, missed_deadlines=1)

    assert state.day == 2
    assert state.action_points == 3
    assert state.phase is GamePhase.QUEST_ACCEPT
    assert state.missed_deadlines == 1
    assert recorder.types == ["day_advanced", "phase_changed"]


def test_resolve_overflow_commits_days_and_remainder_together(
    bus: EventBus, recorder: EventRecorder
) -> None:
    rules = GameRules(max_action_points=5, max_days=30)
    manager = StateManager(bus, rules, state=GameState(action_points=2))

    state = manager.resolve_overflow(cost=7, days=1, final_action_points=0)

    assert state.day == 2
    assert state.action_points == 0
    assert recorder.types == ["day_advanced", "ap_overflow_resolved"]
    resolved = recorder.events[1].payload
    assert resolved.days_advanced == 1
    assert resolved.resulting_day == 2


def test_unbalanced_overflow_is_refused(
    state_manager: StateManager, recorder: EventRecorder
) -> None:
    with pytest.raises(StateMutationError):
        state_manager.resolve_overflow(cost=5, days=1, final_action_points=3)

    assert state_manager.get_state().day == 1
    assert recorder.events == []


def test_rank_progress_promotes_with_carryover(
    state_manager: StateManager, recorder: EventRecorder
) -> None:
    state = state_manager.apply_rank_progress(130)

    assert state.rank is GuildRank.F
    assert state.rank_gauge == 30
    assert recorder.types == ["rank_gauge_changed", "rank_up"]
    assert recorder.events[0].payload.required == 200


def test_rank_progress_can_promote_several_ranks_at_once(
    state_manager: StateManager,
) -> None:
    state = state_manager.apply_rank_progress(100 + 200 + 10)

    assert state.rank is GuildRank.E
    assert state.rank_gauge == 10


def test_rank_gauge_is_capped_when_a_test_is_required(bus: EventBus) -> None:
    rules = GameRules(max_action_points=3, max_days=30, promotion_requires_test=True)
    manager = StateManager(bus, rules)

    state = manager.apply_rank_progress(250)

    assert state.rank is GuildRank.G
    assert state.rank_gauge == 100

    promoted = manager.promote()
    assert promoted.rank is GuildRank.F
    assert promoted.rank_gauge == 0


def test_promote_requires_a_full_gauge(state_manager: StateManager) -> None:
    state_manager.apply_rank_progress(40)

    with pytest.raises(StateMutationError) as excinfo:
        state_manager.promote()

    assert excinfo.value.reason is MutationFailureReason.PROMOTION_NOT_READY


def test_negative_progress_clamps_at_zero(state_manager: StateManager) -> None:
    state_manager.apply_rank_progress(20)

    state = state_manager.apply_rank_progress(-50)

    assert state.rank_gauge == 0


def test_operations_are_tracked_per_phase(
    state_manager: StateManager, recorder: EventRecorder
) -> None:
    state_manager.begin_operation(GamePhase.ALCHEMY)

    with pytest.raises(StateMutationError) as excinfo:
        state_manager.begin_operation(GamePhase.ALCHEMY)
    assert excinfo.value.reason is MutationFailureReason.OPERATION_ALREADY_ACTIVE

    state = state_manager.end_operation(GamePhase.ALCHEMY)
    assert state.in_progress_operations == frozenset()
    assert recorder.types == ["operation_changed", "operation_changed"]

    with pytest.raises(StateMutationError):
        state_manager.end_operation(GamePhase.ALCHEMY)


def test_abort_operations_clears_every_flag(state_manager: StateManager) -> None:
    state_manager.begin_operation(GamePhase.ALCHEMY)
    state_manager.begin_operation(GamePhase.SHOP)

    state = state_manager.abort_operations()

    assert state.in_progress_operations == frozenset()


def test_terminal_state_rejects_every_mutation(
    state_manager: StateManager, recorder: EventRecorder
) -> None:
    state_manager.mark_game_over(GameEndReason.TIME_EXPIRED)
    recorder.events.clear()

    for mutation in (
        lambda: state_manager.set_phase(GamePhase.GATHERING),
        lambda: state_manager.consume_action_points(1),
        lambda: state_manager.advance_day(),
        lambda: state_manager.apply_rank_progress(10),
        lambda: state_manager.mark_completed(),
    ):
        with pytest.raises(StateMutationError) as excinfo:
            mutation()
        assert excinfo.value.reason is MutationFailureReason.GAME_FINISHED

    assert recorder.events == []


def test_mark_completed_records_the_winning_reason(
    state_manager: StateManager, recorder: EventRecorder
) -> None:
    state = state_manager.mark_completed()

    assert state.completed
    assert state.end_reason is GameEndReason.TOP_RANK_REACHED
    assert recorder.types == ["game_cleared"]


def test_restore_announces_loaded_state(
    state_manager: StateManager, recorder: EventRecorder
) -> None:
    loaded = GameState(phase=GamePhase.DELIVERY, day=12, action_points=1)

    state = state_manager.restore(loaded)

    assert state == loaded
    assert recorder.types == ["state_restored"]


def test_reset_is_silent_and_works_after_the_game_ended(
    state_manager: StateManager, recorder: EventRecorder
) -> None:
    state_manager.mark_game_over(GameEndReason.DAY_LIMIT_EXCEEDED)
    recorder.events.clear()

    state = state_manager.reset()

    assert not state.is_finished
    assert state.day == 1
    assert recorder.events == []


def test_handler_reads_the_committed_state(
    bus: EventBus, state_manager: StateManager
) -> None:
    seen: list[int] = []
    bus.subscribe(
        GameEventType.ACTION_POINTS_CONSUMED,
        lambda _: seen.append(state_manager.get_state().action_points),
    )

    state_manager.consume_action_points(1)

    assert seen == [2]
