"""Tests for the synchronous event bus."""

from __future__ import annotations

import logging

import pytest

from guildrank_backend.game_logic.event_bus import EventBus, HandlerFailure
from guildrank_backend.shared import GameEvent, GameEventType, GamePhase


def _phase_event(
    from_phase: GamePhase = GamePhase.QUEST_ACCEPT,
    to_phase: GamePhase = GamePhase.GATHERING,
) -> GameEvent:
    return GameEvent.create(
        GameEventType.PHASE_CHANGED, from_phase=from_phase, to_phase=to_phase
    )


def test_handlers_run_in_registration_order() -> None:
    bus = EventBus()
    calls: list[str] = []
    bus.subscribe(GameEventType.PHASE_CHANGED, lambda _: calls.append("first"))
    bus.subscribe(GameEventType.PHASE_CHANGED, lambda _: calls.append("second"))
    bus.subscribe(GameEventType.DAY_ADVANCED, lambda _: calls.append("other"))

    bus.publish(_phase_event())

    assert calls == ["first", "second"]


def test_raising_handler_does_not_block_later_handlers(
    caplog: pytest.LogCaptureFixture,
) -> None:
    failures: list[HandlerFailure] = []
    bus = EventBus(error_reporter=failures.append)
    delivered: list[GameEvent] = []

    def broken(_: GameEvent) -> None:
        msg = "render failed"
        raise RuntimeError(msg)

    broken_handle = bus.subscribe(GameEventType.PHASE_CHANGED, broken)
    bus.subscribe(GameEventType.PHASE_CHANGED, delivered.append)

    event = _phase_event()
    with caplog.at_level(logging.ERROR):
        bus.publish(event)

    assert delivered == [event]
    assert len(failures) == 1
    assert failures[0].handle == broken_handle
    assert isinstance(failures[0].error, RuntimeError)
    assert "render failed" in caplog.text


def test_failing_error_reporter_is_logged_not_raised(
    caplog: pytest.LogCaptureFixture,
) -> None:
    def reporter(_: HandlerFailure) -> None:
        msg = "reporter down"
        raise ValueError(msg)

    bus = EventBus(error_reporter=reporter)
    bus.subscribe(GameEventType.PHASE_CHANGED, lambda _: 1 / 0)

    with caplog.at_level(logging.ERROR):
        bus.publish(_phase_event())

    assert "Error reporter failed" in caplog.text


def test_unsubscribe_stops_delivery_and_reports_unknown_handles() -> None:
    bus = EventBus()
    delivered: list[GameEvent] = []
    handle = bus.subscribe(GameEventType.PHASE_CHANGED, delivered.append)

    assert bus.unsubscribe(handle) is True
    assert bus.unsubscribe(handle) is False
    bus.publish(_phase_event())

    assert delivered == []
    assert bus.subscriber_count() == 0


def test_handler_removed_mid_dispatch_is_skipped() -> None:
    bus = EventBus()
    calls: list[str] = []
    handles = {}

    def first(_: GameEvent) -> None:
        calls.append("first")
        bus.unsubscribe(handles["second"])

    handles["first"] = bus.subscribe(GameEventType.PHASE_CHANGED, first)
    handles["second"] = bus.subscribe(
        GameEventType.PHASE_CHANGED, lambda _: calls.append("second")
    )

    bus.publish(_phase_event())

    assert calls == ["first"]


def test_handler_added_mid_dispatch_waits_for_next_event() -> None:
    bus = EventBus()
    calls: list[str] = []

    def first(_: GameEvent) -> None:
        calls.append("first")
        bus.subscribe(GameEventType.PHASE_CHANGED, lambda _: calls.append("late"))

    bus.subscribe(GameEventType.PHASE_CHANGED, first)
    bus.publish(_phase_event())
    assert calls == ["first"]

    bus.publish(_phase_event())
    assert calls == ["first", "first", "late"]


def test_nested_publish_is_queued_after_current_dispatch() -> None:
    bus = EventBus()
    calls: list[str] = []

    def on_phase(_: GameEvent) -> None:
        calls.append("phase:a")
        bus.publish(
            GameEvent.create(
                GameEventType.DAY_ADVANCED, from_day=1, to_day=2, action_points=3
            )
        )
        calls.append("phase:a-done")

    bus.subscribe(GameEventType.PHASE_CHANGED, on_phase)
    bus.subscribe(GameEventType.PHASE_CHANGED, lambda _: calls.append("phase:b"))
    bus.subscribe(GameEventType.DAY_ADVANCED, lambda _: calls.append("day"))

    bus.publish(_phase_event())

    assert calls == ["phase:a", "phase:a-done", "phase:b", "day"]


def test_once_handler_runs_a_single_time() -> None:
    bus = EventBus()
    delivered: list[GameEvent] = []
    bus.once(GameEventType.PHASE_CHANGED, delivered.append)

    bus.publish(_phase_event())
    bus.publish(_phase_event())

    assert len(delivered) == 1
    assert bus.subscriber_count(GameEventType.PHASE_CHANGED) == 0


def test_scope_releases_its_subscriptions() -> None:
    bus = EventBus()
    delivered: list[GameEvent] = []
    bus.subscribe(GameEventType.DAY_ADVANCED, delivered.append)

    with bus.scope() as scope:
        scope.subscribe_many(
            (GameEventType.PHASE_CHANGED, GameEventType.RANK_UP), delivered.append
        )
        assert scope.size == 2
        assert bus.subscriber_count() == 3

    assert scope.size == 0
    assert bus.subscriber_count() == 1
    bus.publish(_phase_event())
    assert delivered == []


def test_clear_drops_every_registration() -> None:
    bus = EventBus()
    bus.subscribe(GameEventType.PHASE_CHANGED, lambda _: None)
    bus.subscribe(GameEventType.RANK_UP, lambda _: None)

    bus.clear()

    assert bus.subscriber_count() == 0


def test_event_payload_must_match_type() -> None:
    with pytest.raises(ValueError, match="requires a PhaseChangedPayload"):
        GameEvent(
            type=GameEventType.PHASE_CHANGED,
            payload=GameEvent.create(
                GameEventType.RANK_UP, previous_rank="G", new_rank="F"
            ).payload,
        )


def test_event_message_is_json_friendly() -> None:
    message = _phase_event().to_message()

    assert message["type"] == "phase_changed"
    assert message["payload"] == {"from_phase": "quest_accept", "to_phase": "gathering"}
    assert isinstance(message["occurred_at"], str)
