"""Test configuration and fixtures for the backend test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from guildrank_backend.game_logic import (
    EventBus,
    GameFlowManager,
    GameRules,
    StateManager,
)
from guildrank_backend.game_logic.configuration import get_default_rules
from guildrank_backend.settings import get_settings
from guildrank_backend.shared import GameEventType

if TYPE_CHECKING:
    from collections.abc import Iterator

    from guildrank_backend.shared import GameEvent


@pytest.fixture(autouse=True)
def _mock_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Ensure settings are loaded with predictable values during tests."""
    monkeypatch.setenv("SAVE_BACKEND", "memory")
    get_settings.cache_clear()
    get_default_rules.cache_clear()
    yield
    get_settings.cache_clear()
    get_default_rules.cache_clear()


class EventRecorder:
    """Collect every event delivered to it."""

    def __init__(self) -> None:
        self.events: list[GameEvent] = []

    def __call__(self, event: GameEvent) -> None:
        self.events.append(event)

    @property
    def types(self) -> list[str]:
        return [event.type.value for event in self.events]


@pytest.fixture
def rules() -> GameRules:
    """Return a rule set with the default ladder and a 3 AP allotment."""
    return GameRules(max_action_points=3, max_days=30)


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def recorder(bus: EventBus) -> EventRecorder:
    """Subscribe a recorder to every event type on *bus*."""
    recorder = EventRecorder()
    for event_type in GameEventType:
        bus.subscribe(event_type, recorder)
    return recorder


@pytest.fixture
def state_manager(bus: EventBus, rules: GameRules) -> StateManager:
    return StateManager(bus, rules)


@pytest.fixture
def flow(state_manager: StateManager) -> GameFlowManager:
    return GameFlowManager(state_manager)
