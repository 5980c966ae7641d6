"""Integration tests for the game session HTTP and WebSocket API."""

from __future__ import annotations

import asyncio
import json
import time
from typing import TYPE_CHECKING

import httpx
import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from guildrank_backend.api import create_api
from guildrank_backend.api import dependencies as dependency_module
from guildrank_backend.api.dependencies import get_game_session_service
from guildrank_backend.api.services import GameSessionService
from guildrank_backend.game_logic import GameState, InMemorySaveStorage, RuleOverrides
from guildrank_backend.shared import GameEventType, GamePhase

if TYPE_CHECKING:
    from collections.abc import Iterator

    from fastapi import FastAPI

    from guildrank_backend.shared import GameEvent


@pytest.fixture
def storage() -> InMemorySaveStorage:
    return InMemorySaveStorage()


@pytest.fixture
def session_service(storage: InMemorySaveStorage) -> GameSessionService:
    return GameSessionService(storage=storage)


@pytest.fixture
def app(session_service: GameSessionService) -> Iterator[FastAPI]:
    """Return the application wired to an isolated session service."""

    dependency_module.get_game_session_service.cache_clear()
    application = create_api()
    application.dependency_overrides[get_game_session_service] = (
        lambda: session_service
    )

    yield application

    application.dependency_overrides.clear()
    dependency_module.get_game_session_service.cache_clear()


@pytest.fixture
def client(app: FastAPI) -> Iterator[TestClient]:
    """Return a FastAPI test client with isolated game session state."""

    with TestClient(app) as test_client:
        yield test_client


def test_start_session_returns_initial_state(client: TestClient) -> None:
    response = client.post("/sessions/player-1")

    assert response.status_code == 201
    body = response.json()
    assert body["session_id"] == "player-1"
    assert body["state"]["day"] == 1
    assert body["state"]["phase"] == "quest_accept"
    assert body["state"]["action_points"] == body["rules"]["max_action_points"]
    assert "shop" not in body["allowed_phases"]


def test_start_session_applies_rule_overrides(client: TestClient) -> None:
    response = client.post(
        "/sessions/player-1",
        json={"overrides": {"max_action_points": 5, "max_days": 10}},
    )

    body = response.json()
    assert body["state"]["action_points"] == 5
    assert body["rules"]["max_days"] == 10


def test_invalid_rule_override_is_unprocessable(client: TestClient) -> None:
    response = client.post(
        "/sessions/player-1", json={"overrides": {"max_action_points": -1}}
    )

    assert response.status_code == 422
    assert client.get("/sessions/player-1/state").status_code == 404


def test_unknown_session_is_not_found(client: TestClient) -> None:
    assert client.get("/sessions/ghost/state").status_code == 404
    assert client.delete("/sessions/ghost").status_code == 404


def test_phase_transition_and_rejection(client: TestClient) -> None:
    client.post("/sessions/player-1")

    moved = client.post("/sessions/player-1/phase", json={"target": "gathering"})
    assert moved.status_code == 200
    assert moved.json()["success"] is True

    locked = client.post("/sessions/player-1/phase", json={"target": "shop"})
    assert locked.status_code == 409
    assert locked.json()["detail"]["reason"] == "phase_locked"

    phases = client.get("/sessions/player-1/phases").json()
    assert phases["current"] == "gathering"


def test_open_operation_blocks_transition_until_forced(client: TestClient) -> None:
    client.post("/sessions/player-1")
    client.post("/sessions/player-1/phase", json={"target": "alchemy"})
    opened = client.post("/sessions/player-1/operations/alchemy")
    assert opened.json()["state"]["in_progress_operations"] == ["alchemy"]

    duplicate = client.post("/sessions/player-1/operations/alchemy")
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["reason"] == "operation_already_active"

    blocked = client.post("/sessions/player-1/phase", json={"target": "delivery"})
    assert blocked.json()["detail"]["reason"] == "operation_in_progress"

    forced = client.post(
        "/sessions/player-1/phase", json={"target": "delivery", "force_abort": True}
    )
    assert forced.status_code == 200
    state = client.get("/sessions/player-1/state").json()["state"]
    assert state["phase"] == "delivery"
    assert state["in_progress_operations"] == []


def test_action_preview_does_not_commit(client: TestClient) -> None:
    client.post("/sessions/player-1")

    preview = client.post(
        "/sessions/player-1/actions/preview", json={"ap_cost": 5}
    ).json()

    assert preview["overflow_occurred"] is True
    assert preview["days_advanced"] == 1
    assert preview["final_action_points"] == 1
    state = client.get("/sessions/player-1/state").json()["state"]
    assert state["day"] == 1


def test_overflowing_action_advances_the_day(client: TestClient) -> None:
    client.post("/sessions/player-1")

    outcome = client.post("/sessions/player-1/actions", json={"ap_cost": 5}).json()

    assert outcome["status"] == "committed"
    assert outcome["state"]["day"] == 2
    assert outcome["state"]["action_points"] == 1


def test_negative_cost_is_unprocessable(client: TestClient) -> None:
    client.post("/sessions/player-1")

    preview = client.post("/sessions/player-1/actions/preview", json={"ap_cost": -1})
    action = client.post("/sessions/player-1/actions", json={"ap_cost": -1})

    assert preview.status_code == 422
    assert action.status_code == 422
    state = client.get("/sessions/player-1/state").json()["state"]
    assert state["action_points"] == 3


def test_confirmation_required_is_not_an_error(client: TestClient) -> None:
    client.post(
        "/sessions/player-1", json={"overrides": {"overflow_confirmation": "once"}}
    )

    pending = client.post("/sessions/player-1/actions", json={"ap_cost": 4})
    assert pending.status_code == 200
    assert pending.json()["status"] == "confirmation_required"

    confirmed = client.post(
        "/sessions/player-1/actions", json={"ap_cost": 4, "confirmed_days": 1}
    )
    assert confirmed.json()["state"]["day"] == 2


def test_last_day_overflow_ends_the_game(client: TestClient) -> None:
    client.post("/sessions/player-1", json={"overrides": {"max_days": 1}})

    outcome = client.post("/sessions/player-1/actions", json={"ap_cost": 4}).json()

    assert outcome["status"] == "game_over"
    assert outcome["state"]["end_reason"] == "day_limit_exceeded"

    rejected = client.post("/sessions/player-1/day/end")
    assert rejected.status_code == 409
    assert rejected.json()["detail"]["reason"] == "game_finished"


def test_end_day_and_rest(client: TestClient) -> None:
    client.post("/sessions/player-1")
    client.post("/sessions/player-1/phase", json={"target": "delivery"})

    ended = client.post("/sessions/player-1/day/end").json()
    rested = client.post("/sessions/player-1/day/rest").json()

    assert ended["state"]["day"] == 2
    assert ended["state"]["phase"] == "quest_accept"
    assert rested["state"]["day"] == 3


def test_rank_test_flow(client: TestClient) -> None:
    client.post(
        "/sessions/player-1", json={"overrides": {"promotion_requires_test": True}}
    )
    early = client.post("/sessions/player-1/rank-test", json={"passed": True})
    assert early.status_code == 409

    client.post("/sessions/player-1/actions", json={"ap_cost": 1, "contribution": 100})
    client.post("/sessions/player-1/phase", json={"target": "rank_test"})
    passed = client.post("/sessions/player-1/rank-test", json={"passed": True}).json()

    assert passed["state"]["rank"] == "F"
    assert passed["state"]["phase"] == "quest_accept"


def test_save_and_load_round_trip(client: TestClient) -> None:
    client.post("/sessions/player-1")
    client.post("/sessions/player-1/phase", json={"target": "gathering"})

    saved = client.post("/sessions/player-1/saves/slot1")
    assert saved.status_code == 200
    assert saved.json()["version"] == "1.2"

    client.post("/sessions/player-1/day/end")
    loaded = client.post("/sessions/player-1/saves/slot1/load")

    assert loaded.status_code == 200
    body = loaded.json()
    assert body["state"]["day"] == 1
    assert body["state"]["phase"] == "gathering"
    state = client.get("/sessions/player-1/state").json()["state"]
    assert state["day"] == 1


def test_saves_are_scoped_per_session(
    client: TestClient, storage: InMemorySaveStorage
) -> None:
    client.post("/sessions/player-1")
    client.post("/sessions/player-2")

    client.post("/sessions/player-1/saves/slot1")
    missing = client.post("/sessions/player-2/saves/slot1/load")

    assert storage.keys() == ("player-1:slot1",)
    assert missing.status_code == 404
    assert missing.json()["detail"]["fallback"] is True


def test_legacy_save_loads_through_migrations(
    client: TestClient, storage: InMemorySaveStorage
) -> None:
    client.post("/sessions/player-1")
    legacy = {
        "version": "1.0",
        "timestamp": "2024-03-01T10:00:00+00:00",
        "payload": {
            "currentPhase": "ALCHEMY",
            "currentDay": 5,
            "actionPoints": 1,
            "currentRank": "E",
            "promotionGauge": 12,
        },
    }
    asyncio.run(storage.save("player-1:legacy", json.dumps(legacy)))

    loaded = client.post("/sessions/player-1/saves/legacy/load").json()

    assert loaded["from_version"] == "1.0"
    assert loaded["steps_applied"] == ["1.0 -> 1.1", "1.1 -> 1.2"]
    assert loaded["state"]["rank"] == "E"


def test_corrupt_save_requests_fallback(
    client: TestClient, storage: InMemorySaveStorage
) -> None:
    client.post("/sessions/player-1")
    asyncio.run(storage.save("player-1:bad", "not json"))

    response = client.post("/sessions/player-1/saves/bad/load")

    assert response.status_code == 422
    detail = response.json()["detail"]
    assert detail["reason"] == "corrupt_data"
    assert detail["fallback"] is True


def test_delete_save(client: TestClient, storage: InMemorySaveStorage) -> None:
    client.post("/sessions/player-1")
    client.post("/sessions/player-1/saves/slot1")

    response = client.delete("/sessions/player-1/saves/slot1")

    assert response.status_code == 204
    assert storage.keys() == ()


def test_close_session(client: TestClient) -> None:
    client.post("/sessions/player-1")

    assert client.delete("/sessions/player-1").status_code == 204
    assert client.get("/sessions/player-1/state").status_code == 404


def test_websocket_streams_session_events(client: TestClient) -> None:
    client.post("/sessions/player-1")

    with client.websocket_connect("/ws/sessions/player-1/events") as websocket:
        client.post("/sessions/player-1/phase", json={"target": "gathering"})
        phase_event = websocket.receive_json()
        assert phase_event["type"] == "phase_changed"
        assert phase_event["payload"] == {
            "from_phase": "quest_accept",
            "to_phase": "gathering",
        }

        client.post("/sessions/player-1/actions", json={"ap_cost": 4})
        assert websocket.receive_json()["type"] == "day_advanced"
        overflow = websocket.receive_json()
        assert overflow["type"] == "ap_overflow_resolved"
        assert overflow["payload"]["days_advanced"] == 1


def test_websocket_for_unknown_session_is_closed(client: TestClient) -> None:
    with (
        pytest.raises(WebSocketDisconnect) as excinfo,
        client.websocket_connect("/ws/sessions/ghost/events"),
    ):
        pass

    assert excinfo.value.code == 4404


class ReadOnlyStorage(InMemorySaveStorage):
    """Storage that refuses to remove documents."""

    async def delete(self, key: str) -> None:
        msg = "disk read-only"
        raise OSError(msg)


@pytest.mark.parametrize("storage", [ReadOnlyStorage()])
def test_delete_save_storage_failure_is_unavailable(client: TestClient) -> None:
    client.post("/sessions/player-1")

    response = client.delete("/sessions/player-1/saves/slot1")

    assert response.status_code == 503
    assert response.json()["detail"]["reason"] == "storage_error"


def test_concurrent_day_ends_are_applied_one_at_a_time(
    app: FastAPI, session_service: GameSessionService
) -> None:
    runtime = session_service.create_runtime(
        "player-1", overrides=RuleOverrides(max_days=30)
    )
    runtime.flow.continue_game(GameState(day=29, action_points=3))
    runtime.state_manager.begin_operation(GamePhase.GATHERING)
    game_overs: list[GameEvent] = []
    runtime.bus.subscribe(
        GameEventType.OPERATION_CHANGED, lambda _event: time.sleep(0.05)
    )
    runtime.bus.subscribe(GameEventType.GAME_OVER, game_overs.append)

    async def end_two_days() -> list[int]:
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(
            transport=transport, base_url="http://test"
        ) as http:
            responses = await asyncio.gather(
                http.post("/sessions/player-1/day/end"),
                http.post("/sessions/player-1/day/end"),
            )
        return [response.status_code for response in responses]

    assert asyncio.run(end_two_days()) == [200, 200]
    state = runtime.flow.get_state()
    assert state.day == 30
    assert state.game_over
    assert state.end_reason == "time_expired"
    assert state.in_progress_operations == frozenset()
    assert len(game_overs) == 1
