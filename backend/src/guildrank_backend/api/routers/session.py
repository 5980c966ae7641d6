"""HTTP and WebSocket endpoints for single-player game sessions.

Every endpoint is a coroutine, so calls into a session run on the event loop
one at a time and never interleave.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

from fastapi import (
    APIRouter,
    HTTPException,
    Response,
    WebSocket,
    WebSocketDisconnect,
    status,
)

from guildrank_backend.api.dependencies import SessionRuntimeDep, SessionServiceDep
from guildrank_backend.api.models import (
    ActionRequest,
    ErrorDetail,
    PhasesResponse,
    PhaseTransitionRequest,
    RankTestRequest,
    RulesSummary,
    SessionStateResponse,
    StartSessionRequest,
)
from guildrank_backend.api.services import SessionNotFoundError, SessionRuntime
from guildrank_backend.game_logic import (
    ActionOutcome,
    ActionPreview,
    LoadResult,
    PhaseSwitchResult,
    SaveResult,
    StateMutationError,
)
from guildrank_backend.shared import (
    ActionOutcomeStatus,
    GameEvent,
    GameEventType,
    GamePhase,
    StorageFailureReason,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["session"])

WS_SESSION_NOT_FOUND = 4404


def _state_response(runtime: SessionRuntime) -> SessionStateResponse:
    """Build the read-only session view returned by most endpoints."""
    state = runtime.flow.get_state()
    return SessionStateResponse(
        session_id=runtime.session_id,
        state=state,
        allowed_phases=list(runtime.flow.allowed_phases()),
        rules=RulesSummary.from_rules(runtime.rules, state.rank),
    )


def _conflict(
    detail: dict[str, Any], code: int = status.HTTP_409_CONFLICT
) -> HTTPException:
    return HTTPException(status_code=code, detail=detail)


def _storage_failure(result: SaveResult) -> HTTPException:
    code = (
        status.HTTP_409_CONFLICT
        if result.reason is StorageFailureReason.BUSY
        else status.HTTP_503_SERVICE_UNAVAILABLE
    )
    return _conflict(result.model_dump(mode="json"), code)


def _mutation_conflict(exc: StateMutationError) -> HTTPException:
    return _conflict(ErrorDetail(reason=exc.reason, message=str(exc)).model_dump())


def _ensure_action_committed(outcome: ActionOutcome) -> ActionOutcome:
    """Raise 409 for rejected outcomes."""
    if outcome.status is not ActionOutcomeStatus.REJECTED:
        return outcome
    raise _conflict(outcome.model_dump(mode="json"))


@router.post(
    "/sessions/{session_id}",
    response_model=SessionStateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def start_session(
    session_id: str,
    service: SessionServiceDep,
    payload: StartSessionRequest | None = None,
) -> SessionStateResponse:
    """Start a new game for *session_id*, discarding any running one."""

    overrides = payload.overrides if payload is not None else None
    runtime = service.create_runtime(session_id, overrides=overrides)
    runtime.flow.start_new_game()
    return _state_response(runtime)


@router.delete("/sessions/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_session(session_id: str, service: SessionServiceDep) -> Response:
    """Discard the runtime of *session_id*."""

    if not service.close_session(session_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session '{session_id}' does not exist.",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/sessions/{session_id}/state", response_model=SessionStateResponse)
async def get_state(runtime: SessionRuntimeDep) -> SessionStateResponse:
    """Return the current state snapshot."""

    return _state_response(runtime)


@router.get("/sessions/{session_id}/phases", response_model=PhasesResponse)
async def get_phases(runtime: SessionRuntimeDep) -> PhasesResponse:
    """Return the current phase and reachable destinations."""

    return PhasesResponse(
        current=runtime.flow.get_state().phase,
        allowed=list(runtime.flow.allowed_phases()),
    )


@router.post("/sessions/{session_id}/phase", response_model=PhaseSwitchResult)
async def request_phase_transition(
    payload: PhaseTransitionRequest, runtime: SessionRuntimeDep
) -> PhaseSwitchResult:
    """Switch the active phase."""

    result = runtime.flow.request_phase_transition(
        payload.target, force_abort=payload.force_abort
    )
    if not result.success:
        raise _conflict(result.model_dump(mode="json"))
    return result


@router.post("/sessions/{session_id}/actions/preview", response_model=ActionPreview)
async def preview_action(
    payload: ActionRequest, runtime: SessionRuntimeDep
) -> ActionPreview:
    """Describe the effect of an action without committing it."""

    return runtime.flow.preview_action(payload.to_descriptor())


@router.post("/sessions/{session_id}/actions", response_model=ActionOutcome)
async def request_action(
    payload: ActionRequest, runtime: SessionRuntimeDep
) -> ActionOutcome:
    """Commit an action, possibly advancing days."""

    outcome = runtime.flow.request_action(
        payload.to_descriptor(), confirmed_days=payload.confirmed_days
    )
    return _ensure_action_committed(outcome)


@router.post(
    "/sessions/{session_id}/operations/{phase}", response_model=SessionStateResponse
)
async def begin_operation(
    phase: GamePhase, runtime: SessionRuntimeDep
) -> SessionStateResponse:
    """Mark a sub-operation owned by *phase* as open."""

    try:
        runtime.state_manager.begin_operation(phase)
    except StateMutationError as exc:
        raise _mutation_conflict(exc) from exc
    return _state_response(runtime)


@router.delete(
    "/sessions/{session_id}/operations/{phase}", response_model=SessionStateResponse
)
async def end_operation(
    phase: GamePhase, runtime: SessionRuntimeDep
) -> SessionStateResponse:
    """Close the sub-operation owned by *phase*."""

    try:
        runtime.state_manager.end_operation(phase)
    except StateMutationError as exc:
        raise _mutation_conflict(exc) from exc
    return _state_response(runtime)


@router.post("/sessions/{session_id}/day/end", response_model=ActionOutcome)
async def end_day(runtime: SessionRuntimeDep) -> ActionOutcome:
    """Close the current day."""

    return _ensure_action_committed(runtime.flow.end_day())


@router.post("/sessions/{session_id}/day/rest", response_model=ActionOutcome)
async def rest(runtime: SessionRuntimeDep) -> ActionOutcome:
    """End the day without spending AP."""

    return _ensure_action_committed(runtime.flow.rest())


@router.post("/sessions/{session_id}/rank-test", response_model=ActionOutcome)
async def complete_rank_test(
    payload: RankTestRequest, runtime: SessionRuntimeDep
) -> ActionOutcome:
    """Resolve the promotion test."""

    return _ensure_action_committed(
        runtime.flow.complete_rank_test(passed=payload.passed)
    )


@router.post("/sessions/{session_id}/saves/{slot}", response_model=SaveResult)
async def save_game(slot: str, runtime: SessionRuntimeDep) -> SaveResult:
    """Persist the current state into *slot*."""

    result = await runtime.save_load.save(slot)
    if not result.success:
        raise _storage_failure(result)
    return result


@router.post("/sessions/{session_id}/saves/{slot}/load", response_model=LoadResult)
async def load_game(slot: str, runtime: SessionRuntimeDep) -> LoadResult:
    """Restore the state saved in *slot*.

    Failures carry ``fallback`` so the client can offer a fresh game.
    """

    result = await runtime.save_load.load(slot)
    if result.success:
        return result
    if result.reason is StorageFailureReason.BUSY:
        code = status.HTTP_409_CONFLICT
    elif result.reason is StorageFailureReason.NOT_FOUND:
        code = status.HTTP_404_NOT_FOUND
    else:
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    raise _conflict(result.model_dump(mode="json"), code)


@router.delete(
    "/sessions/{session_id}/saves/{slot}", status_code=status.HTTP_204_NO_CONTENT
)
async def delete_save(slot: str, runtime: SessionRuntimeDep) -> Response:
    """Delete the save in *slot*."""

    result = await runtime.save_load.delete(slot)
    if not result.success:
        raise _storage_failure(result)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    """Consume client frames until the socket closes."""
    with contextlib.suppress(WebSocketDisconnect):
        while True:
            await websocket.receive_text()


@router.websocket("/ws/sessions/{session_id}/events")
async def stream_events(
    websocket: WebSocket, session_id: str, service: SessionServiceDep
) -> None:
    """Forward every event published in the session to the client."""

    try:
        runtime = service.get_runtime(session_id)
    except SessionNotFoundError:
        await websocket.close(code=WS_SESSION_NOT_FOUND)
        return

    queue: asyncio.Queue[dict[str, object]] = asyncio.Queue()

    def forward(event: GameEvent) -> None:
        queue.put_nowait(event.to_message())

    with runtime.bus.scope() as scope:
        scope.subscribe_many(GameEventType, forward)
        await websocket.accept()
        logger.debug("Streaming events of '%s' to a client", session_id)
        disconnect = asyncio.create_task(_wait_for_disconnect(websocket))
        try:
            while True:
                next_message = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait(
                    {next_message, disconnect},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if next_message not in done:
                    next_message.cancel()
                    break
                await websocket.send_json(next_message.result())
        finally:
            disconnect.cancel()
    logger.debug("Stopped streaming events of '%s'", session_id)


__all__ = ["router"]
