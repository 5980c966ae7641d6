"""Request and response models for the public API."""

from guildrank_backend.api.models.session import (
    ActionRequest,
    ErrorDetail,
    PhasesResponse,
    PhaseTransitionRequest,
    RankTestRequest,
    RulesSummary,
    SessionStateResponse,
    StartSessionRequest,
)

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
