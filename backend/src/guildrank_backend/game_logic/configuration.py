"""Rule configuration objects for game sessions."""

from __future__ import annotations

from collections.abc import Mapping  # noqa: TC003
from functools import cache

from pydantic import BaseModel, Field, model_validator
from pydantic.config import ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict

from guildrank_backend.shared.enums import (
    RANK_LADDER,
    GamePhase,
    GuildRank,
    OverflowConfirmation,
)

DEFAULT_RANK_REQUIREMENTS: dict[GuildRank, int] = {
    GuildRank.G: 100,
    GuildRank.F: 200,
    GuildRank.E: 350,
    GuildRank.D: 500,
    GuildRank.C: 700,
    GuildRank.B: 1000,
    GuildRank.A: 1500,
}

DEFAULT_PHASE_UNLOCKS: dict[GamePhase, GuildRank] = {
    GamePhase.QUEST_ACCEPT: GuildRank.G,
    GamePhase.GATHERING: GuildRank.G,
    GamePhase.ALCHEMY: GuildRank.G,
    GamePhase.DELIVERY: GuildRank.G,
    GamePhase.SHOP: GuildRank.F,
    GamePhase.RANK_TEST: GuildRank.G,
}


class GameRulesDefaults(BaseSettings):
    """Load default rule parameters from the environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GUILDRANK_RULES_",
        extra="ignore",
    )

    max_action_points: int = Field(default=3, ge=1)
    max_days: int = Field(default=30, ge=1)
    missed_deadline_tolerance: int = Field(default=3, ge=0)
    promotion_requires_test: bool = False
    max_overflow_days: int | None = Field(default=None, ge=1)
    overflow_confirmation: OverflowConfirmation = OverflowConfirmation.NONE

    def to_rules(self) -> GameRules:
        """Convert defaults into an immutable rules object."""
        return GameRules(
            max_action_points=self.max_action_points,
            max_days=self.max_days,
            missed_deadline_tolerance=self.missed_deadline_tolerance,
            promotion_requires_test=self.promotion_requires_test,
            max_overflow_days=self.max_overflow_days,
            overflow_confirmation=self.overflow_confirmation,
        )


class GameRules(BaseModel):
    """Immutable rule set governing a session.

    ``max_action_points`` is not bounded here. A non-positive allotment
    surfaces as :class:`FlowConfigurationError` when overflow is computed.
    """

    model_config = ConfigDict(frozen=True)

    max_action_points: int
    max_days: int = Field(ge=1)
    missed_deadline_tolerance: int = Field(default=3, ge=0)
    rank_requirements: Mapping[GuildRank, int] = Field(
        default_factory=lambda: dict(DEFAULT_RANK_REQUIREMENTS)
    )
    phase_unlocks: Mapping[GamePhase, GuildRank] = Field(
        default_factory=lambda: dict(DEFAULT_PHASE_UNLOCKS)
    )
    promotion_requires_test: bool = False
    max_overflow_days: int | None = Field(default=None, ge=1)
    overflow_confirmation: OverflowConfirmation = OverflowConfirmation.NONE

    @model_validator(mode="after")
    def _validate_requirements(self) -> GameRules:
        """Ensure every promotable rank declares a positive requirement."""
        for rank in RANK_LADDER[:-1]:
            requirement = self.rank_requirements.get(rank)
            if requirement is None or requirement <= 0:
                msg = f"Rank {rank} must declare a positive promotion requirement."
                raise ValueError(msg)
        missing = [phase for phase in GamePhase if phase not in self.phase_unlocks]
        if missing:
            labels = ", ".join(phase.value for phase in missing)
            msg = f"No unlock rank configured for phases: {labels}"
            raise ValueError(msg)
        return self

    def requirement_for(self, rank: GuildRank) -> int | None:
        """Return the gauge needed to leave *rank* (``None`` at the top)."""
        if rank.is_top:
            return None
        return self.rank_requirements[rank]

    def is_unlocked(self, phase: GamePhase, rank: GuildRank) -> bool:
        """Return whether *phase* is reachable at *rank*."""
        return rank.order >= self.phase_unlocks[phase].order


class RuleOverrides(BaseModel):
    """Optional per-session overrides for rule settings."""

    model_config = ConfigDict(frozen=True)

    max_action_points: int | None = Field(default=None, ge=1)
    max_days: int | None = Field(default=None, ge=1)
    missed_deadline_tolerance: int | None = Field(default=None, ge=0)
    promotion_requires_test: bool | None = None
    max_overflow_days: int | None = Field(default=None, ge=1)
    overflow_confirmation: OverflowConfirmation | None = None

    def apply(self, rules: GameRules) -> GameRules:
        """Return a copy of *rules* with the provided overrides applied."""
        update = self.model_dump(exclude_none=True)
        if not update:
            return rules
        return GameRules.model_validate({**rules.model_dump(), **update})


@cache
def get_default_rules() -> GameRules:
    """Return the cached default rule set."""
    return GameRulesDefaults().to_rules()


def build_rules(overrides: RuleOverrides | None = None) -> GameRules:
    """Construct rules for a session, applying optional overrides."""
    defaults = get_default_rules()
    if overrides is None:
        return defaults
    return overrides.apply(defaults)


__all__ = [
    "DEFAULT_PHASE_UNLOCKS",
    "DEFAULT_RANK_REQUIREMENTS",
    "GameRules",
    "GameRulesDefaults",
    "RuleOverrides",
    "build_rules",
    "get_default_rules",
]
