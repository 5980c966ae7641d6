"""Versioned save-payload migrations.

The registry is a directed acyclic graph of schema versions. Each edge is a
:class:`MigrationStep` that rewrites a raw payload from one version to the
next, and each version may carry a pydantic model that validates payloads of
that shape. The registry never touches runtime game state.
"""

from __future__ import annotations

import copy
import logging
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from pydantic.config import ConfigDict

from guildrank_backend.shared.enums import MigrationFailureReason
from guildrank_backend.shared.value_objects import SaveVersion

logger = logging.getLogger(__name__)

PayloadTransform = Callable[[dict[str, Any]], dict[str, Any]]


class MigrationGraphError(RuntimeError):
    """Raised when the registered migration graph is unusable."""


@dataclass(frozen=True, slots=True)
class MigrationStep:
    """Single edge converting payloads from ``from_version`` to ``to_version``."""

    from_version: str
    to_version: str
    transform: PayloadTransform
    description: str = ""

    @property
    def label(self) -> str:
        """Return a short ``from -> to`` label for diagnostics."""
        return f"{self.from_version} -> {self.to_version}"


class MigrationResult(BaseModel):
    """Outcome of bringing a payload to the target version."""

    model_config = ConfigDict(frozen=True)

    success: bool
    from_version: str | None
    to_version: str
    payload: dict[str, Any] | None = None
    steps_applied: tuple[str, ...] = Field(default_factory=tuple)
    reason: MigrationFailureReason | None = None
    error_message: str | None = None
    fallback: bool = False


def _key(version: str) -> str:
    parsed = SaveVersion.parse(version)
    if parsed is None:
        msg = f"Invalid schema version: {version!r}"
        raise MigrationGraphError(msg)
    return parsed.canonical


class MigrationRegistry:
    """Store migration steps and per-version payload validators."""

    def __init__(self) -> None:
        self._edges: dict[str, dict[str, MigrationStep]] = {}
        self._validators: dict[str, type[BaseModel]] = {}

    def register(self, step: MigrationStep) -> None:
        """Add *step*, rejecting duplicate edges and cycles."""
        source, target = _key(step.from_version), _key(step.to_version)
        if source == target:
            msg = f"Migration step {step.label} does not change the version."
            raise MigrationGraphError(msg)
        if target in self._edges.get(source, {}):
            msg = f"Migration step {step.label} is already registered."
            raise MigrationGraphError(msg)
        if self._find_path(target, source) is not None:
            msg = f"Migration step {step.label} would introduce a cycle."
            raise MigrationGraphError(msg)
        self._edges.setdefault(source, {})[target] = step
        logger.debug("Registered migration %s", step.label)

    def register_validator(self, version: str, model: type[BaseModel]) -> None:
        """Use *model* to validate payloads tagged with *version*."""
        self._validators[_key(version)] = model

    def versions(self) -> frozenset[str]:
        """Return every version that appears in a step or has a validator."""
        known = set(self._validators)
        for source, targets in self._edges.items():
            known.add(source)
            known.update(targets)
        return frozenset(known)

    def steps(self) -> tuple[MigrationStep, ...]:
        """Return all registered steps ordered by source version."""
        ordered = sorted(
            self._edges, key=lambda key: tuple(int(part) for part in key.split("."))
        )
        return tuple(
            step for source in ordered for step in self._edges[source].values()
        )

    def get_path(
        self, from_version: str, to_version: str
    ) -> tuple[MigrationStep, ...] | None:
        """Return the shortest chain of steps or ``None`` when unreachable."""
        return self._find_path(_key(from_version), _key(to_version))

    def can_migrate(self, from_version: str, to_version: str) -> bool:
        """Return whether a chain of steps connects the two versions."""
        return self.get_path(from_version, to_version) is not None

    def has_validator(self, version: str) -> bool:
        """Return whether payloads of *version* can be validated."""
        return _key(version) in self._validators

    def validate(self, version: str, payload: Mapping[str, Any]) -> BaseModel:
        """Validate *payload* against the model registered for *version*.

        Raises :class:`pydantic.ValidationError` for malformed payloads.
        """
        model = self._validators.get(_key(version))
        if model is None:
            msg = f"No validator registered for schema version {version}."
            raise MigrationGraphError(msg)
        return model.model_validate(payload)

    def verify(self, target_version: str) -> None:
        """Ensure every known version can reach *target_version*."""
        target = _key(target_version)
        if target not in self._validators:
            msg = f"Target schema version {target_version} has no validator."
            raise MigrationGraphError(msg)
        stranded = sorted(
            version
            for version in self.versions()
            if version != target and self._find_path(version, target) is None
        )
        if stranded:
            msg = f"Versions cannot reach {target_version}: {', '.join(stranded)}"
            raise MigrationGraphError(msg)

    def _find_path(self, source: str, target: str) -> tuple[MigrationStep, ...] | None:
        if source == target:
            return ()
        queue: deque[tuple[str, tuple[MigrationStep, ...]]] = deque([(source, ())])
        visited = {source}
        while queue:
            version, path = queue.popleft()
            for next_version, step in self._edges.get(version, {}).items():
                if next_version in visited:
                    continue
                extended = (*path, step)
                if next_version == target:
                    return extended
                visited.add(next_version)
                queue.append((next_version, extended))
        return None


def _failure(
    from_version: str | None,
    target: str,
    reason: MigrationFailureReason,
    message: str,
    steps_applied: tuple[str, ...] = (),
) -> MigrationResult:
    logger.warning("Save migration failed (%s): %s", reason, message)
    return MigrationResult(
        success=False,
        from_version=from_version,
        to_version=target,
        steps_applied=steps_applied,
        reason=reason,
        error_message=message,
        fallback=True,
    )


def migrate_payload(
    version: object,
    payload: object,
    *,
    target: str,
    registry: MigrationRegistry,
) -> MigrationResult:
    """Bring *payload*, tagged with *version*, to the *target* schema.

    Every failure is reported as a result with ``fallback`` set. Only an
    unusable *target* or a missing target validator raise
    :class:`MigrationGraphError`.
    """
    target_version = SaveVersion.parse(target)
    if target_version is None:
        msg = f"Invalid target schema version: {target!r}"
        raise MigrationGraphError(msg)

    if not isinstance(payload, Mapping):
        return _failure(
            None,
            target,
            MigrationFailureReason.INVALID_STRUCTURE,
            f"Save payload must be an object, got {type(payload).__name__}.",
        )
    if not isinstance(version, str) or not version:
        return _failure(
            None,
            target,
            MigrationFailureReason.VERSION_MISSING,
            "Save data does not declare a schema version.",
        )
    source_version = SaveVersion.parse(version)
    if source_version is None:
        return _failure(
            version,
            target,
            MigrationFailureReason.VERSION_INVALID,
            f"Malformed schema version: {version!r}",
        )
    if source_version.major != target_version.major:
        return _failure(
            version,
            target,
            MigrationFailureReason.MAJOR_VERSION_MISMATCH,
            f"Major versions differ: {version} -> {target}",
        )
    if source_version > target_version:
        return _failure(
            version,
            target,
            MigrationFailureReason.DOWNGRADE_NOT_SUPPORTED,
            f"Cannot downgrade save data from {version} to {target}.",
        )

    data: dict[str, Any] = copy.deepcopy(dict(payload))
    applied: tuple[str, ...] = ()
    if source_version < target_version:
        path = registry.get_path(version, target)
        if path is None:
            return _failure(
                version,
                target,
                MigrationFailureReason.NO_MIGRATION_PATH,
                f"No migration path from {version} to {target}.",
            )
        for step in path:
            try:
                data = step.transform(data)
            except Exception as exc:  # noqa: BLE001
                return _failure(
                    version,
                    target,
                    MigrationFailureReason.STEP_EXECUTION_ERROR,
                    f"Migration {step.label} failed: {exc}",
                    applied,
                )
            if not isinstance(data, dict):
                return _failure(
                    version,
                    target,
                    MigrationFailureReason.STEP_EXECUTION_ERROR,
                    f"Migration {step.label} did not return an object.",
                    applied,
                )
            applied = (*applied, step.label)

    try:
        validated = registry.validate(target, data)
    except ValidationError as exc:
        return _failure(
            version,
            target,
            MigrationFailureReason.VALIDATION_FAILED,
            f"Payload is invalid for schema {target}: {exc}",
            applied,
        )

    if applied:
        logger.info(
            "Migrated save data %s -> %s in %d steps", version, target, len(applied)
        )
    return MigrationResult(
        success=True,
        from_version=version,
        to_version=target,
        payload=validated.model_dump(mode="json"),
        steps_applied=applied,
    )


__all__ = [
    "MigrationGraphError",
    "MigrationRegistry",
    "MigrationResult",
    "MigrationStep",
    "PayloadTransform",
    "migrate_payload",
]
