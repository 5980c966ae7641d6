"""Persistence abstractions for serialized save data.

The save/load service only sees opaque text blobs keyed by strings. The API
layer chooses a concrete adapter (in-memory or database backed) that complies
with :class:`SaveStorage`.
"""

from __future__ import annotations

from typing import Protocol


class SaveStorage(Protocol):
    """Protocol describing asynchronous key/blob persistence."""

    async def save(self, key: str, blob: str) -> None:
        """Persist *blob* under *key*, replacing any previous value."""

    async def load(self, key: str) -> str | None:
        """Return the blob stored under *key* or ``None``."""

    async def delete(self, key: str) -> None:
        """Remove *key* if present."""


class InMemorySaveStorage:
    """Trivial in-memory implementation of :class:`SaveStorage`."""

    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}

    async def save(self, key: str, blob: str) -> None:
        """Store *blob* keyed by *key*."""
        self._blobs[key] = blob

    async def load(self, key: str) -> str | None:
        """Return the stored blob for *key* if available."""
        return self._blobs.get(key)

    async def delete(self, key: str) -> None:
        """Forget *key*."""
        self._blobs.pop(key, None)

    def keys(self) -> tuple[str, ...]:
        """Return stored keys in insertion order."""
        return tuple(self._blobs)


__all__ = ["InMemorySaveStorage", "SaveStorage"]
