"""Immutable value objects shared across the domain layer."""

from __future__ import annotations

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

MAX_PART_DIGITS = 6


class SaveVersion(BaseModel):
    """Dotted numeric schema version such as ``1.2`` or ``1.0.0``."""

    model_config = ConfigDict(frozen=True)

    parts: tuple[int, ...] = Field(..., min_length=2, max_length=3)

    @classmethod
    def parse(cls, raw: object) -> SaveVersion | None:
        """Return the parsed version or ``None`` when *raw* is malformed."""
        if not isinstance(raw, str) or not raw:
            return None
        pieces = raw.split(".")
        if not 2 <= len(pieces) <= 3:  # noqa: PLR2004
            return None
        if not all(_is_number(piece) for piece in pieces):
            return None
        return cls(parts=tuple(int(piece) for piece in pieces))

    @property
    def major(self) -> int:
        """Return the major component."""
        return self.parts[0]

    @property
    def canonical(self) -> str:
        """Return the three-part form used as a lookup key."""
        return ".".join(str(part) for part in self._padded())

    def _padded(self) -> tuple[int, int, int]:
        major, minor, *rest = self.parts
        return major, minor, rest[0] if rest else 0

    def __lt__(self, other: SaveVersion) -> bool:
        return self._padded() < other._padded()

    def __le__(self, other: SaveVersion) -> bool:
        return self._padded() <= other._padded()

    def __gt__(self, other: SaveVersion) -> bool:
        return self._padded() > other._padded()

    def __ge__(self, other: SaveVersion) -> bool:
        return self._padded() >= other._padded()

    def __str__(self) -> str:
        return ".".join(str(part) for part in self.parts)


def _is_number(piece: str) -> bool:
    return piece.isascii() and piece.isdigit() and len(piece) <= MAX_PART_DIGITS


__all__ = ["MAX_PART_DIGITS", "SaveVersion"]
