"""Semantic version model: three non-negative integer components."""

from __future__ import annotations

import re
from functools import total_ordering

from pydantic import BaseModel, ConfigDict, Field


@total_ordering
class Version(BaseModel):
    """A parsed ``major.minor.patch`` version.

    Ordering is purely numeric over (major, minor, patch), so
    ``1.2.10`` sorts after ``1.2.9``. Two versions with equal components
    are equal regardless of how the original strings were written.
    """

    model_config = ConfigDict(frozen=True)

    major: int = Field(ge=0)
    minor: int = Field(ge=0)
    patch: int = Field(ge=0)

    @property
    def parts(self) -> tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.parts < other.parts

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.parts == other.parts

    def __hash__(self) -> int:
        return hash(self.parts)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


_VERSION_TEXT = re.compile(r"(\d+)\.(\d+)\.(\d+)", re.ASCII)


def normalize_version_text(value: str) -> str:
    """Return ``value`` in canonical ``X.Y.Z`` form, or unchanged if malformed.

    >>> normalize_version_text("1.02.30")
    '1.2.30'
    >>> normalize_version_text("beta")
    'beta'
    """
    match = _VERSION_TEXT.fullmatch(value)
    if match is None:
        return value
    return ".".join(str(int(part)) for part in match.groups())
