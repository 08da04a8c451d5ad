"""Version parsing and release ordering.

Versions are three dot-separated non-negative base-10 integers. Ordering
is numeric over (major, minor, patch); strings are never compared
lexically, so ``1.2.10`` is newer than ``1.2.9``.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from enum import Enum

from relman.core.errors import VersionParseError
from relman.models.releases import ReleaseMetadata
from relman.models.versioning import Version

SORT_FIELDS = ("version", "date")
SORT_ORDERS = ("asc", "desc")


class VersionOrder(str, Enum):
    """Result of comparing two versions."""

    LESS = "less"
    EQUAL = "equal"
    GREATER = "greater"


def parse_version(value: str) -> Version:
    """Parse ``X.Y.Z`` into a :class:`Version`.

    Each component must be a non-empty run of ASCII digits. Signs,
    whitespace, and pre-release or build suffixes are rejected.

    Raises
    ------
    VersionParseError
        If ``value`` does not have exactly three integer components.
    """
    parts = value.split(".")
    if len(parts) != 3:
        raise VersionParseError(
            f"Invalid version format: {value!r}, expected X.Y.Z",
            version=value,
        )
    for label, part in zip(("major", "minor", "patch"), parts):
        if not part or not (part.isascii() and part.isdigit()):
            raise VersionParseError(
                f"Invalid {label} version component {part!r} in {value!r}",
                version=value,
            )
    major, minor, patch = (int(p) for p in parts)
    return Version(major=major, minor=minor, patch=patch)


def _as_version(value: str | Version) -> Version:
    return value if isinstance(value, Version) else parse_version(value)


def compare_versions(a: str | Version, b: str | Version) -> VersionOrder:
    """Compare two versions by (major, minor, patch)."""
    left, right = _as_version(a), _as_version(b)
    if left < right:
        return VersionOrder.LESS
    if left > right:
        return VersionOrder.GREATER
    return VersionOrder.EQUAL


def canonical_version(value: str) -> str:
    """Render a version string in its canonical ``X.Y.Z`` form."""
    return str(parse_version(value))


def _release_date(release: ReleaseMetadata) -> datetime:
    return release.release_date or release.release_timestamp


def sort_releases(
    releases: Iterable[ReleaseMetadata],
    *,
    by: str = "version",
    order: str = "desc",
) -> list[ReleaseMetadata]:
    """Return releases sorted by version or by release date.

    Date ordering falls back to the commit timestamp for releases without a
    nominal date and breaks ties by version.

    Raises
    ------
    ValueError
        If ``by`` or ``order`` is not a supported value.
    VersionParseError
        If a release carries a malformed version.
    """
    if by not in SORT_FIELDS:
        raise ValueError(f"Unsupported sort field {by!r}, expected one of {SORT_FIELDS}")
    if order not in SORT_ORDERS:
        raise ValueError(f"Unsupported sort order {order!r}, expected one of {SORT_ORDERS}")

    def _key(release: ReleaseMetadata) -> tuple:
        version = parse_version(release.version)
        if by == "version":
            return (version,)
        return (_release_date(release), version)

    return sorted(releases, key=_key, reverse=(order == "desc"))


def latest_release(releases: Iterable[ReleaseMetadata]) -> ReleaseMetadata:
    """Return the release with the highest version.

    Raises
    ------
    ValueError
        If ``releases`` is empty.
    """
    items = list(releases)
    if not items:
        raise ValueError("latest_release() requires at least one release")
    return max(items, key=lambda r: parse_version(r.version))
