"""Version parsing and ordering for product release archives.

One comparator is used everywhere a "latest" or an ordering is needed.
Precedence:

1. ``major.minor[.patch]`` compared numerically (missing patch is 0).
2. A release outranks any pre-release with the same core
   (``1.2.0`` > ``1.2.0-rc1``).
3. Pre-release identifiers are compared dot by dot: numeric identifiers
   by value, alphanumeric ones lexically in ASCII order, numeric lower
   than alphanumeric, and a shorter identifier list lower when all
   shared identifiers are equal.
"""

import re
from dataclasses import dataclass
from typing import Any

_VERSION_CORE = r"\d+\.\d+(?:\.\d+)?(?:-[a-zA-Z0-9.]+)?"

_FILENAME_ZIP = re.compile(rf"-v?({_VERSION_CORE})\.zip$", re.IGNORECASE)
_FILENAME_LABEL = re.compile(rf" - ({_VERSION_CORE})$", re.IGNORECASE)

_VERSION = re.compile(
    r"^v?(?P<major>\d+)\.(?P<minor>\d+)(?:\.(?P<patch>\d+))?(?:-(?P<pre>[a-zA-Z0-9.]+))?$"
)


@dataclass(frozen=True)
class SemVer:
    """Parsed version used only for ordering."""

    major: int
    minor: int
    patch: int
    prerelease: tuple[str, ...] = ()

    def sort_key(self) -> tuple[Any, ...]:
        # Releases sort above pre-releases of the same core
        if not self.prerelease:
            pre_key: tuple[Any, ...] = (1,)
        else:
            pre_key = (0, tuple(_identifier_key(part) for part in self.prerelease))
        return (self.major, self.minor, self.patch, pre_key)


def _identifier_key(identifier: str) -> tuple[int, int, str]:
    if identifier.isdigit():
        return (0, int(identifier), "")
    return (1, 0, identifier)


def parse_version(value: str | None) -> SemVer | None:
    """Parse a version string, returning None when it is not a version."""
    if not value:
        return None
    match = _VERSION.match(value.strip())
    if not match:
        return None
    pre = match.group("pre")
    prerelease = tuple(part for part in pre.split(".") if part) if pre else ()
    return SemVer(
        major=int(match.group("major")),
        minor=int(match.group("minor")),
        patch=int(match.group("patch") or 0),
        prerelease=prerelease,
    )


def is_valid_version(value: str | None) -> bool:
    return parse_version(value) is not None


def version_from_filename(filename: str) -> str | None:
    """Extract a version from an archive file name.

    Matches ``plugin-name-1.2.3.zip`` (optionally ``-v1.2.3.zip``) first,
    then a trailing label like ``Plugin Name - 2.0.0-rc1``.
    """
    if not filename:
        return None
    for pattern in (_FILENAME_ZIP, _FILENAME_LABEL):
        match = pattern.search(filename)
        if match:
            return match.group(1)
    return None


def version_sort_key(value: str) -> tuple[Any, ...]:
    """Sort key for version strings; unparseable values sort lowest."""
    parsed = parse_version(value)
    if parsed is None:
        return (-1,)
    return (0, parsed.sort_key())


def sort_versions_desc(items: list[Any], key: Any = None) -> list[Any]:
    """Sort newest first. Stable, so equal versions keep their input order."""
    get_version = key or (lambda item: item)
    return sorted(items, key=lambda item: version_sort_key(get_version(item)), reverse=True)



def is_prerelease(version: str) -> bool:
    """Whether the version carries a pre-release suffix (1.2.0-beta, 2.0.0-rc1)."""
    parsed = parse_version(version)
    return parsed is not None and bool(parsed.prerelease)


def latest_version(versions: list[str], include_prerelease: bool = False) -> str | None:
    """Highest version in the list, skipping pre-releases unless asked."""
    for version in sort_versions_desc(list(versions)):
        if not is_valid_version(version):
            continue
        if include_prerelease or not is_prerelease(version):
            return version
    return None
