"""Version parsing, comparison and bumping utilities.

Only plain ``major.minor.patch`` versions are understood (an optional
leading ``v`` is allowed). Pre-release and build metadata are rejected rather
than guessed at, so a manifest version like "1.2.3-rc1" compares as
unparseable.
"""

from __future__ import annotations

import semver

from .models import VersionBump


def parse_version(version_str: str) -> semver.Version | None:
    """Parse a version string into a semver.Version object.

    Examples:
        "1.2.3" → Version(1, 2, 3)
        "v0.5.12" → Version(0, 5, 12)
        "1.2", "abc", "1.2.3.4", "" → None
    """
    if version_str.startswith("v"):
        version_str = version_str[1:]
    parts = version_str.strip().split(".")
    if len(parts) != 3:
        return None
    if not all(p.isascii() and p.isdigit() for p in parts):
        return None
    major, minor, patch = (int(p) for p in parts)
    return semver.Version(major, minor, patch)


def bump_version(version: semver.Version, kind: VersionBump) -> semver.Version:
    """Increment one component, zeroing the ones below it.

    Examples:
        1.2.3 + patch → 1.2.4
        1.2.3 + minor → 1.3.0
        1.2.3 + major → 2.0.0
    """
    if kind is VersionBump.MAJOR:
        return version.bump_major()
    if kind is VersionBump.MINOR:
        return version.bump_minor()
    return version.bump_patch()


def bump_version_str(version_str: str, kind: VersionBump) -> str | None:
    """Parse and bump a version string, returning None if it doesn't parse."""
    version = parse_version(version_str)
    if version is None:
        return None
    return str(bump_version(version, kind))


def compare_versions(a: str, b: str) -> int | None:
    """Compare two version strings.

    Returns:
        -1, 0 or 1 like ``semver.Version.compare``, or None if either
        string fails to parse.
    """
    va = parse_version(a)
    vb = parse_version(b)
    if va is None or vb is None:
        return None
    return va.compare(vb)
