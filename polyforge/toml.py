"""TOML reading and writing utilities.

Uses tomlkit to preserve formatting and comments when modifying Cargo.toml
files. This is important for keeping version bumps as one-line diffs.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from tomlkit.exceptions import ParseError

from .errors import ManifestError


def load_toml(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a TOML file.

    Returns a TOMLDocument that preserves formatting when modified and saved.

    Raises:
        ManifestError: If the file is missing or is not valid TOML.
    """
    try:
        return tomlkit.parse(path.read_text())
    except OSError as exc:
        raise ManifestError(f"Cannot read {path}: {exc}") from exc
    except ParseError as exc:
        raise ManifestError(f"Invalid TOML in {path}: {exc}") from exc


def save_toml(path: Path, doc: tomlkit.TOMLDocument) -> str:
    """Save a TOMLDocument back to disk and return the written text."""
    content = tomlkit.dumps(doc)
    path.write_text(content)
    return content


def get_package_version(doc: tomlkit.TOMLDocument) -> str | None:
    """Extract version from [package].version, or None if it isn't set.

    Workspace-inherited versions (``version.workspace = true``) are not
    strings and also return None.
    """
    version = doc.get("package", {}).get("version")
    return str(version) if isinstance(version, str) else None


def get_ci_table(doc: tomlkit.TOMLDocument) -> dict[str, Any] | None:
    """Return the [ci] table as plain Python values, or None if absent.

    Raises:
        ManifestError: If ``ci`` is present but is not a table.
    """
    ci = doc.get("ci")
    if ci is None:
        return None
    if not isinstance(ci, dict):
        raise ManifestError("[ci] must be a table")
    return ci.unwrap()
