"""Format-preserving manifest version editing.

Each setter rewrites only the version field of one manifest kind, writes the
result back to disk and returns the new file content:

- Cargo.toml: edited through tomlkit, so comments and key order survive.
- *.cabal: line-based; the first ``version:`` line is replaced in place.
- package.json: parsed and re-serialized with two-space indentation.

Failures raise ManifestError and leave the file untouched. Edits to other
packages that already succeeded are not rolled back.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, cast

from .errors import ManifestError
from .models import BuildSystemKind
from .toml import get_package_version, load_toml, save_toml


def set_cargo_version(path: Path, new_version: str) -> str:
    """Set [package].version in ``path/Cargo.toml``."""
    cargo_path = path / "Cargo.toml"
    doc = load_toml(cargo_path)
    package = doc.get("package")
    if package is None:
        raise ManifestError(f"No [package] table in {cargo_path}")
    cast(dict[str, Any], package)["version"] = new_version
    return save_toml(cargo_path, doc)


def find_cabal_file(path: Path) -> Path | None:
    """Return the first .cabal file in a directory (by name), if any."""
    if not path.is_dir():
        return None
    matches = sorted(p for p in path.iterdir() if p.suffix == ".cabal" and p.is_file())
    return matches[0] if matches else None


def set_cabal_version(path: Path, new_version: str) -> str:
    """Rewrite the ``version:`` field of the package's .cabal file.

    The field name is matched case-insensitively; leading whitespace of the
    original line is kept and the value is aligned the way ``cabal init``
    writes it.
    """
    cabal_path = find_cabal_file(path)
    if cabal_path is None:
        raise ManifestError(f"No .cabal file found in {path}")

    try:
        lines = cabal_path.read_text().splitlines()
    except OSError as exc:
        raise ManifestError(f"Cannot read {cabal_path}: {exc}") from exc

    for i, line in enumerate(lines):
        stripped = line.lstrip()
        if stripped.lower().startswith("version:"):
            leading = line[: len(line) - len(stripped)]
            lines[i] = f"{leading}version:            {new_version}"
            break
    else:
        raise ManifestError(f"No version field found in {cabal_path}")

    content = "\n".join(lines) + "\n"
    cabal_path.write_text(content)
    return content


def _load_package_json(pkg_path: Path) -> dict[str, Any]:
    try:
        value = json.loads(pkg_path.read_text())
    except OSError as exc:
        raise ManifestError(f"Cannot read {pkg_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Invalid JSON in {pkg_path}: {exc}") from exc
    if not isinstance(value, dict):
        raise ManifestError("package.json is not a JSON object")
    return value


def set_node_version(path: Path, new_version: str) -> str:
    """Set the ``version`` key of ``path/package.json``."""
    pkg_path = path / "package.json"
    value = _load_package_json(pkg_path)
    value["version"] = new_version
    content = json.dumps(value, indent=2, ensure_ascii=False) + "\n"
    pkg_path.write_text(content)
    return content


def set_package_version(path: Path, kind: BuildSystemKind, new_version: str) -> str:
    """Dispatch to the manifest editor for ``kind``."""
    if kind is BuildSystemKind.CARGO:
        return set_cargo_version(path, new_version)
    if kind is BuildSystemKind.CABAL:
        return set_cabal_version(path, new_version)
    if kind is BuildSystemKind.NODE:
        return set_node_version(path, new_version)
    raise ManifestError("Cannot set version for unknown build system")


def read_package_version(path: Path, kind: BuildSystemKind) -> str | None:
    """Read the current version from the manifest for ``kind``.

    Returns None when the manifest has no version field.

    Raises:
        ManifestError: If the manifest is missing or malformed, or ``kind``
            is unknown.
    """
    if kind is BuildSystemKind.CARGO:
        return get_package_version(load_toml(path / "Cargo.toml"))
    if kind is BuildSystemKind.CABAL:
        cabal_path = find_cabal_file(path)
        if cabal_path is None:
            raise ManifestError(f"No .cabal file found in {path}")
        try:
            lines = cabal_path.read_text().splitlines()
        except OSError as exc:
            raise ManifestError(f"Cannot read {cabal_path}: {exc}") from exc
        for line in lines:
            stripped = line.strip()
            if stripped.lower().startswith("version:"):
                return stripped.split(":", 1)[1].strip() or None
        return None
    if kind is BuildSystemKind.NODE:
        version = _load_package_json(path / "package.json").get("version")
        return version if isinstance(version, str) else None
    raise ManifestError("Cannot read version for unknown build system")
