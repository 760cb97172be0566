"""Package registry port.

Registry clients (crates.io, Hackage, npm) live outside this package. The
planner only needs the two calls below, and looks clients up by build
system from a mapping the caller supplies, one client per kind.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Protocol, runtime_checkable

from .models import BuildSystemKind, PublishedVersion, PublishResult


@runtime_checkable
class RegistryClient(Protocol):
    """A package registry for one build system."""

    build_system: BuildSystemKind

    async def published_version(self, name: str) -> PublishedVersion | None:
        """Return the latest published version, or None if never published."""
        ...

    async def publish(self, path: Path, name: str, dry_run: bool) -> PublishResult:
        """Publish the package at ``path``."""
        ...


Registries = Mapping[BuildSystemKind, RegistryClient]


def registry_for(
    kind: BuildSystemKind, registries: Registries
) -> RegistryClient | None:
    """Return the registry client for ``kind``, or None if it has none.

    Unknown build systems never have a registry, even if the mapping
    contains an entry for them.
    """
    if kind is BuildSystemKind.UNKNOWN:
        return None
    return registries.get(kind)
