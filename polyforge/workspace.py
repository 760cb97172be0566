"""Workspace description files.

Manifest scanning happens outside polyforge. The scanner's output is a JSON
document listing every workspace package with its declared dependencies:

    {
      "packages": [
        {"name": "core", "version": "0.2.1", "build_system": "cargo",
         "path": "plexus-core", "deps": []},
        {"name": "macros", "version": "0.2.2", "build_system": "cargo",
         "path": "plexus-macros",
         "deps": [{"name": "core", "version_req": "0.2.1"}]}
      ]
    }

Package order in the file becomes node order in the graph.
"""

from __future__ import annotations

from pathlib import Path

import pydantic
from pydantic import BaseModel, Field

from .errors import PolyforgeError
from .graph import DependencyGraph
from .models import BuildSystemKind, DepNode, DepRef


class WorkspacePackage(BaseModel):
    name: str
    version: str | None = None
    build_system: BuildSystemKind = BuildSystemKind.UNKNOWN
    path: str
    deps: list[DepRef] = Field(default_factory=list)


class WorkspaceFile(BaseModel):
    packages: list[WorkspacePackage] = Field(default_factory=list)

    def to_graph(self, *, include_dev: bool = True) -> DependencyGraph:
        nodes = [
            DepNode(
                name=p.name, version=p.version, build_system=p.build_system, path=p.path
            )
            for p in self.packages
        ]
        return DependencyGraph.build(
            nodes,
            [(i, p.deps) for i, p in enumerate(self.packages) if p.deps],
            include_dev=include_dev,
        )


def load_workspace(path: Path, *, include_dev: bool = True) -> DependencyGraph:
    """Load a workspace description file and build its dependency graph.

    Pass ``include_dev=False`` for the graph a publish plan is built from:
    dev-dependencies don't ship with a package and may point back at one of
    its dependents.

    Raises:
        PolyforgeError: If the file can't be read, isn't valid JSON, or
            doesn't match the expected shape, or package names repeat.
    """
    try:
        workspace = WorkspaceFile.model_validate_json(path.read_text())
    except OSError as exc:
        raise PolyforgeError(f"Cannot read {path}: {exc}") from exc
    except pydantic.ValidationError as exc:
        raise PolyforgeError(f"Invalid workspace file {path}: {exc}") from exc

    seen: set[str] = set()
    for package in workspace.packages:
        if package.name in seen:
            raise PolyforgeError(f"Duplicate package name in {path}: {package.name}")
        seen.add(package.name)

    return workspace.to_graph(include_dev=include_dev)
