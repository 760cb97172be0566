"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from polyforge.graph import DependencyGraph
from polyforge.models import BuildSystemKind, DepNode, DepRef


def cargo_node(
    name: str, version: str | None = "0.1.0", path: str | None = None
) -> DepNode:
    return DepNode(
        name=name,
        version=version,
        build_system=BuildSystemKind.CARGO,
        path=path or name,
    )


@pytest.fixture
def plexus_graph() -> DependencyGraph:
    """core ← macros ← hyperforge, with hyperforge also using core directly."""
    nodes = [
        cargo_node("core", "0.2.1", "plexus-core"),
        cargo_node("macros", "0.2.2", "plexus-macros"),
        cargo_node("hyperforge", "3.3.0", "hyperforge"),
    ]
    deps = [
        (1, [DepRef(name="core", version_req="0.2.1")]),
        (
            2,
            [
                DepRef(name="core", version_req="0.2.1"),
                DepRef(name="macros", version_req="0.2.2"),
            ],
        ),
    ]
    return DependencyGraph.build(nodes, deps)


@pytest.fixture
def chain_graph() -> DependencyGraph:
    """a depends on b, b depends on c (all path dependencies)."""
    nodes = [
        cargo_node("a", "0.2.0"),
        cargo_node("b", "0.1.0"),
        cargo_node("c", "1.0.0"),
    ]
    deps = [
        (0, [DepRef(name="b", version_req="0.1", is_path_dep=True, path="../b")]),
        (1, [DepRef(name="c", version_req="1.0", is_path_dep=True, path="../c")]),
    ]
    return DependencyGraph.build(nodes, deps)


@pytest.fixture
def cargo_package(tmp_path: Path) -> Path:
    """Create a crate directory with a commented Cargo.toml."""
    content = """\
[package]
name = "my-crate"
version = "0.3.0"
edition = "2021"

# This comment should be preserved
[dependencies]
serde = "1"
"""
    (tmp_path / "Cargo.toml").write_text(content)
    return tmp_path


@pytest.fixture
def cabal_package(tmp_path: Path) -> Path:
    """Create a Haskell package directory with a .cabal file."""
    content = (
        "cabal-version:      2.4\n"
        "name:               my-package\n"
        "version:            0.2.0\n"
        "build-type:         Simple\n"
    )
    (tmp_path / "my-package.cabal").write_text(content)
    return tmp_path


@pytest.fixture
def node_package(tmp_path: Path) -> Path:
    """Create an npm package directory with a package.json."""
    (tmp_path / "package.json").write_text(
        '{"name": "web", "version": "1.4.0", "scripts": {"build": "tsc"}}\n'
    )
    return tmp_path
