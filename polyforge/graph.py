"""Workspace dependency graph.

Packages are stored in a flat list and referred to by index everywhere
(edges, tiers, closures, plan steps). Indices are stable for the lifetime of
a graph: nothing is ever removed or reordered after ``build``.

Edges point from the dependent to its dependency, so "a depends on b" is the
edge a → b, and b must be built before a.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable, Sequence

from .errors import CycleError
from .models import DepEdge, DepNode, DepRef, VersionMismatch

_RANGE_OPERATORS = ("^", "~", ">=", "<=", ">", "<", "=")


class DependencyGraph:
    """Immutable, index-based dependency graph over workspace packages."""

    def __init__(self, nodes: Sequence[DepNode], edges: Sequence[DepEdge]) -> None:
        self.nodes: tuple[DepNode, ...] = tuple(nodes)
        self.edges: tuple[DepEdge, ...] = tuple(edges)
        self._name_to_idx = {node.name: i for i, node in enumerate(self.nodes)}
        n = len(self.nodes)
        for edge in self.edges:
            if not (0 <= edge.from_idx < n and 0 <= edge.to_idx < n):
                raise ValueError(
                    f"Edge {edge.from_idx} → {edge.to_idx} references a missing node"
                )

    @classmethod
    def build(
        cls,
        nodes: Sequence[DepNode],
        deps_by_node_index: Iterable[tuple[int, Iterable[DepRef]]],
        *,
        include_dev: bool = True,
    ) -> DependencyGraph:
        """Build a graph from workspace nodes and their declared dependencies.

        Dependencies whose name isn't a workspace node are registry-only
        packages outside the workspace and are dropped.

        Args:
            nodes: Workspace packages; their position becomes their index.
            deps_by_node_index: Pairs of (dependent index, dependency refs).
            include_dev: Keep dev-only dependencies. Publishing passes False:
                         dev-dependencies are not part of a published
                         package and often point back at a dependent.
        """
        name_to_idx = {node.name: i for i, node in enumerate(nodes)}
        edges: list[DepEdge] = []
        for from_idx, deps in deps_by_node_index:
            for dep in deps:
                if dep.is_dev and not include_dev:
                    continue
                to_idx = name_to_idx.get(dep.name)
                if to_idx is None:
                    continue
                edges.append(
                    DepEdge(
                        from_idx=from_idx,
                        to_idx=to_idx,
                        version_req=dep.version_req,
                        is_path_dep=dep.is_path_dep,
                    )
                )
        return cls(nodes, edges)

    def __len__(self) -> int:
        return len(self.nodes)

    def node_index(self, name: str) -> int | None:
        """Look up a node index by package name."""
        return self._name_to_idx.get(name)

    def names(self, indices: Iterable[int]) -> list[str]:
        return [self.nodes[i].name for i in indices]

    def topo_order(self, within: Iterable[int] | None = None) -> list[int]:
        """Topologically sort nodes, dependencies first.

        Uses Kahn's algorithm: a node is ready once every package it depends
        on has been emitted. Ready nodes are taken in name order so the
        result is deterministic.

        Args:
            within: Only sort these node indices, ignoring edges that leave
                    the set. A cycle elsewhere in the graph doesn't matter.

        Raises:
            CycleError: If some nodes can never become ready. The error lists
                every node still waiting on an unemitted dependency.

        Example:
            If a depends on b, and b depends on c:
            topo_order() → [c, b, a]
        """
        members = range(len(self.nodes)) if within is None else sorted(set(within))
        member_set = set(members)
        # Number of unemitted dependencies per node
        in_degree = dict.fromkeys(members, 0)
        # Reverse adjacency: dependency → its dependents
        dependents: dict[int, list[int]] = {i: [] for i in members}
        for edge in self.edges:
            if edge.from_idx in member_set and edge.to_idx in member_set:
                dependents[edge.to_idx].append(edge.from_idx)
                in_degree[edge.from_idx] += 1

        ready = [(self.nodes[i].name, i) for i in members if in_degree[i] == 0]
        heapq.heapify(ready)
        order: list[int] = []

        while ready:
            _, node = heapq.heappop(ready)
            order.append(node)
            for dependent in dependents[node]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, (self.nodes[dependent].name, dependent))

        if len(order) != len(member_set):
            raise CycleError([self.nodes[i].name for i in members if in_degree[i] > 0])

        return order

    def build_tiers(self) -> list[list[int]]:
        """Group nodes into tiers that can be built in parallel.

        Tier 0 holds packages with no workspace dependencies; every other
        package sits one tier above the deepest package it depends on. Nodes
        within a tier are sorted by name.

        Raises:
            CycleError: If the graph has a cycle.
        """
        order = self.topo_order()
        depth = self._depths(order)
        if not depth:
            return []

        tiers: list[list[int]] = [[] for _ in range(max(depth) + 1)]
        for idx, d in enumerate(depth):
            tiers[d].append(idx)
        for tier in tiers:
            tier.sort(key=lambda i: self.nodes[i].name)
        return tiers

    def tier_of(self) -> dict[int, int]:
        """Map each node index to its build tier."""
        return {idx: t for t, tier in enumerate(self.build_tiers()) for idx in tier}

    def _depths(self, order: list[int]) -> list[int]:
        depth = [0] * len(self.nodes)
        dependents: list[list[int]] = [[] for _ in self.nodes]
        for edge in self.edges:
            dependents[edge.to_idx].append(edge.from_idx)
        # Dependencies are finalized before any of their dependents
        for node in order:
            for dependent in dependents[node]:
                depth[dependent] = max(depth[dependent], depth[node] + 1)
        return depth

    def reverse_deps(self, node_idx: int) -> list[int]:
        """Indices of the packages that depend on ``node_idx``."""
        return [e.from_idx for e in self.edges if e.to_idx == node_idx]

    def direct_deps(self, node_idx: int) -> list[int]:
        """Indices of the packages ``node_idx`` depends on."""
        return [e.to_idx for e in self.edges if e.from_idx == node_idx]

    def version_mismatches(self) -> list[VersionMismatch]:
        """Find registry dependencies pinned to an incompatible local version.

        Path dependencies always build against the local tree, so only
        registry edges are checked. Results are sorted by
        (repo_name, dependency).
        """
        mismatches: list[VersionMismatch] = []
        for edge in self.edges:
            if edge.is_path_dep or edge.version_req is None:
                continue
            local_version = self.nodes[edge.to_idx].version
            if local_version is None:
                continue
            if not versions_compatible(edge.version_req, local_version):
                mismatches.append(
                    VersionMismatch(
                        repo_name=self.nodes[edge.from_idx].name,
                        dependency=self.nodes[edge.to_idx].name,
                        pinned_version=edge.version_req,
                        local_version=local_version,
                    )
                )
        mismatches.sort(key=lambda m: (m.repo_name, m.dependency))
        return mismatches


def _leading_int(parts: list[str], i: int) -> int | None:
    if i >= len(parts):
        return None
    part = parts[i].strip()
    return int(part) if part.isascii() and part.isdigit() else None


def versions_compatible(req: str, local: str) -> bool:
    """Check whether a version requirement could plausibly match ``local``.

    A heuristic, not a resolver: range operators are stripped and the major
    versions compared. For 0.x versions the minor version must also match.
    Anything that doesn't parse is treated as compatible.

    Examples:
        versions_compatible("1.0", "1.5.0") → True
        versions_compatible("2.0.0", "3.0.0") → False
        versions_compatible("^0.2.1", "0.2.3") → True
        versions_compatible("0.1.0", "0.2.0") → False
    """
    req_clean = req
    for op in _RANGE_OPERATORS:
        while req_clean.startswith(op):
            req_clean = req_clean[len(op) :]
    req_parts = req_clean.strip().split(".")
    local_parts = local.split(".")

    req_major = _leading_int(req_parts, 0)
    local_major = _leading_int(local_parts, 0)
    if req_major is None or local_major is None:
        return True
    if req_major == 0 and local_major == 0:
        req_minor = _leading_int(req_parts, 1)
        local_minor = _leading_int(local_parts, 1)
        if req_minor is None or local_minor is None:
            return True
        return req_minor == local_minor
    return req_major == local_major
