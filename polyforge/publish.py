"""Publish planning: closure → registry lookup → action per package.

Given target packages, the planner:
1. Collects every workspace package the targets need (transitive closure)
2. Orders them dependencies-first
3. Asks each package's registry for its published version
4. Decides whether to publish as-is, auto-bump first, or report an error

Executing a plan walks the steps in order, rewriting manifests for
auto-bumped packages and publishing each one. Publishing is not
transactional: when a package fails, the packages before it stay
published and everything that depends on it is skipped as failed.
"""

from __future__ import annotations

import subprocess
from collections.abc import Iterable
from pathlib import Path

from .errors import CycleError, ManifestError
from .graph import DependencyGraph
from .manifests import find_cabal_file, set_package_version
from .models import (
    BuildSystemKind,
    PublishAction,
    PublishActionKind,
    PublishOutcome,
    PublishPlan,
    PublishStep,
    PublishSummary,
    VersionBump,
)
from .registry import Registries, registry_for
from .shell import git, step
from .versions import bump_version_str, compare_versions


def transitive_closure(
    graph: DependencyGraph, targets: Iterable[int], *, strict: bool = False
) -> list[int]:
    """Collect the targets and everything they depend on, dependencies first.

    Args:
        graph: The workspace graph.
        targets: Node indices of the packages to publish.
        strict: If True, a cycle inside the closure raises CycleError.
                Otherwise the closure is returned sorted by name, which is
                deterministic but not a valid build order. Cycles among
                packages outside the closure never matter.

    Example:
        If a depends on b, and b depends on c:
        transitive_closure(graph, [a]) → [c, b, a]
    """
    visited: set[int] = set()
    stack = list(targets)
    while stack:
        idx = stack.pop()
        if idx in visited:
            continue
        visited.add(idx)
        stack.extend(d for d in graph.direct_deps(idx) if d not in visited)

    try:
        return graph.topo_order(within=visited)
    except CycleError:
        if strict:
            raise
        return sorted(visited, key=lambda i: (graph.nodes[i].name, i))


def determine_action(
    local_version: str, published_version: str | None, bump_kind: VersionBump
) -> tuple[PublishAction, str]:
    """Decide what to do with a package given its local and published versions.

    Returns:
        Tuple of (action, version to publish).

    Examples:
        ("0.1.0", None) → initial publish at 0.1.0
        ("0.2.0", "0.1.0") → publish at 0.2.0
        ("0.3.0", "0.3.0", patch) → auto-bump to 0.3.1
        ("0.1.0", "0.2.0") → error, local is behind
    """
    if published_version is None:
        return PublishAction.initial_publish(), local_version

    cmp = compare_versions(local_version, published_version)
    if cmp is None:
        return (
            PublishAction.error(
                f"cannot compare versions: local={local_version}, "
                f"published={published_version}"
            ),
            local_version,
        )
    if cmp > 0:
        # Already bumped by hand
        return PublishAction.publish(), local_version
    if cmp == 0:
        bumped = bump_version_str(local_version, bump_kind) or local_version
        return PublishAction.auto_bump(), bumped
    return (
        PublishAction.error(
            f"local version {local_version} < published {published_version}"
        ),
        local_version,
    )


async def build_publish_plan(
    graph: DependencyGraph,
    targets: Iterable[int],
    workspace_root: Path,
    bump_kind: VersionBump,
    registries: Registries,
) -> PublishPlan:
    """Build a publish plan for the targets and all their local dependencies.

    Registries are queried one package at a time, in plan order. A package
    is excluded when its build system has no registry or its manifest has no
    version. A failed registry query does not exclude the package: it is
    planned with an error action so the caller can report it.

    Raises:
        CycleError: If the targets and their dependencies form a cycle.
    """
    step("Building publish plan")

    closure = transitive_closure(graph, targets, strict=True)
    plan = PublishPlan()

    for idx in closure:
        node = graph.nodes[idx]
        registry = registry_for(node.build_system, registries)
        if registry is None:
            reason = f"no registry for build system '{node.build_system}'"
            plan.excluded.append((node.name, reason))
            print(f"  {node.name}: excluded ({reason})")
            continue

        if node.version is None:
            plan.excluded.append((node.name, "no version in manifest"))
            print(f"  {node.name}: excluded (no version in manifest)")
            continue

        pkg_path = workspace_root / node.path
        try:
            published = await registry.published_version(node.name)
        except Exception as exc:
            action = PublishAction.error(f"registry query failed: {exc}")
            plan.steps.append(
                PublishStep(
                    name=node.name,
                    build_system=node.build_system,
                    path=pkg_path,
                    local_version=node.version,
                    published_version=None,
                    action=action,
                    target_version=node.version,
                    node_idx=idx,
                )
            )
            print(f"  {node.name} {node.version}: {action}")
            continue

        published_version = published.version if published is not None else None
        action, target_version = determine_action(
            node.version, published_version, bump_kind
        )
        plan.steps.append(
            PublishStep(
                name=node.name,
                build_system=node.build_system,
                path=pkg_path,
                local_version=node.version,
                published_version=published_version,
                action=action,
                target_version=target_version,
                node_idx=idx,
            )
        )
        published_label = published_version or "<unpublished>"
        print(
            f"  {node.name} {node.version} (registry: {published_label}): "
            f"{action} → {target_version}"
        )

    return plan


def manifest_file(path: Path, kind: BuildSystemKind) -> Path | None:
    """Return the manifest that holds the version for a package."""
    if kind is BuildSystemKind.CARGO:
        return path / "Cargo.toml"
    if kind is BuildSystemKind.CABAL:
        return find_cabal_file(path)
    if kind is BuildSystemKind.NODE:
        return path / "package.json"
    return None


def commit_bump(publish_step: PublishStep) -> None:
    """Stage and commit an auto-bumped manifest in the package's repository."""
    manifest = manifest_file(publish_step.path, publish_step.build_system)
    if manifest is None:
        return
    message = f"chore: bump {publish_step.name} to {publish_step.target_version}"
    try:
        git("add", manifest.name, cwd=publish_step.path)
        git("commit", "-m", message, cwd=publish_step.path)
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or exc.stdout or "").strip()
        print(f"  Warning: could not commit bump for {publish_step.name}: {detail}")


def tag_release(publish_step: PublishStep) -> None:
    """Create an annotated ``{name}-v{version}`` tag in the package's repository."""
    tag_name = f"{publish_step.name}-v{publish_step.target_version}"
    message = f"Release {publish_step.name} v{publish_step.target_version}"
    try:
        git("tag", "-a", tag_name, "-m", message, cwd=publish_step.path)
    except subprocess.CalledProcessError as exc:
        detail = (exc.stderr or exc.stdout or "").strip()
        print(f"  Warning: failed to create tag {tag_name}: {detail}")
        return
    print(f"  {publish_step.name}: tagged {tag_name}")


def _failed(publish_step: PublishStep, error: str) -> PublishOutcome:
    print(f"  {publish_step.name}: FAILED ({error})")
    return PublishOutcome(
        name=publish_step.name,
        version=publish_step.target_version,
        action=publish_step.action,
        success=False,
        error=error,
    )


async def execute_publish_plan(
    plan: PublishPlan,
    graph: DependencyGraph,
    registries: Registries,
    *,
    dry_run: bool = False,
    commit: bool = False,
    tag: bool = True,
) -> list[PublishOutcome]:
    """Publish every step of a plan in order.

    Args:
        plan: Plan from build_publish_plan().
        graph: The graph the plan was built from (used to find dependents
               of failed packages).
        registries: Registry clients by build system.
        dry_run: Pass dry_run to the registry and leave manifests untouched.
        commit: Commit each auto-bumped manifest with git.
        tag: Tag each package published for real (not in dry-run) as
             ``{name}-v{version}``.

    Returns:
        One outcome per plan step, in plan order.
    """
    step(f"{'[DRY RUN] ' if dry_run else ''}Publishing {len(plan.steps)} packages")

    failed_nodes: set[int] = set()
    outcomes: list[PublishOutcome] = []

    for publish_step in plan.steps:
        if any(d in failed_nodes for d in graph.direct_deps(publish_step.node_idx)):
            failed_nodes.add(publish_step.node_idx)
            outcomes.append(_failed(publish_step, "dependency failed to publish"))
            continue

        registry = registry_for(publish_step.build_system, registries)
        if registry is None:
            failed_nodes.add(publish_step.node_idx)
            reason = f"no registry for build system '{publish_step.build_system}'"
            outcomes.append(_failed(publish_step, reason))
            continue

        action = publish_step.action
        if action.kind is PublishActionKind.SKIP:
            print(f"  {publish_step.name}: up to date")
            outcomes.append(
                PublishOutcome(
                    name=publish_step.name,
                    version=publish_step.target_version,
                    action=action,
                    success=True,
                    skipped=True,
                )
            )
            continue

        if action.is_error:
            failed_nodes.add(publish_step.node_idx)
            outcomes.append(_failed(publish_step, action.reason or "unknown error"))
            continue

        if action.kind is PublishActionKind.AUTO_BUMP and not dry_run:
            try:
                set_package_version(
                    publish_step.path,
                    publish_step.build_system,
                    publish_step.target_version,
                )
            except ManifestError as exc:
                failed_nodes.add(publish_step.node_idx)
                outcomes.append(_failed(publish_step, f"version bump failed: {exc}"))
                continue
            print(
                f"  {publish_step.name}: "
                f"{publish_step.local_version} → {publish_step.target_version}"
            )
            if commit:
                commit_bump(publish_step)

        try:
            result = await registry.publish(
                publish_step.path, publish_step.name, dry_run
            )
        except Exception as exc:
            failed_nodes.add(publish_step.node_idx)
            outcomes.append(_failed(publish_step, f"publish failed: {exc}"))
            continue

        if not result.success:
            failed_nodes.add(publish_step.node_idx)
            outcomes.append(_failed(publish_step, result.error or "publish failed"))
            continue

        print(f"  {publish_step.name} {publish_step.target_version}: {action}")
        if tag and not dry_run:
            tag_release(publish_step)
        outcomes.append(
            PublishOutcome(
                name=publish_step.name,
                version=publish_step.target_version,
                action=action,
                success=True,
            )
        )

    return outcomes


def summarize_publish(outcomes: list[PublishOutcome]) -> PublishSummary:
    """Count published, auto-bumped, skipped and failed packages."""
    summary = PublishSummary()
    for outcome in outcomes:
        if outcome.skipped:
            summary.skipped += 1
        elif not outcome.success:
            summary.failed += 1
        else:
            summary.published += 1
            if outcome.action.kind is PublishActionKind.AUTO_BUMP:
                summary.auto_bumped += 1
    return summary
