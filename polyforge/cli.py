"""CLI entry point for polyforge."""

from __future__ import annotations

from pathlib import Path

import click

from .errors import PolyforgeError
from .graph import DependencyGraph
from .manifests import read_package_version, set_package_version
from .models import BuildSystemKind, StepStatus, VersionBump
from .validate import (
    DEFAULT_IMAGE,
    build_validation_plan,
    execute_validation,
    load_ci_configs,
    summarize_results,
)
from .versions import bump_version_str
from .workspace import load_workspace

workspace_argument = click.argument(
    "workspace_file", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
dev_option = click.option(
    "--dev/--no-dev",
    default=True,
    show_default=True,
    help="Follow dev-dependencies (--no-dev gives publish order).",
)


def _load(workspace_file: Path, include_dev: bool = True) -> DependencyGraph:
    try:
        return load_workspace(workspace_file, include_dev=include_dev)
    except PolyforgeError as exc:
        raise click.ClickException(str(exc)) from exc


@click.group()
@click.version_option(package_name="polyforge")
def cli() -> None:
    """Cross-language monorepo build and release planner."""


@cli.command()
@workspace_argument
@dev_option
def order(workspace_file: Path, dev: bool) -> None:
    """Print packages in build order, dependencies first."""
    graph = _load(workspace_file, include_dev=dev)
    try:
        topo = graph.topo_order()
    except PolyforgeError as exc:
        raise click.ClickException(str(exc)) from exc
    for idx in topo:
        click.echo(graph.nodes[idx].name)


@cli.command()
@workspace_argument
@dev_option
def tiers(workspace_file: Path, dev: bool) -> None:
    """Print build tiers (packages that can build in parallel)."""
    graph = _load(workspace_file, include_dev=dev)
    try:
        build_tiers = graph.build_tiers()
    except PolyforgeError as exc:
        raise click.ClickException(str(exc)) from exc
    for i, tier in enumerate(build_tiers):
        click.echo(f"tier {i}: {', '.join(graph.names(tier))}")


@cli.command()
@workspace_argument
def mismatches(workspace_file: Path) -> None:
    """Report registry dependencies pinned to an incompatible local version."""
    graph = _load(workspace_file)
    found = graph.version_mismatches()
    if not found:
        click.echo("No version mismatches.")
        return
    for m in found:
        click.echo(
            f"{m.repo_name} → {m.dependency}: requires {m.pinned_version}, "
            f"local is {m.local_version}"
        )
    raise SystemExit(1)


@cli.command()
@workspace_argument
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Workspace root mounted into each container.",
)
@click.option("--tests/--no-tests", default=False, help="Run tests after builds.")
@click.option("--dry-run", is_flag=True, help="Print what would run.")
@click.option("--parallel", is_flag=True, help="Run each tier concurrently.")
@click.option("--jobs", "-j", default=4, show_default=True, help="Parallel workers.")
@click.option("--image", default=DEFAULT_IMAGE, show_default=True)
def validate(
    workspace_file: Path,
    root: Path,
    tests: bool,
    dry_run: bool,
    parallel: bool,
    jobs: int,
    image: str,
) -> None:
    """Build (and test) every package in a container, tier by tier."""
    graph = _load(workspace_file)
    root = root.resolve()
    try:
        plan = build_validation_plan(
            graph, load_ci_configs(graph, root), tests, default_image=image
        )
    except PolyforgeError as exc:
        raise click.ClickException(str(exc)) from exc

    results = execute_validation(
        plan, root, dry_run, parallel=parallel, max_workers=jobs
    )
    summary = summarize_results(results)
    click.echo(
        f"\n{summary.total} steps: {summary.passed} passed, "
        f"{summary.failed} failed, "
        f"{summary.skipped} skipped ({summary.duration_ms} ms)"
    )
    if summary.failed:
        for result in results:
            if result.status is StepStatus.FAILED and result.output:
                header = f"── {result.repo_name} {result.step} ──"
                click.echo(f"\n{header}", err=True)
                click.echo(result.output, err=True)
        raise SystemExit(1)


@cli.command()
@click.argument(
    "package_dir", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option(
    "--build-system",
    "-b",
    type=click.Choice([k.value for k in BuildSystemKind if k.value != "unknown"]),
    required=True,
)
@click.option(
    "--kind",
    type=click.Choice([k.value for k in VersionBump]),
    default=VersionBump.PATCH.value,
    show_default=True,
)
@click.option("--set", "set_version", default=None, help="Set an explicit version.")
def bump(
    package_dir: Path, build_system: str, kind: str, set_version: str | None
) -> None:
    """Bump a package's manifest version in place."""
    bs = BuildSystemKind(build_system)
    try:
        old = read_package_version(package_dir, bs)
        if set_version is not None:
            new = set_version
        else:
            if old is None:
                raise click.ClickException(f"No version in {package_dir} manifest")
            new = bump_version_str(old, VersionBump(kind))
            if new is None:
                raise click.ClickException(f"Cannot parse version {old!r}")
        set_package_version(package_dir, bs, new)
    except PolyforgeError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"✓ {package_dir}: {old or '<none>'} → {new}")
