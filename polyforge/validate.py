"""Containerized workspace validation: plan → build → test → summary.

The validation plan lists every workspace package tier by tier, using the
dependency graph's build tiers for ordering and per-package CI configs for
the commands to run. Each step runs in a throwaway container:

    docker run --rm -v <root>:/workspace:ro --tmpfs /workspace/target:exec \\
        -w /workspace/<path> [-e KEY=VALUE ...] <image> <command...>

The workspace is mounted read-only; build artifacts go to a tmpfs. A
package's tests only run if its build passed.

By default steps run one at a time in plan order. With ``parallel=True``
all packages in a tier run concurrently on a thread pool and the next tier
starts only once the whole tier has finished.
"""

from __future__ import annotations

import re
import shlex
import subprocess
import time
import uuid
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from itertools import groupby
from pathlib import Path
from typing import Any

import pydantic

from .errors import CycleError, ManifestError, ValidationPlanError
from .graph import DependencyGraph
from .models import (
    RepoCiConfig,
    StepStatus,
    ValidateStepResult,
    ValidateSummary,
    ValidationPlan,
    ValidationStep,
)
from .shell import run_captured, step
from .toml import get_ci_table, load_toml

DEFAULT_IMAGE = "rust:latest"
CI_CONFIG_PATH = Path(".polyforge") / "config.toml"


def _as_command(value: Any) -> list[str]:
    if isinstance(value, str):
        return shlex.split(value)
    return [str(v) for v in value]


def load_ci_config(repo_dir: Path, repo_name: str) -> RepoCiConfig | None:
    """Read a package's CI overrides from ``.polyforge/config.toml``.

    Recognized keys in the [ci] table: ``build`` and ``test`` (command as a
    list or a shell-style string), ``dockerfile``, ``skip_validate``,
    ``timeout_secs`` and ``env`` (a table of strings). Keys that are absent
    or empty keep their defaults.

    Returns:
        The merged config, or None if the file or its [ci] table is absent.

    Raises:
        ManifestError: If the file is not valid TOML or a value has the
            wrong type.
    """
    config_path = repo_dir / CI_CONFIG_PATH
    if not config_path.exists():
        return None
    ci = get_ci_table(load_toml(config_path))
    if ci is None:
        return None

    fields: dict[str, Any] = {"repo_name": repo_name}
    try:
        if ci.get("build"):
            fields["build_command"] = _as_command(ci["build"])
        if ci.get("test"):
            fields["test_command"] = _as_command(ci["test"])
        if "dockerfile" in ci:
            fields["dockerfile"] = ci["dockerfile"]
        if "skip_validate" in ci:
            fields["skip"] = ci["skip_validate"]
        if "timeout_secs" in ci:
            fields["timeout_secs"] = ci["timeout_secs"]
        if "env" in ci:
            fields["env"] = [(str(k), str(v)) for k, v in dict(ci["env"]).items()]
        return RepoCiConfig.model_validate(fields)
    except (TypeError, ValueError, pydantic.ValidationError) as exc:
        raise ManifestError(f"Invalid [ci] table in {config_path}: {exc}") from exc


def load_ci_configs(
    graph: DependencyGraph, workspace_root: Path
) -> list[tuple[str, RepoCiConfig]]:
    """Collect CI overrides for every package in the graph that has one."""
    configs: list[tuple[str, RepoCiConfig]] = []
    for node in graph.nodes:
        cfg = load_ci_config(workspace_root / node.path, node.name)
        if cfg is not None:
            configs.append((node.name, cfg))
    return configs


def build_validation_plan(
    graph: DependencyGraph,
    ci_configs: Iterable[tuple[str, RepoCiConfig]] | Mapping[str, RepoCiConfig],
    run_tests: bool,
    default_image: str = DEFAULT_IMAGE,
) -> ValidationPlan:
    """Build a validation plan from the dependency graph and CI configs.

    Packages without an override get the default RepoCiConfig.

    Raises:
        ValidationPlanError: If the graph has a cycle.
    """
    try:
        tiers = graph.build_tiers()
    except CycleError as exc:
        raise ValidationPlanError(f"Cycle in dependency graph: {exc}") from exc

    config_map: dict[str, RepoCiConfig] = dict(ci_configs)

    steps: list[ValidationStep] = []
    for tier_idx, tier in enumerate(tiers):
        for node_idx in tier:
            node = graph.nodes[node_idx]
            ci = config_map.get(node.name) or RepoCiConfig(repo_name=node.name)
            steps.append(
                ValidationStep(
                    repo_name=node.name,
                    repo_path=node.path,
                    ci_config=ci,
                    tier=tier_idx,
                )
            )

    return ValidationPlan(
        steps=steps, run_tests=run_tests, default_image=default_image
    )


def docker_command(
    workspace_root: Path,
    repo_path: str,
    command: list[str],
    env: list[tuple[str, str]],
    image: str,
    name: str | None = None,
) -> list[str]:
    """Build the ``docker run`` argv for one validation step."""
    args = ["docker", "run", "--rm"]
    if name is not None:
        args.extend(["--name", name])
    args += [
        "-v",
        f"{workspace_root}:/workspace:ro",
        "--tmpfs",
        "/workspace/target:exec",
        "-w",
        f"/workspace/{repo_path}",
    ]
    for key, value in env:
        args.extend(["-e", f"{key}={value}"])
    args.append(image)
    args.extend(command)
    return args


def container_name(repo_name: str, step_name: str) -> str:
    """Unique, docker-safe container name for one validation step."""
    base = re.sub(r"[^a-zA-Z0-9_.-]", "-", f"polyforge-{repo_name}-{step_name}")
    return f"{base}-{uuid.uuid4().hex[:8]}"


def kill_container(name: str) -> None:
    try:
        run_captured(["docker", "kill", name], timeout=30)
    except (OSError, subprocess.TimeoutExpired) as exc:
        print(f"  Warning: could not kill container {name}: {exc}")


def run_docker_step(
    workspace_root: Path,
    repo_path: str,
    command: list[str],
    env: list[tuple[str, str]],
    image: str,
    timeout_secs: int,
    step_name: str,
    repo_name: str,
) -> ValidateStepResult:
    """Run one step inside a container and capture its result.

    Once ``timeout_secs`` elapses the container is stopped with
    ``docker kill``; killing the ``docker run`` client alone leaves it
    running. Spawn failures (docker missing, I/O errors) and timeouts are
    reported as failed steps rather than raised.
    """
    name = container_name(repo_name, step_name)
    args = docker_command(workspace_root, repo_path, command, env, image, name)
    start = time.monotonic()
    try:
        proc = run_captured(args, timeout=timeout_secs or None)
    except subprocess.TimeoutExpired as exc:
        kill_container(name)
        partial = f"{exc.output or ''}{exc.stderr or ''}"
        return ValidateStepResult(
            repo_name=repo_name,
            step=step_name,
            status=StepStatus.FAILED,
            duration_ms=_elapsed_ms(start),
            output=f"{partial}Timed out after {timeout_secs}s",
        )
    except OSError as exc:
        return ValidateStepResult(
            repo_name=repo_name,
            step=step_name,
            status=StepStatus.FAILED,
            duration_ms=_elapsed_ms(start),
            output=f"Failed to run docker: {exc}",
        )

    combined = f"{proc.stdout or ''}{proc.stderr or ''}"
    passed = proc.returncode == 0
    return ValidateStepResult(
        repo_name=repo_name,
        step=step_name,
        status=StepStatus.PASSED if passed else StepStatus.FAILED,
        duration_ms=_elapsed_ms(start),
        output=combined if combined or not passed else None,
    )


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _run_step(
    validation_step: ValidationStep,
    command: list[str],
    step_name: str,
    plan: ValidationPlan,
    workspace_root: Path,
    dry_run: bool,
) -> ValidateStepResult:
    if dry_run:
        return ValidateStepResult(
            repo_name=validation_step.repo_name,
            step=step_name,
            status=StepStatus.PASSED,
            duration_ms=0,
            output=(
                f"[DRY RUN] Would run: {' '.join(command)} "
                f"in /workspace/{validation_step.repo_path}"
            ),
        )
    ci = validation_step.ci_config
    return run_docker_step(
        workspace_root,
        validation_step.repo_path,
        command,
        ci.env,
        plan.default_image,
        ci.timeout_secs,
        step_name,
        validation_step.repo_name,
    )


def validate_package(
    validation_step: ValidationStep,
    plan: ValidationPlan,
    workspace_root: Path,
    dry_run: bool,
) -> list[ValidateStepResult]:
    """Build (and optionally test) one package.

    Returns:
        One skipped result if the package opts out of validation, otherwise
        the build result followed by the test result when tests were
        requested and the build passed.
    """
    ci = validation_step.ci_config
    if ci.skip:
        return [
            ValidateStepResult(
                repo_name=validation_step.repo_name,
                step="build",
                status=StepStatus.SKIPPED,
                duration_ms=0,
                output="Skipped via ci.skip_validate",
            )
        ]

    results = [
        _run_step(
            validation_step, ci.build_command, "build", plan, workspace_root, dry_run
        )
    ]
    if plan.run_tests and results[0].status is StepStatus.PASSED:
        results.append(
            _run_step(
                validation_step, ci.test_command, "test", plan, workspace_root, dry_run
            )
        )
    return results


def _report(results: list[ValidateStepResult]) -> None:
    for result in results:
        print(
            f"  {result.repo_name} {result.step}: {result.status} "
            f"({result.duration_ms} ms)"
        )


def execute_validation(
    plan: ValidationPlan,
    workspace_root: Path,
    dry_run: bool,
    *,
    parallel: bool = False,
    max_workers: int = 4,
) -> list[ValidateStepResult]:
    """Run a validation plan.

    Args:
        plan: Plan from build_validation_plan().
        workspace_root: Directory mounted at /workspace in each container.
        dry_run: Describe each step instead of running it.
        parallel: Run the packages of each tier concurrently.
        max_workers: Thread pool size when ``parallel`` is set.

    Returns:
        Step results in plan order regardless of ``parallel``.
    """
    prefix = "[DRY RUN] " if dry_run else ""
    step(f"{prefix}Validating {len(plan.steps)} packages")

    results: list[ValidateStepResult] = []
    if not parallel:
        for validation_step in plan.steps:
            package_results = validate_package(
                validation_step, plan, workspace_root, dry_run
            )
            _report(package_results)
            results.extend(package_results)
        return results

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as pool:
        for tier, tier_steps in groupby(plan.steps, key=lambda s: s.tier):
            tier_steps = list(tier_steps)
            print(f"  Tier {tier}: {', '.join(s.repo_name for s in tier_steps)}")
            # map() preserves input order; list() waits for the whole tier
            tier_results = list(
                pool.map(
                    lambda s: validate_package(s, plan, workspace_root, dry_run),
                    tier_steps,
                )
            )
            for package_results in tier_results:
                _report(package_results)
                results.extend(package_results)
    return results


def summarize_results(results: list[ValidateStepResult]) -> ValidateSummary:
    """Count results by status and total their durations."""
    return ValidateSummary(
        total=len(results),
        passed=sum(1 for r in results if r.status is StepStatus.PASSED),
        failed=sum(1 for r in results if r.status is StepStatus.FAILED),
        skipped=sum(1 for r in results if r.status is StepStatus.SKIPPED),
        duration_ms=sum(r.duration_ms for r in results),
    )
