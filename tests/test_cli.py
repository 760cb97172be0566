"""Tests for the polyforge command line."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from polyforge.cli import cli
from polyforge.models import StepStatus, ValidateStepResult


def write_workspace(tmp_path: Path, packages: list[dict[str, object]]) -> Path:
    path = tmp_path / "workspace.json"
    path.write_text(json.dumps({"packages": packages}))
    return path


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def plexus_file(tmp_path: Path) -> Path:
    return write_workspace(
        tmp_path,
        [
            {
                "name": "hyperforge",
                "version": "3.3.0",
                "build_system": "cargo",
                "path": "hyperforge",
                "deps": [
                    {"name": "macros", "version_req": "0.2.2"},
                    {"name": "core", "version_req": "0.2.1"},
                ],
            },
            {
                "name": "macros",
                "version": "0.2.2",
                "build_system": "cargo",
                "path": "plexus-macros",
                "deps": [{"name": "core", "version_req": "0.2.1"}],
            },
            {
                "name": "core",
                "version": "0.2.1",
                "build_system": "cargo",
                "path": "plexus-core",
            },
        ],
    )


class TestGraphCommands:
    def test_order(self, runner: CliRunner, plexus_file: Path) -> None:
        result = runner.invoke(cli, ["order", str(plexus_file)])
        assert result.exit_code == 0
        assert result.output.split() == ["core", "macros", "hyperforge"]

    def test_tiers(self, runner: CliRunner, plexus_file: Path) -> None:
        result = runner.invoke(cli, ["tiers", str(plexus_file)])
        assert result.exit_code == 0
        assert result.output.splitlines() == [
            "tier 0: core",
            "tier 1: macros",
            "tier 2: hyperforge",
        ]

    def test_cycle_is_an_error(self, runner: CliRunner, tmp_path: Path) -> None:
        path = write_workspace(
            tmp_path,
            [
                {"name": "a", "path": "a", "deps": [{"name": "b"}]},
                {"name": "b", "path": "b", "deps": [{"name": "a"}]},
            ],
        )
        result = runner.invoke(cli, ["order", str(path)])
        assert result.exit_code == 1
        assert "Dependency cycle" in result.output

    def test_bad_workspace_file(self, runner: CliRunner, tmp_path: Path) -> None:
        path = tmp_path / "workspace.json"
        path.write_text("[]")
        result = runner.invoke(cli, ["tiers", str(path)])
        assert result.exit_code == 1
        assert "Invalid workspace file" in result.output

    def test_no_dev_skips_dev_back_edge(
        self, runner: CliRunner, tmp_path: Path
    ) -> None:
        path = write_workspace(
            tmp_path,
            [
                {"name": "a", "path": "a", "deps": [{"name": "b", "is_dev": True}]},
                {"name": "b", "path": "b", "deps": [{"name": "a"}]},
            ],
        )
        assert runner.invoke(cli, ["order", str(path)]).exit_code == 1
        result = runner.invoke(cli, ["order", str(path), "--no-dev"])
        assert result.exit_code == 0
        assert result.output.split() == ["a", "b"]


class TestMismatches:
    def test_none(self, runner: CliRunner, plexus_file: Path) -> None:
        result = runner.invoke(cli, ["mismatches", str(plexus_file)])
        assert result.exit_code == 0
        assert "No version mismatches." in result.output

    def test_found(self, runner: CliRunner, tmp_path: Path) -> None:
        path = write_workspace(
            tmp_path,
            [
                {"name": "core", "version": "3.0.0", "path": "core"},
                {
                    "name": "app",
                    "version": "1.0.0",
                    "path": "app",
                    "deps": [{"name": "core", "version_req": "2.0"}],
                },
            ],
        )
        result = runner.invoke(cli, ["mismatches", str(path)])
        assert result.exit_code == 1
        assert "app → core: requires 2.0, local is 3.0.0" in result.output


class TestValidate:
    def test_dry_run(
        self, runner: CliRunner, plexus_file: Path, tmp_path: Path
    ) -> None:
        result = runner.invoke(
            cli,
            [
                "validate",
                str(plexus_file),
                "--root",
                str(tmp_path),
                "--dry-run",
                "--tests",
            ],
        )
        assert result.exit_code == 0
        assert "6 steps: 6 passed, 0 failed, 0 skipped" in result.output

    def test_failure_exit_code(
        self, runner: CliRunner, plexus_file: Path, tmp_path: Path
    ) -> None:
        def fake_docker(*args: object, **kwargs: object) -> ValidateStepResult:
            return ValidateStepResult(
                repo_name=str(args[-1]),
                step=str(args[-2]),
                status=StepStatus.FAILED,
                output="error: could not compile",
            )

        with patch("polyforge.validate.run_docker_step", side_effect=fake_docker):
            result = runner.invoke(
                cli, ["validate", str(plexus_file), "--root", str(tmp_path)]
            )
        assert result.exit_code == 1
        assert "3 steps: 0 passed, 3 failed, 0 skipped" in result.output


class TestBump:
    def test_patch(self, runner: CliRunner, cargo_package: Path) -> None:
        result = runner.invoke(cli, ["bump", str(cargo_package), "-b", "cargo"])
        assert result.exit_code == 0
        assert "0.3.0 → 0.3.1" in result.output
        assert 'version = "0.3.1"' in (cargo_package / "Cargo.toml").read_text()

    def test_minor_cabal(self, runner: CliRunner, cabal_package: Path) -> None:
        result = runner.invoke(
            cli, ["bump", str(cabal_package), "-b", "cabal", "--kind", "minor"]
        )
        assert result.exit_code == 0
        content = (cabal_package / "my-package.cabal").read_text()
        assert "version:            0.3.0" in content

    def test_set_explicit(self, runner: CliRunner, node_package: Path) -> None:
        result = runner.invoke(
            cli, ["bump", str(node_package), "-b", "node", "--set", "2.0.0-beta.1"]
        )
        assert result.exit_code == 0
        data = json.loads((node_package / "package.json").read_text())
        assert data["version"] == "2.0.0-beta.1"

    def test_manifest_error(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["bump", str(tmp_path), "-b", "cabal"])
        assert result.exit_code == 1
        assert "No .cabal file" in result.output

    def test_unknown_not_accepted(self, runner: CliRunner, tmp_path: Path) -> None:
        result = runner.invoke(cli, ["bump", str(tmp_path), "-b", "unknown"])
        assert result.exit_code == 2
