"""Tests for polyforge.toml."""

from __future__ import annotations

from pathlib import Path

import pytest
import tomlkit

from polyforge.errors import ManifestError
from polyforge.toml import get_ci_table, get_package_version, load_toml, save_toml


class TestLoadSave:
    def test_round_trip_preserves_comments(self, cargo_package: Path) -> None:
        path = cargo_package / "Cargo.toml"
        original = path.read_text()
        assert save_toml(path, load_toml(path)) == original
        assert path.read_text() == original

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestError, match="Cannot read"):
            load_toml(tmp_path / "nope.toml")

    def test_invalid(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.toml"
        path.write_text("[package\nname = ")
        with pytest.raises(ManifestError, match="Invalid TOML"):
            load_toml(path)


class TestGetPackageVersion:
    def test_present(self) -> None:
        doc = tomlkit.parse('[package]\nname = "x"\nversion = "1.2.3"\n')
        assert get_package_version(doc) == "1.2.3"

    def test_no_package(self) -> None:
        assert get_package_version(tomlkit.parse('[workspace]\nmembers = []\n')) is None

    def test_no_version(self) -> None:
        assert get_package_version(tomlkit.parse('[package]\nname = "x"\n')) is None


class TestGetCiTable:
    def test_absent(self) -> None:
        assert get_ci_table(tomlkit.parse('[other]\na = 1\n')) is None

    def test_unwraps(self) -> None:
        doc = tomlkit.parse('[ci]\nbuild = ["make"]\n\n[ci.env]\nA = "1"\n')
        assert get_ci_table(doc) == {"build": ["make"], "env": {"A": "1"}}

    def test_not_a_table(self) -> None:
        with pytest.raises(ManifestError, match="must be a table"):
            get_ci_table(tomlkit.parse('ci = "yes"\n'))
