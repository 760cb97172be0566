"""Tests for polyforge.models and polyforge.errors."""

from __future__ import annotations

import pydantic
import pytest

from polyforge.errors import CycleError, PolyforgeError
from polyforge.models import (
    BuildSystemKind,
    DepRef,
    PublishAction,
    PublishActionKind,
    RepoCiConfig,
    StepStatus,
)


class TestPublishAction:
    def test_constructors(self) -> None:
        assert PublishAction.publish().kind is PublishActionKind.PUBLISH
        assert PublishAction.auto_bump().kind is PublishActionKind.AUTO_BUMP
        assert PublishAction.initial_publish().kind is PublishActionKind.INITIAL_PUBLISH
        assert PublishAction.skip().kind is PublishActionKind.SKIP

    def test_only_errors_carry_reason(self) -> None:
        assert PublishAction.publish().reason is None
        error = PublishAction.error("registry down")
        assert error.is_error
        assert error.reason == "registry down"
        assert not PublishAction.publish().is_error

    def test_str(self) -> None:
        assert str(PublishAction.auto_bump()) == "auto_bump"
        assert str(PublishAction.error("boom")) == "error: boom"

    def test_frozen(self) -> None:
        action = PublishAction.publish()
        with pytest.raises(pydantic.ValidationError):
            action.kind = PublishActionKind.SKIP  # type: ignore[misc]


class TestEnums:
    def test_build_system_str(self) -> None:
        assert str(BuildSystemKind.CABAL) == "cabal"
        assert f"{BuildSystemKind.NODE}" == "node"

    def test_build_system_from_value(self) -> None:
        assert BuildSystemKind("cargo") is BuildSystemKind.CARGO

    def test_step_status_str(self) -> None:
        assert f"{StepStatus.SKIPPED}" == "skipped"


class TestRepoCiConfig:
    def test_defaults(self) -> None:
        cfg = RepoCiConfig()
        assert cfg.build_command == ["cargo", "build"]
        assert cfg.test_command == ["cargo", "test"]
        assert cfg.timeout_secs == 300
        assert cfg.env == []
        assert cfg.dockerfile is None

    def test_defaults_not_shared(self) -> None:
        a, b = RepoCiConfig(), RepoCiConfig()
        a.build_command.append("--release")
        assert b.build_command == ["cargo", "build"]


class TestDepRef:
    def test_defaults(self) -> None:
        ref = DepRef(name="serde")
        assert ref.version_req is None
        assert not ref.is_path_dep
        assert not ref.is_dev


class TestCycleError:
    def test_message(self) -> None:
        err = CycleError(["a", "b"])
        assert err.cycle == ["a", "b"]
        assert str(err) == "Dependency cycle: a -> b"
        assert isinstance(err, PolyforgeError)
