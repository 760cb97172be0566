"""Data models for polyforge.

These Pydantic models represent the core data structures shared by the
dependency graph, the publish planner and the validation pipeline. They are
built fresh for every invocation and never persisted.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class BuildSystemKind(str, Enum):
    """Build systems a workspace package can belong to."""

    CARGO = "cargo"
    CABAL = "cabal"
    NODE = "node"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


class VersionBump(str, Enum):
    """Which semver component to increment."""

    PATCH = "patch"
    MINOR = "minor"
    MAJOR = "major"


class DepRef(BaseModel):
    """A dependency reference as reported by a manifest scanner.

    Attributes:
        name: Crate, package or npm name of the dependency.
        version_req: Declared requirement (e.g. "0.2.1", "^1.0", ">=2.0").
        is_path_dep: True for local/workspace references.
        path: Path to the dependency when it is a path dependency.
        is_dev: True for dev-only dependencies.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    version_req: str | None = None
    is_path_dep: bool = False
    path: str | None = None
    is_dev: bool = False


class DepNode(BaseModel):
    """A workspace package in the dependency graph."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str | None = None
    build_system: BuildSystemKind = BuildSystemKind.UNKNOWN
    path: str


class DepEdge(BaseModel):
    """A "depends-on" edge, pointing from the dependent to its dependency.

    Attributes:
        from_idx: Index of the dependent node.
        to_idx: Index of the dependency node.
        version_req: Requirement the dependent declared, if any.
        is_path_dep: Whether the dependent references it by path.
    """

    model_config = ConfigDict(frozen=True)

    from_idx: int
    to_idx: int
    version_req: str | None = None
    is_path_dep: bool = False


class VersionMismatch(BaseModel):
    """A registry dependency whose requirement no longer matches the local package."""

    repo_name: str
    dependency: str
    pinned_version: str
    local_version: str


class PublishActionKind(str, Enum):
    PUBLISH = "publish"
    AUTO_BUMP = "auto_bump"
    INITIAL_PUBLISH = "initial_publish"
    SKIP = "skip"
    ERROR = "error"


class PublishAction(BaseModel):
    """What to do with a package during publish.

    Only ``ERROR`` actions carry a ``reason``.
    """

    model_config = ConfigDict(frozen=True)

    kind: PublishActionKind
    reason: str | None = None

    @classmethod
    def publish(cls) -> PublishAction:
        return cls(kind=PublishActionKind.PUBLISH)

    @classmethod
    def auto_bump(cls) -> PublishAction:
        return cls(kind=PublishActionKind.AUTO_BUMP)

    @classmethod
    def initial_publish(cls) -> PublishAction:
        return cls(kind=PublishActionKind.INITIAL_PUBLISH)

    @classmethod
    def skip(cls) -> PublishAction:
        return cls(kind=PublishActionKind.SKIP)

    @classmethod
    def error(cls, reason: str) -> PublishAction:
        return cls(kind=PublishActionKind.ERROR, reason=reason)

    @property
    def is_error(self) -> bool:
        return self.kind is PublishActionKind.ERROR

    def __str__(self) -> str:
        if self.reason:
            return f"{self.kind.value}: {self.reason}"
        return self.kind.value


class PublishStep(BaseModel):
    """One package in a publish plan.

    Attributes:
        target_version: Version that will actually be published, after any
                        auto-bump.
        node_idx: Index of the package in the graph the plan was built from.
    """

    name: str
    build_system: BuildSystemKind
    path: Path
    local_version: str
    published_version: str | None = None
    action: PublishAction
    target_version: str
    node_idx: int


class PublishPlan(BaseModel):
    """Publish steps in dependency-first order plus packages left out of it."""

    steps: list[PublishStep] = Field(default_factory=list)
    excluded: list[tuple[str, str]] = Field(default_factory=list)


class PublishedVersion(BaseModel):
    name: str
    version: str


class PublishResult(BaseModel):
    package_name: str
    version: str
    success: bool
    error: str | None = None


class PublishOutcome(BaseModel):
    """What happened to one plan step when the plan was executed."""

    name: str
    version: str
    action: PublishAction
    success: bool
    skipped: bool = False
    error: str | None = None


class PublishSummary(BaseModel):
    published: int = 0
    auto_bumped: int = 0
    skipped: int = 0
    failed: int = 0


class RepoCiConfig(BaseModel):
    """Per-package overrides for the validation pipeline.

    Packages without an override get the defaults below (a Cargo build and
    test with a five minute deadline).
    """

    repo_name: str = ""
    build_command: list[str] = Field(default_factory=lambda: ["cargo", "build"])
    test_command: list[str] = Field(default_factory=lambda: ["cargo", "test"])
    dockerfile: str | None = None
    skip: bool = False
    timeout_secs: int = 300
    env: list[tuple[str, str]] = Field(default_factory=list)


class StepStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"

    def __str__(self) -> str:
        return self.value


class ValidationStep(BaseModel):
    repo_name: str
    repo_path: str
    ci_config: RepoCiConfig
    tier: int


class ValidationPlan(BaseModel):
    """Packages to validate, tier by tier.

    Attributes:
        steps: Validation steps in tier order (names sorted within a tier).
        run_tests: Whether to run the test command after a passing build.
        default_image: Container image used for every step.
    """

    steps: list[ValidationStep] = Field(default_factory=list)
    run_tests: bool = False
    default_image: str = "rust:latest"


class ValidateStepResult(BaseModel):
    repo_name: str
    step: str
    status: StepStatus
    duration_ms: int = 0
    output: str | None = None


class ValidateSummary(BaseModel):
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    duration_ms: int = 0
