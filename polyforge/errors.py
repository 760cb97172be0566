"""Errors raised by polyforge."""

from __future__ import annotations


class PolyforgeError(Exception):
    """Base exception for polyforge errors."""


class CycleError(PolyforgeError):
    """Raised when the dependency graph has no valid topological order.

    Attributes:
        cycle: Names of every package still waiting on a dependent when
               Kahn's algorithm stalled.
    """

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__(f"Dependency cycle: {' -> '.join(cycle)}")


class ManifestError(PolyforgeError):
    """Raised when a package manifest cannot be read or rewritten."""


class ValidationPlanError(PolyforgeError):
    """Raised when a validation plan cannot be built."""
