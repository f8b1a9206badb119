"""Error types and standardized raise helpers for epi_engine.

This module centralizes explicit error classes with actionable messages.

Only structural misuse and blocking configuration problems raise. Numerical
anomalies during integration are corrected in place and reported through
diagnostics, and plausibility concerns are returned as advisory strings.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Final

_INVALID_PARAMETERS_HINT: Final[str] = (
    "Run epi_engine.validation.validate_parameters(config) to inspect errors, "
    "warnings and recommendations before simulating."
)


class EpiEngineError(Exception):
    """Base exception for epi_engine errors."""


class InvalidParameterError(EpiEngineError, ValueError):
    """Raised when a simulation config fails the parameter validator."""

    def __init__(self, message: str, errors: Sequence[str] = ()) -> None:
        """Initialize with the validator's blocking errors.

        Args:
            message: Human-readable message.
            errors: Blocking error strings reported by the validator.
        """
        super().__init__(message)
        self.errors: tuple[str, ...] = tuple(errors)


class TrajectoryShapeError(EpiEngineError, ValueError):
    """Raised when trajectory or state arrays have incompatible shapes."""


def raise_invalid_parameters(errors: Sequence[str]) -> None:
    """Raise a standardized InvalidParameterError.

    Args:
        errors: Blocking error strings reported by the validator.

    Raises:
        InvalidParameterError: Always.
    """
    parts: list[str] = ["Invalid simulation parameters; refusing to simulate."]
    if errors:
        parts.append(f"Errors: {list(errors)}.")
    parts.append(_INVALID_PARAMETERS_HINT)
    raise InvalidParameterError(" ".join(parts), errors)


def raise_trajectory_shape_error(*, name: str, expected: str, got: object) -> None:
    """Raise a standardized TrajectoryShapeError.

    Args:
        name: Name of the object with the shape issue.
        expected: Human-readable expected shape description.
        got: Actual observed shape/value.

    Raises:
        TrajectoryShapeError: Always.
    """
    msg = f"{name} has an invalid shape/value. Expected {expected}. Got: {got!r}."
    raise TrajectoryShapeError(msg)
