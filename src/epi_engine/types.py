"""Type definitions and the trajectory data contract for epi_engine.

This module holds the numeric aliases shared across the package, the
compartment layout of each supported model, and the immutable
:class:`Trajectory` snapshot handed to downstream consumers (charts, reports).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final, Literal, TypeAlias

import numpy as np
from numpy.typing import NDArray

# -----------------------------------------------------------------------------
# Core numeric aliases
# -----------------------------------------------------------------------------

Float64Array: TypeAlias = NDArray[np.float64]

# Generic floating tensor used by internal solver interfaces.
FloatArray: TypeAlias = NDArray[np.floating]

ModelName: TypeAlias = Literal["SIR", "SEIR"]

COMPARTMENTS: Final[Mapping[str, tuple[str, ...]]] = {
    "SIR": ("S", "I", "R"),
    "SEIR": ("S", "E", "I", "R"),
}

_NOT_1D_MSG: Final[str] = "{name} must be a 1D array"
_LENGTH_MISMATCH_MSG: Final[str] = (
    "{name} has length {actual}; expected {expected} (same as time)"
)
_UNKNOWN_MODEL_MSG: Final[str] = "Unknown model: {model}"
_MISSING_EXPOSED_MSG: Final[str] = "SEIR trajectories require an E series"


def compartments_for(model: str) -> tuple[str, ...]:
    """Return the ordered compartment names for a model.

    Args:
        model: Model name ("SIR" or "SEIR").

    Raises:
        ValueError: If the model is unknown.

    Returns:
        Tuple of compartment names in state-vector order.
    """
    try:
        return COMPARTMENTS[model]
    except KeyError as exc:
        raise ValueError(_UNKNOWN_MODEL_MSG.format(model=model)) from exc


def as_float64_1d(x: object, *, name: str = "array") -> Float64Array:
    """Convert input to a contiguous float64 1D array.

    Args:
        x: Input array-like.
        name: Name used in error messages.

    Returns:
        Contiguous float64 1D array.

    Raises:
        ValueError: If input cannot be represented as a 1D array.
    """
    arr = np.asarray(x, dtype=np.float64)
    if arr.ndim != 1:
        raise ValueError(_NOT_1D_MSG.format(name=name))
    return np.ascontiguousarray(arr)


# -----------------------------------------------------------------------------
# Trajectory
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Trajectory:
    """Time series of every compartment for one completed run.

    All series share the length of ``time``. ``E`` is ``None`` for SIR runs.
    Arrays are stored read-only; treat a trajectory as a snapshot.

    Attributes:
        model: Model name.
        time: Sample times in days.
        S: Susceptible series.
        I: Infectious series.
        R: Removed series.
        population: Conserved total N of the run.
        E: Exposed series (SEIR only).
    """

    model: ModelName
    time: Float64Array
    S: Float64Array
    I: Float64Array  # noqa: E741
    R: Float64Array
    population: float
    E: Float64Array | None = None

    def __post_init__(self) -> None:
        """Coerce series to read-only float64 arrays and check lengths.

        Raises:
            ValueError: If a series is not 1D, lengths differ, or E is missing
                for an SEIR trajectory.
        """
        compartments_for(self.model)
        time = as_float64_1d(self.time, name="time").copy()
        object.__setattr__(self, "time", time)
        for name in ("S", "E", "I", "R"):
            series = getattr(self, name)
            if series is None:
                if name == "E" and self.model == "SEIR":
                    raise ValueError(_MISSING_EXPOSED_MSG)
                continue
            arr = as_float64_1d(series, name=name).copy()
            if arr.size != time.size:
                raise ValueError(
                    _LENGTH_MISMATCH_MSG.format(
                        name=name, actual=arr.size, expected=time.size
                    )
                )
            arr.setflags(write=False)
            object.__setattr__(self, name, arr)
        time.setflags(write=False)
        object.__setattr__(self, "population", float(self.population))

    @property
    def compartment_names(self) -> tuple[str, ...]:
        """Compartment names in state-vector order."""
        return compartments_for(self.model)

    @property
    def compartments(self) -> dict[str, Float64Array]:
        """Mapping of compartment name to its series."""
        return {name: getattr(self, name) for name in self.compartment_names}

    @property
    def n_points(self) -> int:
        """Number of stored samples."""
        return int(self.time.size)

    @property
    def total(self) -> Float64Array:
        """Sum of all compartments at each sample."""
        return np.sum(np.vstack(list(self.compartments.values())), axis=0)

    def as_dict(self) -> dict[str, object]:
        """Export as plain data (lists of floats) for external consumers.

        Returns:
            Dictionary with ``model``, ``population``, ``time`` and one key per
            compartment.
        """
        out: dict[str, object] = {
            "model": self.model,
            "population": self.population,
            "time": self.time.tolist(),
        }
        for name, series in self.compartments.items():
            out[name] = series.tolist()
        return out
