# epi_engine/src/epi_engine/model_core.py
"""Core class for managing the numerical state of a compartmental model.

This module provides a lightweight state container and time-grid manager for
compartmental epidemic models. It is designed to support:

- A uniform or non-uniform output time grid with per-step dt accessors.
- A 1D compartment state vector addressed by compartment name.
- Optional full history storage for post-analysis.
- The conserved population total of the run.

The core intentionally does not build RHS functions or apply interventions; it
only manages state, time, and compartment metadata in a solver-friendly manner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, cast

import numpy as np
import numpy.typing as npt

from .errors import raise_trajectory_shape_error

if TYPE_CHECKING:
    from numpy.typing import DTypeLike


# Error / message constants -------------------------------------------------

_TIMEGRID_1D_ERROR = "time_grid must be a 1D array"
_TIMEGRID_MIN_POINTS_ERROR = "time_grid must contain at least one time point"
_TIMEGRID_MONOTONE_ERROR = "time_grid must be strictly increasing"
_COMPARTMENTS_EMPTY_ERROR = "compartments must name at least one compartment"
_COMPARTMENT_UNKNOWN_ERROR = "Unknown compartment: {name}"

_NEXT_STATE_SHAPE_ERROR = "Next state shape {actual} does not match expected {expected}"

_HISTORY_NOT_STORED_ERROR = (
    "Full history is not stored (store_history=False); series is unavailable."
)
_FINAL_TIMESTEP_ERROR = "Simulation has already reached final timestep"
_DT_INDEX_OOB_ERROR = "dt index out of bounds: {idx}"


# Typing helpers ------------------------------------------------------------

FloatArray = npt.NDArray[np.floating[Any]]


@dataclass(slots=True)
class ModelCoreOptions:
    """Optional configuration for ModelCore.

    Attributes:
        store_history: Whether to store the full time history.
        dtype: Floating-point dtype for internal arrays.
    """

    store_history: bool = True
    dtype: DTypeLike = np.float64


class ModelCore:
    """Core state and time manager for compartmental models."""

    def __init__(
        self,
        compartments: tuple[str, ...],
        time_grid: np.ndarray,
        *,
        options: ModelCoreOptions | None = None,
    ) -> None:
        """
        Initialize ModelCore.

        Args:
            compartments: Ordered compartment names, e.g. ("S", "I", "R").
            time_grid: 1D array of output times, shape (n_timesteps,).
            options: Optional ModelCoreOptions for additional configuration.

        Raises:
            ValueError: if time_grid or compartments are invalid.
        """
        opts = options or ModelCoreOptions()
        self.dtype = np.dtype(opts.dtype)

        if len(compartments) < 1:
            raise ValueError(_COMPARTMENTS_EMPTY_ERROR)
        self.compartments = tuple(str(c) for c in compartments)

        self.time_grid = np.asarray(time_grid, dtype=self.dtype)
        if self.time_grid.ndim != 1:
            raise ValueError(_TIMEGRID_1D_ERROR)

        self.n_timesteps = int(self.time_grid.size)
        if self.n_timesteps < 1:
            raise ValueError(_TIMEGRID_MIN_POINTS_ERROR)

        if self.n_timesteps > 1:
            dt_arr = np.diff(self.time_grid)
            if np.any(dt_arr <= 0):
                raise ValueError(_TIMEGRID_MONOTONE_ERROR)
            self.dt_grid = np.asarray(dt_arr, dtype=self.dtype)
            self.dt = float(self.dt_grid.mean())
        else:
            self.dt_grid = np.asarray([], dtype=self.dtype)
            self.dt = 0.0

        self.n_states = len(self.compartments)
        self.state_shape = (self.n_states,)
        self.store_history = bool(opts.store_history)

        self.current_step = 0
        self.population = 0.0

        self.current_state = np.zeros(self.state_shape, dtype=self.dtype)

        # Optional full history: (n_timesteps, n_states)
        self.state_array: FloatArray | None
        if self.store_history:
            self.state_array = cast(
                "FloatArray",
                np.zeros((self.n_timesteps, *self.state_shape), dtype=self.dtype),
            )
        else:
            self.state_array = None

    # ------------------------------------------------------------------
    # Compartment helpers
    # ------------------------------------------------------------------

    def compartment_index(self, name: str) -> int:
        """
        Resolve a compartment name into its state-vector index.

        Args:
            name: Compartment name.

        Raises:
            ValueError: if the name is unknown.

        Returns:
            Index into the state vector.
        """
        try:
            return self.compartments.index(name)
        except ValueError as exc:
            raise ValueError(_COMPARTMENT_UNKNOWN_ERROR.format(name=name)) from exc

    def series(self, name: str) -> FloatArray:
        """
        Return the stored history of one compartment.

        Args:
            name: Compartment name.

        Raises:
            RuntimeError: if history is not stored.

        Returns:
            1D series of length n_timesteps.
        """
        if not self.store_history or self.state_array is None:
            raise RuntimeError(_HISTORY_NOT_STORED_ERROR)
        return cast("FloatArray", self.state_array[:, self.compartment_index(name)])

    def validate_state_shape(self, arr: np.ndarray, *, msg: str | None = None) -> None:
        """
        Validate that arr has state_shape.

        Args:
            arr: Array to validate.
            msg: Optional custom error message template.

        Raises:
            ValueError: if arr does not have shape state_shape.
        """
        arr_shape = np.asarray(arr).shape
        if arr_shape != self.state_shape:
            raise ValueError(
                (msg or _NEXT_STATE_SHAPE_ERROR).format(
                    actual=arr_shape, expected=self.state_shape
                )
            )

    # ------------------------------------------------------------------
    # Time helpers
    # ------------------------------------------------------------------

    @property
    def current_time(self) -> float:
        """
        Current simulation time t = time_grid[current_step].

        Returns:
            Current time as a float.
        """
        return float(self.time_grid[self.current_step])

    def get_dt(self, step_idx: int) -> float:
        """
        Return dt for the step [t_step_idx, t_step_idx+1].

        Args:
            step_idx: Timestep index in [0, n_timesteps - 1].

        Raises:
            IndexError: if step_idx is out of bounds.

        Returns:
            dt as a float.
        """
        if self.n_timesteps <= 1:
            return 0.0
        if not (0 <= step_idx < self.n_timesteps - 1):
            raise IndexError(_DT_INDEX_OOB_ERROR.format(idx=step_idx))
        return float(self.dt_grid[step_idx])

    # ------------------------------------------------------------------
    # Initialization / accessors
    # ------------------------------------------------------------------

    def set_initial_state(self, initial_state: np.ndarray) -> None:
        """
        Set the initial state at time_grid[0] and record the conserved total.

        Args:
            initial_state: Initial compartment values, shape state_shape.

        Raises:
            TrajectoryShapeError: if initial_state has incorrect shape.
        """
        initial_state_arr = np.asarray(initial_state, dtype=self.dtype)
        if initial_state_arr.shape != self.state_shape:
            raise_trajectory_shape_error(
                name="initial_state",
                expected=f"shape {self.state_shape} for {self.compartments}",
                got=initial_state_arr.shape,
            )

        np.copyto(self.current_state, initial_state_arr)
        self.population = float(np.sum(initial_state_arr))

        if self.store_history and self.state_array is not None:
            self.state_array[0] = self.current_state

        self.current_step = 0

    def get_current_state(self) -> np.ndarray:
        """
        Return the current state.

        Returns:
            Current state, shape state_shape.
        """
        return self.current_state

    # ------------------------------------------------------------------
    # Stepping / updates
    # ------------------------------------------------------------------

    def _check_can_advance(self) -> None:
        if self.current_step >= self.n_timesteps - 1:
            raise RuntimeError(_FINAL_TIMESTEP_ERROR)

    def apply_next_state(self, next_state: np.ndarray) -> None:
        """
        Set the next state directly, advancing the timestep.

        Args:
            next_state: State at the next timestep, shape state_shape.

        Raises:
            ValueError: if next_state has incorrect shape.
        """
        next_state_arr = np.asarray(next_state, dtype=self.dtype)
        self.validate_state_shape(next_state_arr)

        self._check_can_advance()

        np.copyto(self.current_state, next_state_arr)

        self.current_step += 1
        if self.store_history and self.state_array is not None:
            self.state_array[self.current_step] = self.current_state

    def advance_timestep(self, next_state: np.ndarray) -> None:
        """Alias for apply_next_state, for solver-friendly naming."""
        self.apply_next_state(next_state)
