# tests/test_model_core.py
"""Unit tests for the ModelCore class.

This module tests the core functionality of ModelCore including:
- Time grid validation and per-step dt handling (including non-uniform grids)
- Compartment metadata helpers (compartment_index, series)
- Initial state shape enforcement and the recorded population total
- State management with and without history tracking
- Bounds checking for timestep advancement
"""

from __future__ import annotations

import numpy as np
import pytest

from epi_engine.errors import TrajectoryShapeError
from epi_engine.model_core import ModelCore, ModelCoreOptions

SIR = ("S", "I", "R")

# -------------------------------------------------------------------
# Time grid / dt
# -------------------------------------------------------------------


def test_model_core_timegrid_uniform_dt_grid_ok() -> None:
    """Initialization with a uniform time grid and dt_grid correctness."""
    time_grid = np.linspace(0.0, 10.0, 11)
    core = ModelCore(SIR, time_grid)

    assert core.n_states == 3
    assert core.n_timesteps == 11
    assert core.state_shape == (3,)

    assert core.dt_grid.shape == (10,)
    assert np.allclose(core.dt_grid, 1.0)
    assert np.isclose(core.dt, 1.0)

    assert np.isclose(core.current_time, 0.0)
    assert np.isclose(core.time_grid[-1], 10.0)


def test_model_core_timegrid_nonuniform_dt_grid_ok() -> None:
    """Initialization with a non-uniform time grid and get_dt access."""
    time_grid = np.array([0.0, 0.1, 0.4, 1.0], dtype=float)
    core = ModelCore(SIR, time_grid)

    assert np.allclose(core.dt_grid, np.array([0.1, 0.3, 0.6]))
    assert np.isclose(core.get_dt(1), 0.3)
    assert np.isclose(core.time_grid[2], 0.4)


@pytest.mark.parametrize(
    "time_grid",
    [
        np.array([0.0, 1.0, 0.5]),
        np.array([0.0, 1.0, 1.0]),
    ],
)
def test_model_core_timegrid_not_increasing_raises(time_grid: np.ndarray) -> None:
    """Non-monotonic or repeated time grids are rejected."""
    with pytest.raises(ValueError, match="strictly increasing"):
        ModelCore(SIR, time_grid)


def test_model_core_rejects_2d_time_grid_and_empty_compartments() -> None:
    """Structural misuse of the constructor raises ValueError."""
    with pytest.raises(ValueError, match="1D"):
        ModelCore(SIR, np.zeros((2, 2)))
    with pytest.raises(ValueError, match="at least one compartment"):
        ModelCore((), np.array([0.0, 1.0]))


def test_model_core_single_point_grid_has_zero_dt() -> None:
    """Single-point grids yield an empty dt_grid and get_dt returns 0."""
    core = ModelCore(SIR, np.array([0.0]))

    assert core.dt == 0.0
    assert core.dt_grid.shape == (0,)
    assert core.get_dt(0) == 0.0


def test_get_dt_out_of_bounds_raises() -> None:
    """get_dt raises IndexError outside [0, n_timesteps - 1)."""
    core = ModelCore(SIR, np.array([0.0, 0.5, 1.0]))

    with pytest.raises(IndexError, match="dt index out of bounds"):
        core.get_dt(2)
    with pytest.raises(IndexError, match="dt index out of bounds"):
        core.get_dt(-1)


def test_current_time_and_dt_follow_the_step() -> None:
    """current_time and get_dt(current_step) track each advance."""
    core = ModelCore(SIR, np.array([0.0, 0.1, 0.4, 1.0]))
    core.set_initial_state(np.array([1.0, 0.0, 0.0]))

    seen = []
    for _ in range(3):
        seen.append((core.current_time, core.get_dt(core.current_step)))
        core.advance_timestep(core.get_current_state())

    assert np.allclose(seen, [(0.0, 0.1), (0.1, 0.3), (0.4, 0.6)])
    assert core.current_time == 1.0


# -------------------------------------------------------------------
# Compartments
# -------------------------------------------------------------------


def test_compartment_index_resolves_names() -> None:
    """compartment_index follows the constructor order."""
    core = ModelCore(("S", "E", "I", "R"), np.array([0.0, 1.0]))

    assert core.compartment_index("S") == 0
    assert core.compartment_index("I") == 2
    with pytest.raises(ValueError, match="Unknown compartment"):
        core.compartment_index("D")


def test_series_returns_history_of_one_compartment() -> None:
    """series(name) is the history column of that compartment."""
    core = ModelCore(SIR, np.array([0.0, 1.0, 2.0]))
    core.set_initial_state(np.array([90.0, 10.0, 0.0]))
    core.advance_timestep(np.array([80.0, 15.0, 5.0]))

    assert np.allclose(core.series("I")[:2], [10.0, 15.0])


# -------------------------------------------------------------------
# Initial state / population
# -------------------------------------------------------------------


def test_set_initial_state_records_population() -> None:
    """The initial total is stored as the conserved population."""
    core = ModelCore(SIR, np.array([0.0, 1.0]))
    core.set_initial_state(np.array([990.0, 10.0, 0.0]))

    assert core.population == 1000.0
    assert core.state_array is not None
    assert np.allclose(core.state_array[0], [990.0, 10.0, 0.0])


def test_set_initial_state_wrong_shape_raises() -> None:
    """A state vector of the wrong length is a TrajectoryShapeError."""
    core = ModelCore(SIR, np.array([0.0, 1.0]))

    with pytest.raises(TrajectoryShapeError, match="initial_state"):
        core.set_initial_state(np.array([1.0, 2.0]))


# -------------------------------------------------------------------
# History and stepping
# -------------------------------------------------------------------


def test_history_disabled_blocks_history_access() -> None:
    """Without history, series raises RuntimeError."""
    opts = ModelCoreOptions(store_history=False)
    core = ModelCore(SIR, np.array([0.0, 1.0]), options=opts)
    core.set_initial_state(np.array([1.0, 0.0, 0.0]))

    assert core.state_array is None
    with pytest.raises(RuntimeError, match="store_history=False"):
        core.series("S")


def test_advance_past_final_timestep_raises() -> None:
    """Advancing beyond the last grid point raises RuntimeError."""
    core = ModelCore(SIR, np.array([0.0, 1.0]))
    core.set_initial_state(np.array([1.0, 0.0, 0.0]))
    core.advance_timestep(np.array([1.0, 0.0, 0.0]))

    assert core.current_step == 1
    with pytest.raises(RuntimeError, match="final timestep"):
        core.advance_timestep(np.array([1.0, 0.0, 0.0]))


def test_apply_next_state_shape_mismatch_raises() -> None:
    """Next states must match the state shape."""
    core = ModelCore(SIR, np.array([0.0, 1.0]))
    core.set_initial_state(np.array([1.0, 0.0, 0.0]))

    with pytest.raises(ValueError, match="does not match expected"):
        core.apply_next_state(np.zeros(4))
