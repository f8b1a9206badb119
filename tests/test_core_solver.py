# tests/test_core_solver.py
"""Unit tests for the CoreSolver class.

This module contains tests that verify:
- The explicit methods reach their formal order of accuracy on y' = -y.
- rk4_step and the in-place RK4 kernel agree.
- The RHS factory is called once per step, at the step's start time.
- Negative compartments are clamped and the total is rescaled to N, in that
  order, with the post-step hook applied in between.
- Corrections are tallied in SolverDiagnostics and never raise.
- Structural misuse (bad RHS shape, unknown method, negative tolerance) raises.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pytest

from epi_engine.core_solver import (
    CoreSolver,
    RunConfig,
    frozen_rhs,
    rk4_step,
)
from epi_engine.model_core import ModelCore

if TYPE_CHECKING:
    from numpy.typing import NDArray

    FloatArray = NDArray[np.floating]

NO_RESCALE = float("inf")


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _decay(_t: float, y: FloatArray) -> FloatArray:
    return -y


def _time_grid_uniform(t_end: float, dt: float) -> FloatArray:
    return np.arange(0.0, t_end + 0.5 * dt, dt, dtype=np.float64)


def _run_decay(method: str, dt: float) -> float:
    """
    Integrate y' = -y, y(0) = 1 to t = 1 and return y(1).

    Args:
        method: Solver method.
        dt: Step size.

    Returns:
        Numerical y(1).
    """
    core = ModelCore(("y",), _time_grid_uniform(1.0, dt))
    core.set_initial_state(np.array([1.0]))
    CoreSolver(core).run(
        frozen_rhs(_decay),
        config=RunConfig(method=method, conservation_tol=NO_RESCALE),
    )
    return float(core.get_current_state()[0])


# -----------------------------------------------------------------------------
# Accuracy
# -----------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("method", "expected_order"),
    [("euler", 1), ("heun", 2), ("rk4", 4)],
)
def test_explicit_methods_reach_formal_order(method: str, expected_order: int) -> None:
    """Halving dt shrinks the error by about 2**order."""
    exact = float(np.exp(-1.0))
    err_coarse = abs(_run_decay(method, 0.1) - exact)
    err_fine = abs(_run_decay(method, 0.05) - exact)

    observed = np.log2(err_coarse / err_fine)
    assert observed == pytest.approx(expected_order, abs=0.3)
    assert CoreSolver.method_order(method) == expected_order


def test_rk4_is_accurate_on_decay() -> None:
    """RK4 at dt=0.1 matches exp(-1) to better than 1e-6."""
    assert _run_decay("rk4", 0.1) == pytest.approx(np.exp(-1.0), abs=1e-6)


def test_rk4_step_matches_solver_kernel() -> None:
    """The pure rk4_step helper agrees with one in-place solver step."""

    def rhs(_t: float, y: FloatArray) -> FloatArray:
        return np.array([-0.3 * y[0] * y[1], 0.3 * y[0] * y[1] - 0.1 * y[1]])

    y0 = np.array([0.9, 0.1])
    expected = rk4_step(rhs, 0.0, y0, 0.5)

    core = ModelCore(("S", "I"), np.array([0.0, 0.5]))
    core.set_initial_state(y0)
    CoreSolver(core).run(
        frozen_rhs(rhs),
        config=RunConfig(conservation_tol=NO_RESCALE),
    )

    assert np.allclose(core.get_current_state(), expected, rtol=0.0, atol=1e-15)
    assert np.allclose(y0, [0.9, 0.1])


# -----------------------------------------------------------------------------
# Per-step coefficient freezing
# -----------------------------------------------------------------------------


def test_rhs_factory_called_once_per_step_at_step_start() -> None:
    """The factory sees each step's start time exactly once."""
    seen: list[float] = []

    def factory(t: float):  # noqa: ANN202
        seen.append(t)
        return _decay

    time_grid = _time_grid_uniform(1.0, 0.25)
    core = ModelCore(("y",), time_grid)
    core.set_initial_state(np.array([1.0]))
    diagnostics = CoreSolver(core).run(
        factory, config=RunConfig(conservation_tol=NO_RESCALE)
    )

    assert np.allclose(seen, time_grid[:-1])
    assert diagnostics.steps == time_grid.size - 1


def test_factory_rates_frozen_within_step() -> None:
    """A rate switching on mid-step only acts from the next step on."""

    def factory(t: float):  # noqa: ANN202
        rate = 1.0 if t >= 1.0 else 0.0

        def rhs(_t: float, y: FloatArray) -> FloatArray:
            return np.array([rate])

        return rhs

    core = ModelCore(("y",), np.array([0.0, 1.0, 2.0]))
    core.set_initial_state(np.array([1.0]))
    CoreSolver(core).run(factory, config=RunConfig(conservation_tol=NO_RESCALE))

    assert core.state_array is not None
    assert np.allclose(core.state_array[:, 0], [1.0, 1.0, 2.0])


def test_nonuniform_grid_steps_use_per_interval_dt() -> None:
    """Each step starts at the core's current time and spans its own dt."""
    steps: list[tuple[float, float]] = []

    def record(t: float, dt: float, _y: FloatArray) -> None:
        steps.append((t, dt))

    def constant(_t: float, _y: FloatArray) -> FloatArray:
        return np.array([1.0])

    core = ModelCore(("y",), np.array([0.0, 0.1, 0.4, 1.0]))
    core.set_initial_state(np.array([0.0]))
    CoreSolver(core).run(
        frozen_rhs(constant),
        config=RunConfig(method="euler", conservation_tol=NO_RESCALE),
        post_step=record,
    )

    assert np.allclose(steps, [(0.0, 0.1), (0.1, 0.3), (0.4, 0.6)])
    assert core.state_array is not None
    assert np.allclose(core.state_array[:, 0], [0.0, 0.1, 0.4, 1.0])


# -----------------------------------------------------------------------------
# Safeguards
# -----------------------------------------------------------------------------


def _overshoot(_t: float, _y: FloatArray) -> FloatArray:
    return np.array([-10.0, 10.0])


def test_clamp_then_rescale_restores_population() -> None:
    """An overshooting step is clamped to >= 0 and rescaled back to N."""
    core = ModelCore(("S", "I"), np.array([0.0, 1.0]))
    core.set_initial_state(np.array([1.0, 1.0]))

    diagnostics = CoreSolver(core).run(frozen_rhs(_overshoot), config=RunConfig())

    assert np.allclose(core.get_current_state(), [0.0, 2.0])
    assert diagnostics.clamped_steps == 1
    assert diagnostics.rescaled_steps == 1
    assert diagnostics.corrected
    assert diagnostics.max_conservation_drift == pytest.approx(4.5)
    assert len(diagnostics.events) == 2


def test_clamp_can_be_disabled() -> None:
    """With clamp_negative=False negative values pass through."""
    core = ModelCore(("S", "I"), np.array([0.0, 1.0]))
    core.set_initial_state(np.array([1.0, 1.0]))

    diagnostics = CoreSolver(core).run(
        frozen_rhs(_overshoot),
        config=RunConfig(clamp_negative=False, conservation_tol=NO_RESCALE),
    )

    assert np.allclose(core.get_current_state(), [-9.0, 11.0])
    assert diagnostics.clamped_steps == 0
    assert not diagnostics.corrected


def test_small_drift_is_not_rescaled() -> None:
    """Drift within tolerance is left alone but still reported."""

    def leak(_t: float, _y: FloatArray) -> FloatArray:
        return np.array([-0.5, 0.0])

    core = ModelCore(("S", "I"), np.array([0.0, 1.0]))
    core.set_initial_state(np.array([50.0, 50.0]))

    diagnostics = CoreSolver(core).run(frozen_rhs(leak), config=RunConfig())

    assert np.allclose(core.get_current_state(), [49.5, 50.0])
    assert diagnostics.rescaled_steps == 0
    assert diagnostics.max_conservation_drift == pytest.approx(0.005)


def test_post_step_hook_runs_after_clamp_before_rescale() -> None:
    """The hook sees the clamped state; rescaling sees the hook's result."""
    calls: list[tuple[float, float, list[float]]] = []

    def hook(t: float, dt: float, y: FloatArray) -> None:
        calls.append((t, dt, y.tolist()))
        y[1] += 1.0

    core = ModelCore(("S", "I"), np.array([0.0, 1.0]))
    core.set_initial_state(np.array([1.0, 1.0]))

    diagnostics = CoreSolver(core).run(
        frozen_rhs(_overshoot), config=RunConfig(), post_step=hook
    )

    assert calls == [(0.0, 1.0, [0.0, 11.0])]
    assert np.allclose(core.get_current_state(), [0.0, 2.0])
    assert diagnostics.max_conservation_drift == pytest.approx(5.0)


def test_conserving_rhs_needs_no_correction() -> None:
    """A mass-conserving RHS keeps the total without any safeguard firing."""

    def sir(_t: float, y: FloatArray) -> FloatArray:
        inf = 0.4 * y[0] * y[1] / 1000.0
        rec = 0.1 * y[1]
        return np.array([-inf, inf - rec, rec])

    core = ModelCore(("S", "I", "R"), _time_grid_uniform(50.0, 0.2))
    core.set_initial_state(np.array([990.0, 10.0, 0.0]))
    diagnostics = CoreSolver(core).run(frozen_rhs(sir))

    assert core.state_array is not None
    assert np.allclose(core.state_array.sum(axis=1), 1000.0)
    assert not diagnostics.corrected
    assert diagnostics.max_conservation_drift < 1e-12


# -----------------------------------------------------------------------------
# Structural misuse
# -----------------------------------------------------------------------------


def test_rhs_wrong_shape_raises() -> None:
    """An RHS returning the wrong shape raises ValueError."""

    def bad(_t: float, _y: FloatArray) -> FloatArray:
        return np.zeros(3)

    core = ModelCore(("S", "I"), np.array([0.0, 1.0]))
    core.set_initial_state(np.array([1.0, 1.0]))

    with pytest.raises(ValueError, match="rhs shape"):
        CoreSolver(core).run(frozen_rhs(bad))


def test_unknown_method_raises() -> None:
    """Unknown methods are rejected before stepping."""
    core = ModelCore(("y",), np.array([0.0, 1.0]))
    core.set_initial_state(np.array([1.0]))

    with pytest.raises(ValueError, match="Unknown method"):
        CoreSolver(core).run(frozen_rhs(_decay), config=RunConfig(method="rk45"))


def test_method_name_is_normalized() -> None:
    """Method names are case- and whitespace-insensitive."""
    core = ModelCore(("y",), np.array([0.0, 1.0]))
    core.set_initial_state(np.array([1.0]))

    diagnostics = CoreSolver(core).run(
        frozen_rhs(_decay),
        config=RunConfig(method=" RK4 ", conservation_tol=NO_RESCALE),
    )

    assert diagnostics.method == "rk4"


def test_negative_conservation_tol_raises() -> None:
    """conservation_tol must be non-negative."""
    core = ModelCore(("y",), np.array([0.0, 1.0]))
    core.set_initial_state(np.array([1.0]))

    with pytest.raises(ValueError, match="conservation_tol"):
        CoreSolver(core).run(
            frozen_rhs(_decay), config=RunConfig(conservation_tol=-0.1)
        )
