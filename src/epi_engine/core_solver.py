# epi_engine/src/epi_engine/core_solver.py
"""Fixed-step explicit solver for compartmental epidemic models.

This solver advances a :class:`epi_engine.model_core.ModelCore` instance over
its configured time grid. ModelCore.time_grid is treated as *output times*;
the solver takes exactly one step of size dt = t_{i+1} - t_i per interval.

Supported methods (keyword `method=`):
    - "euler": Explicit Euler (order 1).
    - "heun":  Explicit Heun / RK2 (order 2).
    - "rk4":   Classical fourth-order Runge-Kutta (default).

Time-varying coefficients:
    Interventions make the model coefficients piecewise constant in time. The
    solver asks an RHS factory for the derivative function once per step,
    at the step's start time, and uses that frozen RHS for every stage of the
    step.

Safeguards applied after every step, in order:
    1. Clamp: every compartment is clamped to >= 0.
    2. Post-step hook: an optional in-place adjustment (e.g. the direct S->R
       vaccination transfer) operating on the clamped state.
    3. Conservation: if |sum(y) - N| > tol * N the state is rescaled by
       N / sum(y), where N is the total recorded by ModelCore.set_initial_state.

Neither safeguard raises; both are tallied in :class:`SolverDiagnostics`.

Performance hygiene:
    - Stage arrays are preallocated.
    - Inner loops use in-place NumPy ops and np.copyto.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final, Literal

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    from .model_core import ModelCore


# =============================================================================
# Errors / messages
# =============================================================================

_RHS_SHAPE_ERROR_MSG = "rhs shape {actual} does not match expected {expected}"
_UNKNOWN_METHOD_ERROR_MSG = "Unknown method: {method}"
_CONSERVATION_TOL_ERROR_MSG = "conservation_tol must be >= 0, got {tol}"

_CLAMP_EVENT_MSG = "t={t:.2f}: clamped {count} negative compartment value(s)"
_RESCALE_EVENT_MSG = "t={t:.2f}: conservation drift {drift:.3%} rescaled by {factor:.6f}"

_MAX_RECORDED_EVENTS: Final[int] = 100


# =============================================================================
# Type aliases
# =============================================================================

RHSFunction = Callable[[float, NDArray[np.floating]], NDArray[np.floating]]
RHSFactory = Callable[[float], RHSFunction]
PostStepHook = Callable[[float, float, NDArray[np.floating]], None]
MethodName = Literal["euler", "heun", "rk4"]

_METHOD_ORDER: Final[dict[str, int]] = {"euler": 1, "heun": 2, "rk4": 4}


def frozen_rhs(rhs_func: RHSFunction) -> RHSFactory:
    """Wrap a time-independent RHS as a factory for CoreSolver.run.

    Args:
        rhs_func: Derivative function F(t, y).

    Returns:
        Factory returning rhs_func for every step.
    """

    def factory(_t: float) -> RHSFunction:
        return rhs_func

    return factory


def rk4_step(
    rhs_func: RHSFunction,
    t: float,
    y: NDArray[np.floating],
    dt: float,
) -> NDArray[np.floating]:
    """Take one classical RK4 step without any safeguards.

    Args:
        rhs_func: Derivative function F(t, y).
        t: Step start time.
        y: State at t.
        dt: Step size.

    Returns:
        New array holding the state at t + dt.
    """
    y_arr = np.asarray(y, dtype=np.float64)
    k1 = np.asarray(rhs_func(t, y_arr), dtype=np.float64)
    k2 = np.asarray(rhs_func(t + 0.5 * dt, y_arr + 0.5 * dt * k1), dtype=np.float64)
    k3 = np.asarray(rhs_func(t + 0.5 * dt, y_arr + 0.5 * dt * k2), dtype=np.float64)
    k4 = np.asarray(rhs_func(t + dt, y_arr + dt * k3), dtype=np.float64)
    return y_arr + (dt / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


# =============================================================================
# Configuration dataclasses
# =============================================================================


@dataclass(slots=True, frozen=True)
class RunConfig:
    """Configuration for CoreSolver.run.

    Attributes:
        method: Method name.
        clamp_negative: Clamp compartments to >= 0 after every step.
        conservation_tol: Relative drift of sum(y) from N that triggers
            rescaling. Set to ``float("inf")`` to disable rescaling.
    """

    method: str = "rk4"
    clamp_negative: bool = True
    conservation_tol: float = 0.01


@dataclass(slots=True, frozen=True)
class SolverDiagnostics:
    """Record of the in-loop corrections made during one run.

    Attributes:
        method: Method that was run.
        steps: Number of steps taken.
        clamped_steps: Steps in which at least one compartment was clamped.
        rescaled_steps: Steps in which conservation rescaling was applied.
        max_conservation_drift: Largest relative drift |sum - N| / N observed
            after clamping and before rescaling.
        events: Human-readable description of the first corrections.
    """

    method: str
    steps: int = 0
    clamped_steps: int = 0
    rescaled_steps: int = 0
    max_conservation_drift: float = 0.0
    events: tuple[str, ...] = ()

    @property
    def corrected(self) -> bool:
        """Whether any safeguard changed the state during the run."""
        return self.clamped_steps > 0 or self.rescaled_steps > 0


@dataclass(slots=True)
class _DiagnosticsTally:
    """Mutable tally accumulated while stepping."""

    steps: int = 0
    clamped_steps: int = 0
    rescaled_steps: int = 0
    max_conservation_drift: float = 0.0
    events: list[str] = field(default_factory=list)

    def record(self, event: str) -> None:
        if len(self.events) < _MAX_RECORDED_EVENTS:
            self.events.append(event)

    def freeze(self, method: str) -> SolverDiagnostics:
        return SolverDiagnostics(
            method=method,
            steps=self.steps,
            clamped_steps=self.clamped_steps,
            rescaled_steps=self.rescaled_steps,
            max_conservation_drift=self.max_conservation_drift,
            events=tuple(self.events),
        )


@dataclass(slots=True)
class StepIO:
    """Bundle of per-step state for stepping kernels.

    Attributes:
        t: Current time.
        dt: Step size.
        y: Current state array (input).
        out: Output state array (written in-place).
    """

    t: float
    dt: float
    y: NDArray[np.floating]
    out: NDArray[np.floating]


# =============================================================================
# CoreSolver
# =============================================================================


class CoreSolver:
    """Fixed-step explicit solver operating on a ModelCore time/state grid."""

    def __init__(self, core: ModelCore) -> None:
        """Initialize CoreSolver.

        Args:
            core: ModelCore instance to solve.
        """
        self.core = core
        self.dtype = core.dtype
        self.state_shape = core.state_shape

        # Preallocate buffers
        self._k1: NDArray[np.floating] = np.zeros(self.state_shape, dtype=self.dtype)
        self._k2: NDArray[np.floating] = np.zeros_like(self._k1)
        self._k3: NDArray[np.floating] = np.zeros_like(self._k1)
        self._k4: NDArray[np.floating] = np.zeros_like(self._k1)
        self._stage: NDArray[np.floating] = np.zeros_like(self._k1)
        self._y_curr: NDArray[np.floating] = np.zeros_like(self._k1)
        self._y_next: NDArray[np.floating] = np.zeros_like(self._k1)

    # ------------------------------------------------------------------
    # RHS evaluation helper (shape + dtype enforcement)
    # ------------------------------------------------------------------

    def _rhs_into(
        self,
        out: NDArray[np.floating],
        rhs_func: RHSFunction,
        t: float,
        y: NDArray[np.floating],
    ) -> None:
        """Evaluate RHS into out with shape enforcement.

        Args:
            out: Output buffer to write into.
            rhs_func: RHS function F(t, y).
            t: Time.
            y: State.

        Raises:
            ValueError: If RHS returns an array with an unexpected shape.
        """
        f = np.asarray(rhs_func(float(t), y), dtype=self.dtype)
        if f.shape != self.state_shape:
            raise ValueError(
                _RHS_SHAPE_ERROR_MSG.format(
                    actual=f.shape,
                    expected=self.state_shape,
                )
            )
        np.copyto(out, f)

    @staticmethod
    def _normalize_method(method: str) -> MethodName:
        """Normalize and validate method string.

        Args:
            method: User-provided method string.

        Raises:
            ValueError: If method is unknown.

        Returns:
            Normalized method literal.
        """
        method_norm = str(method).strip().lower()
        if method_norm not in _METHOD_ORDER:
            raise ValueError(_UNKNOWN_METHOD_ERROR_MSG.format(method=method))
        return method_norm  # type: ignore[return-value]

    @staticmethod
    def method_order(method: str) -> int:
        """Return the formal order of accuracy of a method.

        Args:
            method: Method name.

        Returns:
            Order as an integer.
        """
        return _METHOD_ORDER[CoreSolver._normalize_method(method)]

    # ------------------------------------------------------------------
    # Stepping kernels
    # ------------------------------------------------------------------

    def _step_euler(self, rhs_func: RHSFunction, step: StepIO) -> None:
        """Explicit Euler step.

        Args:
            rhs_func: RHS function.
            step: Step bundle.
        """
        self._rhs_into(self._k1, rhs_func, step.t, step.y)
        np.multiply(self._k1, step.dt, out=step.out)
        step.out += step.y

    def _step_heun(self, rhs_func: RHSFunction, step: StepIO) -> None:
        """Explicit Heun (RK2) step.

        Args:
            rhs_func: RHS function.
            step: Step bundle.
        """
        self._rhs_into(self._k1, rhs_func, step.t, step.y)

        np.multiply(self._k1, step.dt, out=self._stage)
        self._stage += step.y
        self._rhs_into(self._k2, rhs_func, step.t + step.dt, self._stage)

        np.add(self._k1, self._k2, out=step.out)
        step.out *= 0.5 * step.dt
        step.out += step.y

    def _step_rk4(self, rhs_func: RHSFunction, step: StepIO) -> None:
        """Classical RK4 step.

        Args:
            rhs_func: RHS function.
            step: Step bundle.
        """
        half = 0.5 * step.dt
        t_half = step.t + half

        self._rhs_into(self._k1, rhs_func, step.t, step.y)

        np.multiply(self._k1, half, out=self._stage)
        self._stage += step.y
        self._rhs_into(self._k2, rhs_func, t_half, self._stage)

        np.multiply(self._k2, half, out=self._stage)
        self._stage += step.y
        self._rhs_into(self._k3, rhs_func, t_half, self._stage)

        np.multiply(self._k3, step.dt, out=self._stage)
        self._stage += step.y
        self._rhs_into(self._k4, rhs_func, step.t + step.dt, self._stage)

        np.add(self._k2, self._k3, out=step.out)
        step.out *= 2.0
        step.out += self._k1
        step.out += self._k4
        step.out *= step.dt / 6.0
        step.out += step.y

    def _attempt_step(
        self,
        rhs_func: RHSFunction,
        *,
        method: MethodName,
        step: StepIO,
    ) -> None:
        """Dispatch a single step.

        Args:
            rhs_func: RHS function.
            method: Normalized method name.
            step: Step bundle.
        """
        if method == "euler":
            self._step_euler(rhs_func, step)
        elif method == "heun":
            self._step_heun(rhs_func, step)
        else:
            self._step_rk4(rhs_func, step)

    # ------------------------------------------------------------------
    # Safeguards
    # ------------------------------------------------------------------

    @staticmethod
    def _clamp(y: NDArray[np.floating]) -> int:
        """Clamp negative entries of y to zero in place.

        Args:
            y: State array (modified in place).

        Returns:
            Number of entries that were negative.
        """
        negative = int(np.count_nonzero(y < 0.0))
        if negative:
            np.maximum(y, 0.0, out=y)
        return negative

    def _conserve(
        self,
        y: NDArray[np.floating],
        *,
        t: float,
        tol: float,
        tally: _DiagnosticsTally,
    ) -> None:
        """Rescale y in place when its total drifts beyond tol of N.

        Args:
            y: State array (modified in place).
            t: Time of the state, for event messages.
            tol: Relative drift tolerance.
            tally: Diagnostics tally to update.
        """
        population = self.core.population
        if population <= 0.0:
            return
        total = float(np.sum(y))
        drift = abs(total - population) / population
        tally.max_conservation_drift = max(tally.max_conservation_drift, drift)
        if drift <= tol or total <= 0.0:
            return
        factor = population / total
        y *= factor
        tally.rescaled_steps += 1
        tally.record(_RESCALE_EVENT_MSG.format(t=t, drift=drift, factor=factor))

    # ------------------------------------------------------------------
    # Public run loop
    # ------------------------------------------------------------------

    def run(
        self,
        rhs_factory: RHSFactory,
        *,
        config: RunConfig | None = None,
        post_step: PostStepHook | None = None,
    ) -> SolverDiagnostics:
        """Advance the ModelCore state through its time grid.

        Args:
            rhs_factory: Called once per step with the step start time; returns
                the RHS F(t, y) used for every stage of that step.
            config: Optional run configuration. If None, defaults are used.
            post_step: Optional in-place adjustment ``hook(t, dt, y)`` applied
                to the clamped state before the conservation check.

        Raises:
            ValueError: If invalid parameters are provided.

        Returns:
            Diagnostics describing the corrections made.
        """
        cfg = config or RunConfig()
        method = self._normalize_method(cfg.method)
        if cfg.conservation_tol < 0.0:
            raise ValueError(_CONSERVATION_TOL_ERROR_MSG.format(tol=cfg.conservation_tol))

        tally = _DiagnosticsTally()
        n_steps = int(self.core.n_timesteps)

        for _ in range(n_steps - 1):
            t0 = self.core.current_time
            dt = self.core.get_dt(self.core.current_step)
            t1 = t0 + dt

            np.copyto(self._y_curr, self.core.get_current_state())
            rhs_func = rhs_factory(t0)
            self._attempt_step(
                rhs_func,
                method=method,
                step=StepIO(t=t0, dt=dt, y=self._y_curr, out=self._y_next),
            )

            if cfg.clamp_negative:
                negative = self._clamp(self._y_next)
                if negative:
                    tally.clamped_steps += 1
                    tally.record(_CLAMP_EVENT_MSG.format(t=t1, count=negative))

            if post_step is not None:
                post_step(t0, dt, self._y_next)

            self._conserve(self._y_next, t=t1, tol=cfg.conservation_tol, tally=tally)

            self.core.advance_timestep(self._y_next)
            tally.steps += 1

        return tally.freeze(method)
