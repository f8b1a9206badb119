"""Scenario runner: one validated config in, one complete trajectory out.

Contract:
- ``run_scenario(config)`` validates the config, refuses to simulate invalid
  ones (:class:`~epi_engine.errors.InvalidParameterError`), integrates the
  model from ``t = 0`` to ``floor(days / dt) * dt`` with fixed step ``dt`` and
  returns a :class:`ScenarioResult`.
- Intervention coefficients are evaluated once per step at the step's start
  time. Vaccination moves ``min(S, rate * dt * N)`` from S to R after the RK4
  step and the non-negativity clamp, before the conservation check.
- No state survives a call; identical configs give identical trajectories.
- ``run_batch`` dispatches independent configs to a thread pool and yields each
  result as soon as it completes.
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from epi_engine.core_solver import CoreSolver, SolverDiagnostics
from epi_engine.errors import raise_invalid_parameters
from epi_engine.interventions import EffectiveRates, evaluate
from epi_engine.model_core import ModelCore, ModelCoreOptions
from epi_engine.models import make_rhs
from epi_engine.types import Trajectory
from epi_engine.validation import (
    ValidationResult,
    check_trajectory,
    validate_parameters,
)

if TYPE_CHECKING:
    from epi_engine.config import SimulationConfig
    from epi_engine.core_solver import RHSFunction
    from epi_engine.types import FloatArray

logger = logging.getLogger(__name__)

_HORIZON_TRUNCATED_MSG: Final[str] = (
    "days={days:g} is not a multiple of dt={dt:g}; the trajectory ends at "
    "t={end:g} (floor(days / dt) steps)."
)


@dataclass(frozen=True, slots=True)
class ScenarioResult:
    """Output of one scenario run.

    Attributes:
        config: The config that produced this result.
        trajectory: Full trajectory.
        diagnostics: In-loop corrections made by the solver.
        validation: Parameter-validator outcome for the config.
        issues: Post-hoc consistency issues; empty for a healthy run.
    """

    config: SimulationConfig
    trajectory: Trajectory
    diagnostics: SolverDiagnostics
    validation: ValidationResult
    issues: tuple[str, ...] = ()

    @property
    def is_consistent(self) -> bool:
        """True when the post-hoc checks found nothing."""
        return not self.issues


class _InterventionSchedule:
    """Per-run bridge between the interventions and the solver callbacks.

    Caches the coefficients of the current step so the RHS factory and the
    vaccination hook see the same rates.
    """

    def __init__(self, config: SimulationConfig, core: ModelCore) -> None:
        self._model = config.model
        self._base = config.base_rates
        self._interventions = config.interventions
        self._population = config.population
        self._s_idx = core.compartment_index("S")
        self._r_idx = core.compartment_index("R")
        self._t: float | None = None
        self._rates: EffectiveRates = self._base

    def rates_at(self, t: float) -> EffectiveRates:
        if self._t != t:
            self._rates = evaluate(t, self._base, self._interventions)
            self._t = t
        return self._rates

    def rhs_for_step(self, t: float) -> RHSFunction:
        return make_rhs(self._model, self.rates_at(t), self._population)

    def vaccinate(self, t: float, dt: float, y: FloatArray) -> None:
        rate = self.rates_at(t).vaccination_rate
        if rate <= 0.0:
            return
        moved = min(float(y[self._s_idx]), rate * dt * self._population)
        y[self._s_idx] -= moved
        y[self._r_idx] += moved


def run_scenario(
    config: SimulationConfig,
    *,
    strict: bool = True,
) -> ScenarioResult:
    """Validate and integrate one scenario.

    Args:
        config: Simulation inputs.
        strict: If True, emit a RuntimeWarning when days is not a multiple of
            dt (the horizon is truncated to floor(days / dt) steps).

    Raises:
        InvalidParameterError: If the parameter validator reports errors.
        RuntimeError: If the state history is unavailable after the run.

    Returns:
        ScenarioResult with the full trajectory.
    """
    validation = validate_parameters(config)
    if not validation.is_valid:
        raise_invalid_parameters(validation.errors)

    if strict and config.horizon_is_truncated:
        warnings.warn(
            _HORIZON_TRUNCATED_MSG.format(
                days=config.days,
                dt=config.dt,
                end=config.n_steps * config.dt,
            ),
            RuntimeWarning,
            stacklevel=2,
        )

    time_grid = config.time_grid()
    opts = ModelCoreOptions(store_history=True)
    core = ModelCore(config.compartments, time_grid, options=opts)
    core.set_initial_state(config.initial_state())

    schedule = _InterventionSchedule(config, core)
    solver = CoreSolver(core)
    diagnostics = solver.run(
        schedule.rhs_for_step,
        config=config.to_run_config(),
        post_step=schedule.vaccinate,
    )

    history = {name: core.series(name) for name in core.compartments}
    trajectory = Trajectory(
        model=config.model,
        time=time_grid,
        S=history["S"],
        I=history["I"],
        R=history["R"],
        E=history.get("E"),
        population=core.population,
    )
    issues = tuple(check_trajectory(trajectory))

    logger.debug(
        "%s run: %d steps, %d clamped, %d rescaled, %d issue(s)",
        config.model,
        diagnostics.steps,
        diagnostics.clamped_steps,
        diagnostics.rescaled_steps,
        len(issues),
    )

    return ScenarioResult(
        config=config,
        trajectory=trajectory,
        diagnostics=diagnostics,
        validation=validation,
        issues=issues,
    )


def simulate(config: SimulationConfig) -> Trajectory:
    """Run a scenario and return only its trajectory.

    Args:
        config: Simulation inputs.

    Returns:
        Trajectory of the run.
    """
    return run_scenario(config).trajectory


def run_batch(
    configs: Iterable[SimulationConfig],
    *,
    max_workers: int | None = None,
) -> Iterator[tuple[int, ScenarioResult]]:
    """Run independent scenarios concurrently, streaming results.

    Results are yielded in completion order, tagged with the index of their
    config, so callers can process and drop each trajectory as it arrives.

    Args:
        configs: Simulation inputs.
        max_workers: Thread-pool size (executor default if None).

    Yields:
        (index, ScenarioResult) pairs.
    """
    config_list = list(configs)
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = {
            pool.submit(run_scenario, cfg, strict=False): idx
            for idx, cfg in enumerate(config_list)
        }
        for done, future in enumerate(as_completed(futures), start=1):
            idx = futures[future]
            logger.debug("batch: scenario %d finished (%d/%d)", idx, done, len(futures))
            yield idx, future.result()
