"""Parameter plausibility checks, data-quality assessment and post-hoc checks.

Everything here is advisory and purely functional: inputs are never mutated
and nothing raises for numeric input. Three checks are provided:

- :func:`validate_parameters` gates a :class:`SimulationConfig` before
  simulating. Errors are blocking (the runner refuses to simulate);
  warnings and recommendations are not.
- :func:`assess_data_quality` flags implausible capacity/population records.
- :func:`check_trajectory` inspects a finished trajectory for conservation,
  non-negativity, monotone recovery and convergence. With a correct solver
  it returns an empty list; anything it reports points to a deeper bug.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Final

import numpy as np

if TYPE_CHECKING:
    from epi_engine.config import HealthCapacity, SimulationConfig
    from epi_engine.types import Trajectory

# Parameter ranges ------------------------------------------------------------

BETA_RANGE: Final[tuple[float, float]] = (0.0, 2.0)
GAMMA_RANGE: Final[tuple[float, float]] = (0.0, 1.0)
MIN_INITIAL_INFECTED: Final[float] = 1.0

_BETA_HIGH: Final[float] = 0.8
_BETA_LOW: Final[float] = 0.1
_PERIOD_SHORT_DAYS: Final[float] = 2.0
_PERIOD_LONG_DAYS: Final[float] = 30.0
_R0_EXTREME: Final[float] = 10.0
_R0_HIGH: Final[float] = 5.0
_INITIAL_FRACTION_HIGH: Final[float] = 0.05

# Trajectory checks -------------------------------------------------------------

CONSERVATION_TOL: Final[float] = 0.01
MONOTONE_TOL: Final[float] = 0.01
_N_CHECKPOINTS: Final[int] = 10
_CONVERGENCE_RATE: Final[float] = 0.001
_CONVERGENCE_FLOOR: Final[float] = 100.0

# Messages --------------------------------------------------------------------

_BETA_RANGE_MSG = "beta must be in [0, 2] (typical values 0.1-0.8); got {beta:g}"
_GAMMA_RANGE_MSG = "gamma must be in [0, 1] (typical values 0.05-0.3); got {gamma:g}"
_I0_MIN_MSG = "at least 1 initial infectious individual is required; got {i0:g}"
_BETA_HIGH_MSG = "beta > 0.8 indicates an extremely contagious disease"
_BETA_LOW_MSG = "beta < 0.1 may not capture significant transmission"
_PERIOD_SHORT_MSG = "very short infectious period ({period:.1f} days)"
_PERIOD_LONG_MSG = "very long infectious period ({period:.1f} days)"
_R0_EXTREME_MSG = "R0 = {r0:.2f} is extremely high; check the parameters"
_R0_HIGH_MSG = "R0 = {r0:.2f} indicates high transmissibility (e.g. measles)"
_INITIAL_FRACTION_MSG = "more than 5% of the population is infected at the start"

_REC_SELF_EXTINGUISH = "R0 < 1: the outbreak tends to self-extinguish"
_REC_CONTROLLABLE = "R0 > 1 but controllable with adequate interventions"
_REC_EARLY_INTERVENTION = "R0 moderate to high: early intervention is critical"

_CONSERVATION_ISSUE_MSG = "conservation error at t={t:.1f}: {error:.2%}"
_NEGATIVE_ISSUE_MSG = "CRITICAL: negative values detected in the simulation"
_MONOTONE_ISSUE_MSG = "recovered decrease over time (not physical)"
_CONVERGENCE_ISSUE_MSG = "simulation may not have converged"


# =============================================================================
# Parameter validation
# =============================================================================


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of :func:`validate_parameters`.

    Attributes:
        is_valid: True when there are no blocking errors.
        errors: Blocking problems.
        warnings: Non-blocking plausibility flags.
        recommendations: Qualitative guidance keyed to the R0 band.
        r0: beta / gamma (inf when gamma == 0).
        infectious_period: 1 / gamma in days (inf when gamma == 0).
    """

    is_valid: bool
    errors: tuple[str, ...]
    warnings: tuple[str, ...]
    recommendations: tuple[str, ...]
    r0: float
    infectious_period: float


def _safe_ratio(num: float, den: float) -> float:
    if den > 0.0:
        return num / den
    return math.inf if num > 0.0 else math.nan


def validate_parameters(config: SimulationConfig) -> ValidationResult:
    """Check a simulation config for epidemiological plausibility.

    Args:
        config: Simulation inputs.

    Returns:
        ValidationResult with errors, warnings and recommendations.
    """
    errors: list[str] = []
    warnings: list[str] = []
    recommendations: list[str] = []

    beta = float(config.beta)
    gamma = float(config.gamma)

    if not BETA_RANGE[0] <= beta <= BETA_RANGE[1]:
        errors.append(_BETA_RANGE_MSG.format(beta=beta))
    elif beta > _BETA_HIGH:
        warnings.append(_BETA_HIGH_MSG)
    elif beta < _BETA_LOW:
        warnings.append(_BETA_LOW_MSG)

    infectious_period = _safe_ratio(1.0, gamma)
    if not GAMMA_RANGE[0] <= gamma <= GAMMA_RANGE[1]:
        errors.append(_GAMMA_RANGE_MSG.format(gamma=gamma))
    elif infectious_period < _PERIOD_SHORT_DAYS:
        warnings.append(_PERIOD_SHORT_MSG.format(period=infectious_period))
    elif infectious_period > _PERIOD_LONG_DAYS:
        warnings.append(_PERIOD_LONG_MSG.format(period=infectious_period))

    r0 = _safe_ratio(beta, gamma)
    if r0 > _R0_EXTREME:
        warnings.append(_R0_EXTREME_MSG.format(r0=r0))
    elif r0 > _R0_HIGH:
        warnings.append(_R0_HIGH_MSG.format(r0=r0))

    if r0 > 2.0:
        recommendations.append(_REC_EARLY_INTERVENTION)
    elif r0 > 1.0:
        recommendations.append(_REC_CONTROLLABLE)
    elif not math.isnan(r0):
        recommendations.append(_REC_SELF_EXTINGUISH)

    if config.i0 < MIN_INITIAL_INFECTED:
        errors.append(_I0_MIN_MSG.format(i0=config.i0))
    elif config.i0 / (config.s0 + config.i0) > _INITIAL_FRACTION_HIGH:
        warnings.append(_INITIAL_FRACTION_MSG)

    return ValidationResult(
        is_valid=not errors,
        errors=tuple(errors),
        warnings=tuple(warnings),
        recommendations=tuple(recommendations),
        r0=r0,
        infectious_period=infectious_period,
    )


# =============================================================================
# Data-quality assessment
# =============================================================================


class Reliability(str, Enum):
    """Qualitative reliability of external capacity data."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True, slots=True)
class DataQualityReport:
    """Outcome of :func:`assess_data_quality`.

    Attributes:
        completeness: Percentage of required fields present (0-100).
        reliability: Qualitative reliability.
        issues: Missing required data.
        warnings: Implausible values.
        icu_beds_per_100k: ICU beds per 100k inhabitants, if computable.
    """

    completeness: float
    reliability: Reliability
    issues: tuple[str, ...]
    warnings: tuple[str, ...]
    icu_beds_per_100k: float | None


def assess_data_quality(
    population: float | None,
    capacity: HealthCapacity | None,
) -> DataQualityReport:
    """Flag missing or implausible population/capacity data.

    Args:
        population: Population of the region.
        capacity: Health-system capacity of the region.

    Returns:
        DataQualityReport.
    """
    completeness = 100.0
    reliability = Reliability.HIGH
    issues: list[str] = []
    warnings: list[str] = []

    if not population:
        issues.append("missing required field: population")
        completeness -= 20.0
    if capacity is None:
        issues.append("missing required field: hospital capacity")
        completeness -= 20.0

    if population and population < 100_000:
        warnings.append(
            "very small population (<100k); results may not be representative"
        )

    icu_ratio: float | None = None
    if population and capacity is not None:
        icu_ratio = capacity.icu_beds / population * 100_000
        if icu_ratio < 5.0:
            warnings.append(
                f"very low ICU capacity ({icu_ratio:.1f} beds per 100k inhabitants)"
            )
            reliability = Reliability.MEDIUM
        elif icu_ratio > 50.0:
            warnings.append(
                f"unusually high ICU capacity ({icu_ratio:.1f} beds per 100k "
                "inhabitants); verify the data"
            )

    if completeness < 80.0:
        reliability = Reliability.LOW

    return DataQualityReport(
        completeness=completeness,
        reliability=reliability,
        issues=tuple(issues),
        warnings=tuple(warnings),
        icu_beds_per_100k=icu_ratio,
    )


# =============================================================================
# Post-hoc trajectory checks
# =============================================================================


def conservation_error(trajectory: Trajectory) -> float:
    """Relative deviation of the final total from the initial total.

    Args:
        trajectory: Completed trajectory.

    Returns:
        |total[-1] - total[0]| / total[0] (0 for an empty population).
    """
    total = trajectory.total
    if total[0] <= 0.0:
        return 0.0
    return float(abs(total[-1] - total[0]) / total[0])


def check_trajectory(trajectory: Trajectory) -> list[str]:
    """Report consistency issues of a completed trajectory.

    Checks, at roughly ten evenly spaced checkpoints, that the compartment
    total stays within 1% of its initial value; that no value is negative;
    that R never decreases by more than 0.01; and that the run looks converged
    (final relative change in I at most 0.1% unless I <= 100).

    Args:
        trajectory: Completed trajectory.

    Returns:
        List of issue strings; empty when consistent.
    """
    issues: list[str] = []
    total = trajectory.total
    n0 = float(total[0])
    n_points = trajectory.n_points

    if n0 > 0.0:
        stride = max(1, n_points // _N_CHECKPOINTS)
        for idx in range(0, n_points, stride):
            error = abs(float(total[idx]) - n0) / n0
            if error > CONSERVATION_TOL:
                issues.append(
                    _CONSERVATION_ISSUE_MSG.format(
                        t=float(trajectory.time[idx]), error=error
                    )
                )

    if any(np.any(series < 0.0) for series in trajectory.compartments.values()):
        issues.append(_NEGATIVE_ISSUE_MSG)

    if n_points > 1 and np.any(np.diff(trajectory.R) < -MONOTONE_TOL):
        issues.append(_MONOTONE_ISSUE_MSG)

    if n_points > 1:
        infected = trajectory.I
        prev = float(infected[-2])
        last = float(infected[-1])
        if prev > 0.0:
            change = abs(last - prev) / prev
            if change > _CONVERGENCE_RATE and last > _CONVERGENCE_FLOOR:
                issues.append(_CONVERGENCE_ISSUE_MSG)

    return issues
