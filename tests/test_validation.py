# tests/test_validation.py
"""Unit tests for epi_engine.validation.

Covers the parameter validator (errors, warnings, R0-band recommendations),
the capacity data-quality assessment and the post-hoc trajectory checks.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

import numpy as np
import pytest

from epi_engine.config import HealthCapacity, SimulationConfig
from epi_engine.types import Trajectory
from epi_engine.validation import (
    Reliability,
    assess_data_quality,
    check_trajectory,
    conservation_error,
    validate_parameters,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from epi_engine.runner import ScenarioResult

# -----------------------------------------------------------------------------
# Parameter validation
# -----------------------------------------------------------------------------


def test_reference_parameters_are_valid(sir_config: SimulationConfig) -> None:
    """The reference outbreak passes with an early-intervention recommendation."""
    result = validate_parameters(sir_config)

    assert result.is_valid
    assert result.errors == ()
    assert result.r0 == pytest.approx(4.0)
    assert result.infectious_period == pytest.approx(10.0)
    assert any("early intervention" in rec for rec in result.recommendations)


@pytest.mark.parametrize(
    ("kwargs", "fragment"),
    [
        ({"beta": 2.5}, "beta must be in [0, 2]"),
        ({"beta": -0.1}, "beta must be in [0, 2]"),
        ({"gamma": 1.5}, "gamma must be in [0, 1]"),
        ({"i0": 0.5}, "at least 1 initial infectious"),
    ],
)
def test_blocking_errors(kwargs: dict[str, float], fragment: str) -> None:
    """Out-of-range beta/gamma and i0 < 1 are blocking errors."""
    result = validate_parameters(SimulationConfig(**kwargs))

    assert not result.is_valid
    assert any(fragment in err for err in result.errors)


@pytest.mark.parametrize(
    ("beta", "gamma", "fragment"),
    [
        (0.9, 0.2, "extremely contagious"),
        (0.05, 0.1, "may not capture"),
        (0.4, 0.6, "very short infectious period"),
        (0.4, 0.02, "very long infectious period"),
        (0.6, 0.1, "indicates high transmissibility"),
        (1.5, 0.1, "extremely high"),
    ],
)
def test_plausibility_warnings(beta: float, gamma: float, fragment: str) -> None:
    """Implausible but admissible values produce warnings, not errors."""
    result = validate_parameters(SimulationConfig(beta=beta, gamma=gamma))

    assert result.is_valid
    assert any(fragment in warning for warning in result.warnings)


@pytest.mark.parametrize(
    ("beta", "gamma", "fragment"),
    [
        (0.05, 0.1, "self-extinguish"),
        (0.1, 0.1, "self-extinguish"),
        (0.15, 0.1, "controllable"),
        (0.2, 0.1, "controllable"),
        (0.3, 0.1, "early intervention"),
    ],
)
def test_recommendation_bands(beta: float, gamma: float, fragment: str) -> None:
    """Recommendations follow the R0 band (R0 == 1 self-extinguishes)."""
    result = validate_parameters(SimulationConfig(beta=beta, gamma=gamma))

    assert len(result.recommendations) == 1
    assert fragment in result.recommendations[0]


def test_gamma_zero_never_raises() -> None:
    """gamma == 0 gives infinite R0 and infectious period."""
    result = validate_parameters(SimulationConfig(beta=0.3, gamma=0.0))

    assert result.is_valid
    assert math.isinf(result.r0)
    assert math.isinf(result.infectious_period)


def test_large_initial_fraction_warns() -> None:
    """More than 5% infected at the start is flagged."""
    result = validate_parameters(SimulationConfig(s0=900.0, i0=100.0))

    assert any("5%" in warning for warning in result.warnings)


# -----------------------------------------------------------------------------
# Data quality
# -----------------------------------------------------------------------------


def test_complete_plausible_data_is_reliable() -> None:
    """A large population with ~10 ICU beds per 100k is HIGH reliability."""
    capacity = HealthCapacity(icu_beds=100.0, ventilators=50.0)
    report = assess_data_quality(1_000_000.0, capacity)

    assert report.completeness == 100.0
    assert report.reliability is Reliability.HIGH
    assert report.issues == ()
    assert report.warnings == ()
    assert report.icu_beds_per_100k == pytest.approx(10.0)


def test_missing_data_lowers_completeness() -> None:
    """Each missing field costs 20 points; below 80 reliability is LOW."""
    one_missing = assess_data_quality(None, HealthCapacity(icu_beds=5, ventilators=5))
    both_missing = assess_data_quality(None, None)

    assert one_missing.completeness == 80.0
    assert one_missing.reliability is Reliability.HIGH
    assert both_missing.completeness == 60.0
    assert both_missing.reliability is Reliability.LOW
    assert len(both_missing.issues) == 2


def test_low_icu_ratio_and_small_population_warn() -> None:
    """Small populations and < 5 ICU beds per 100k are flagged."""
    report = assess_data_quality(50_000.0, HealthCapacity(icu_beds=1, ventilators=1))

    assert report.reliability is Reliability.MEDIUM
    assert any("small population" in w for w in report.warnings)
    assert any("very low ICU capacity" in w for w in report.warnings)


def test_high_icu_ratio_asks_for_verification() -> None:
    """More than 50 ICU beds per 100k is suspicious."""
    report = assess_data_quality(100_000.0, HealthCapacity(icu_beds=80, ventilators=1))

    assert any("verify the data" in w for w in report.warnings)


# -----------------------------------------------------------------------------
# Post-hoc trajectory checks
# -----------------------------------------------------------------------------


def test_solver_output_is_consistent(sir_result: ScenarioResult) -> None:
    """A real run has no issues and negligible conservation error."""
    assert check_trajectory(sir_result.trajectory) == []
    assert conservation_error(sir_result.trajectory) < 1e-9


def test_negative_values_reported(
    make_trajectory: Callable[..., Trajectory],
) -> None:
    """Negative compartments are a critical issue."""
    trajectory = make_trajectory([10.0, -1.0, 0.0])

    assert any("negative values" in issue for issue in check_trajectory(trajectory))


def test_decreasing_recovered_reported(
    make_trajectory: Callable[..., Trajectory],
) -> None:
    """R dropping by more than 0.01 is not physical."""
    trajectory = make_trajectory([10.0, 5.0, 1.0], removed=[0.0, 5.0, 4.0])

    assert any("recovered decrease" in issue for issue in check_trajectory(trajectory))


def test_conservation_break_reported() -> None:
    """A total drifting by more than 1% is reported with its time."""
    time = np.arange(20, dtype=float)
    s = np.full(20, 900.0)
    s[10:] = 800.0
    trajectory = Trajectory(
        model="SIR",
        time=time,
        S=s,
        I=np.full(20, 50.0),
        R=np.full(20, 50.0),
        population=1000.0,
    )

    issues = check_trajectory(trajectory)
    assert any("conservation error at t=10.0" in issue for issue in issues)
    assert conservation_error(trajectory) == pytest.approx(0.1)


def test_unconverged_run_reported(
    make_trajectory: Callable[..., Trajectory],
) -> None:
    """A run still changing fast with I > 100 may not have converged."""
    trajectory = make_trajectory([500.0, 1000.0, 2000.0])

    assert "simulation may not have converged" in check_trajectory(trajectory)
