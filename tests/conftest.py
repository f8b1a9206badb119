"""Global pytest configuration and shared fixtures for epi_engine."""

from __future__ import annotations

from collections.abc import Callable

import numpy as np
import pytest

from epi_engine.config import HealthCapacity, SimulationConfig
from epi_engine.runner import ScenarioResult, run_scenario
from epi_engine.types import Trajectory

# -----------------------------------------------------------------------------
# Configs
# -----------------------------------------------------------------------------


@pytest.fixture
def sir_config() -> SimulationConfig:
    """Reference SIR outbreak: N=10000, R0=4, 160 days at dt=0.2."""
    return SimulationConfig(
        model="SIR",
        s0=9_900.0,
        i0=100.0,
        beta=0.4,
        gamma=0.1,
        days=160.0,
        dt=0.2,
    )


@pytest.fixture
def seir_config(sir_config: SimulationConfig) -> SimulationConfig:
    """SEIR counterpart of the reference outbreak (sigma=0.2)."""
    return sir_config.model_copy(update={"model": "SEIR", "sigma": 0.2})


@pytest.fixture
def capacity() -> HealthCapacity:
    """Small health system that the reference outbreak overwhelms."""
    return HealthCapacity(total_beds=300.0, icu_beds=20.0, ventilators=10.0)


# -----------------------------------------------------------------------------
# Runs
# -----------------------------------------------------------------------------


@pytest.fixture(scope="session")
def sir_result() -> ScenarioResult:
    """Completed run of the reference SIR outbreak (shared, read-only)."""
    config = SimulationConfig(
        model="SIR",
        s0=9_900.0,
        i0=100.0,
        beta=0.4,
        gamma=0.1,
        days=160.0,
        dt=0.2,
    )
    return run_scenario(config)


# -----------------------------------------------------------------------------
# Synthetic trajectories
# -----------------------------------------------------------------------------


def _sir_trajectory(
    infected: list[float] | np.ndarray,
    removed: list[float] | np.ndarray | None = None,
    *,
    population: float = 10_000.0,
    dt: float = 1.0,
) -> Trajectory:
    """Build an SIR trajectory from an I series (S fills the remainder).

    Args:
        infected: Infectious series.
        removed: Removed series (zeros if None).
        population: Conserved total.
        dt: Sample spacing in days.

    Returns:
        Trajectory.
    """
    i_arr = np.asarray(infected, dtype=float)
    r_arr = np.zeros_like(i_arr) if removed is None else np.asarray(removed, dtype=float)
    return Trajectory(
        model="SIR",
        time=np.arange(i_arr.size, dtype=float) * dt,
        S=population - i_arr - r_arr,
        I=i_arr,
        R=r_arr,
        population=population,
    )


@pytest.fixture
def make_trajectory() -> Callable[..., Trajectory]:
    """Factory building SIR trajectories from synthetic I (and R) series."""
    return _sir_trajectory
