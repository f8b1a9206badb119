"""Right-hand sides of the SIR and SEIR models.

The state vector follows :data:`epi_engine.types.COMPARTMENTS`:
``(S, I, R)`` for SIR and ``(S, E, I, R)`` for SEIR. The force of infection
uses the conserved population N of the run, not the instantaneous total.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from epi_engine.core_solver import RHSFunction
    from epi_engine.interventions import EffectiveRates
    from epi_engine.types import FloatArray

_UNKNOWN_MODEL_MSG = "Unknown model: {model}"


def sir_rhs(
    t: float,  # noqa: ARG001 (coefficients are frozen per step by the caller)
    state: FloatArray,
    *,
    beta: float,
    gamma: float,
    population: float,
) -> FloatArray:
    """RHS for the SIR model.

    Args:
        t: Current time (unused; included for API compatibility).
        state: State vector (S, I, R).
        beta: Transmission rate.
        gamma: Recovery rate.
        population: Conserved population N.

    Returns:
        (dS/dt, dI/dt, dR/dt).
    """
    s = float(state[0])
    i = float(state[1])

    new_inf = beta * s * i / population if population > 0 else 0.0
    recov = gamma * i

    out = np.empty(3, dtype=np.float64)
    out[0] = -new_inf
    out[1] = new_inf - recov
    out[2] = recov
    return out


def seir_rhs(
    t: float,  # noqa: ARG001 (coefficients are frozen per step by the caller)
    state: FloatArray,
    *,
    beta: float,
    gamma: float,
    sigma: float,
    population: float,
) -> FloatArray:
    """RHS for the SEIR model.

    Args:
        t: Current time (unused; included for API compatibility).
        state: State vector (S, E, I, R).
        beta: Transmission rate.
        gamma: Recovery rate.
        sigma: E->I progression rate.
        population: Conserved population N.

    Returns:
        (dS/dt, dE/dt, dI/dt, dR/dt).
    """
    s = float(state[0])
    e = float(state[1])
    i = float(state[2])

    new_inf = beta * s * i / population if population > 0 else 0.0
    progression = sigma * e
    recov = gamma * i

    out = np.empty(4, dtype=np.float64)
    out[0] = -new_inf
    out[1] = new_inf - progression
    out[2] = progression - recov
    out[3] = recov
    return out


def make_rhs(model: str, rates: EffectiveRates, population: float) -> RHSFunction:
    """Bind the effective coefficients of one step into an RHS function.

    Args:
        model: "SIR" or "SEIR".
        rates: Coefficients in force for the step.
        population: Conserved population N.

    Raises:
        ValueError: If the model is unknown.

    Returns:
        RHS F(t, y).
    """
    if model == "SIR":

        def bound_sir(t: float, y: FloatArray) -> FloatArray:
            return sir_rhs(
                t, y, beta=rates.beta, gamma=rates.gamma, population=population
            )

        return bound_sir

    if model == "SEIR":

        def bound_seir(t: float, y: FloatArray) -> FloatArray:
            return seir_rhs(
                t,
                y,
                beta=rates.beta,
                gamma=rates.gamma,
                sigma=rates.sigma,
                population=population,
            )

        return bound_seir

    raise ValueError(_UNKNOWN_MODEL_MSG.format(model=model))
