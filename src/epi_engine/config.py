"""Configuration models for epi_engine.

This module defines the pydantic-facing configuration objects that make up the
external data contract (simulation inputs, health-system capacity, clinical
ratios and unit costs) and translates them into native solver objects.

Notes:
    - Models are frozen; derive variants with :meth:`SimulationConfig.with_rates`
      or ``model_copy(update=...)`` instead of mutating.
    - Structural constraints (non-negative populations, positive horizon and
      step) are enforced here. Epidemiological plausibility of ``beta`` and
      ``gamma`` is deliberately not: :mod:`epi_engine.validation` reports it as
      advisory errors and warnings.
    - ``interventions`` accepts either a list of tagged entries or a mapping
      ``{kind: {...fields}}``. Kinds and fields may be camelCase
      (``{"socialDistancing": {"startDay": 20}}``).
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator

from epi_engine.core_solver import RunConfig
from epi_engine.interventions import EffectiveRates, Intervention
from epi_engine.types import Float64Array, compartments_for

_KIND_ALIASES: dict[str, str] = {"socialDistancing": "social_distancing"}


def _canonical_kind(entry: object) -> object:
    if isinstance(entry, Mapping) and entry.get("kind") in _KIND_ALIASES:
        return {**entry, "kind": _KIND_ALIASES[entry["kind"]]}
    return entry


class SimulationConfig(BaseModel):
    """Inputs to one simulation run.

    Notes:
        - ``e0`` and ``sigma`` are ignored by the SIR model.
        - The conserved population N is ``s0 + e0 + i0 + r0`` (``e0`` only for
          SEIR).
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    model: Literal["SIR", "SEIR"] = Field(
        default="SIR",
        description="Compartmental model",
    )

    # Initial compartments
    s0: float = Field(default=1_000_000.0, ge=0.0)
    e0: float = Field(default=0.0, ge=0.0)
    i0: float = Field(default=100.0, ge=0.0)
    r0: float = Field(default=0.0, ge=0.0)

    # Base rate constants (per day)
    beta: float = Field(default=0.4, description="Transmission rate")
    gamma: float = Field(default=0.1, description="Recovery rate")
    sigma: float = Field(default=0.2, ge=0.0, description="E->I progression rate")

    # Horizon and integration
    days: float = Field(default=365.0, gt=0.0)
    dt: float = Field(default=0.2, gt=0.0)
    method: Literal["euler", "heun", "rk4"] = Field(default="rk4")
    conservation_tol: float = Field(default=0.01, ge=0.0)

    interventions: tuple[Intervention, ...] = Field(default=())

    @field_validator("interventions", mode="before")
    @classmethod
    def _interventions_from_mapping(cls, value: object) -> object:
        """Accept ``{kind: {...}}`` mappings as well as tagged lists.

        camelCase kinds (``socialDistancing``) are mapped to their tags.

        Returns:
            A list of tagged entries, or the value unchanged.
        """
        if isinstance(value, Mapping):
            out: list[object] = []
            for kind, params in value.items():
                if isinstance(params, Mapping):
                    out.append(_canonical_kind({"kind": kind, **params}))
                else:
                    out.append(params)
            return out
        if isinstance(value, (list, tuple)):
            return [_canonical_kind(entry) for entry in value]
        return value

    # ------------------------------------------------------------------
    # Derived quantities
    # ------------------------------------------------------------------

    @property
    def compartments(self) -> tuple[str, ...]:
        """Compartment names in state-vector order."""
        return compartments_for(self.model)

    @property
    def exposed0(self) -> float:
        """Initial exposed count used by the model (0 for SIR)."""
        return self.e0 if self.model == "SEIR" else 0.0

    @property
    def population(self) -> float:
        """Conserved population N."""
        return self.s0 + self.exposed0 + self.i0 + self.r0

    @property
    def basic_reproduction_number(self) -> float:
        """beta / gamma (inf when gamma == 0)."""
        return self.beta / self.gamma if self.gamma > 0 else float("inf")

    @property
    def n_steps(self) -> int:
        """Number of fixed steps, floor(days / dt)."""
        # The small guard keeps 160 / 0.2 from flooring to 799.
        return int(np.floor(self.days / self.dt + 1e-9))

    @property
    def horizon_is_truncated(self) -> bool:
        """True if days is not an integer multiple of dt."""
        return not np.isclose(self.n_steps * self.dt, self.days)

    @property
    def base_rates(self) -> EffectiveRates:
        """Coefficients before any intervention."""
        return EffectiveRates(beta=self.beta, gamma=self.gamma, sigma=self.sigma)

    def time_grid(self) -> Float64Array:
        """Output times t_k = k * dt, k = 0..n_steps.

        Times are rounded to 12 decimals so step starts land on the day values
        a user types (3 * 0.3 is 0.9, not 0.8999999999999999) and compare
        exactly against intervention start days.

        Returns:
            1D float64 array of length n_steps + 1.
        """
        return np.round(np.arange(self.n_steps + 1, dtype=np.float64) * self.dt, 12)

    def initial_state(self) -> Float64Array:
        """Initial compartment vector in state-vector order.

        Returns:
            1D float64 array.
        """
        values = {"S": self.s0, "E": self.exposed0, "I": self.i0, "R": self.r0}
        return np.array([values[name] for name in self.compartments], dtype=np.float64)

    def with_rates(
        self,
        *,
        beta: float | None = None,
        gamma: float | None = None,
        sigma: float | None = None,
    ) -> SimulationConfig:
        """Return a copy with some base rates replaced.

        Returns:
            New SimulationConfig.
        """
        update: dict[str, float] = {}
        if beta is not None:
            update["beta"] = float(beta)
        if gamma is not None:
            update["gamma"] = float(gamma)
        if sigma is not None:
            update["sigma"] = float(sigma)
        return self.model_copy(update=update)

    def to_run_config(self) -> RunConfig:
        """Convert this config to a native solver RunConfig.

        Returns:
            Fully constructed RunConfig instance.
        """
        return RunConfig(
            method=self.method,
            clamp_negative=True,
            conservation_tol=self.conservation_tol,
        )


class HealthCapacity(BaseModel):
    """Health-system capacity of the modelled region."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    total_beds: float = Field(default=0.0, ge=0.0)
    icu_beds: float = Field(gt=0.0)
    ventilators: float = Field(gt=0.0)
    health_workers: float = Field(default=0.0, ge=0.0)


class ClinicalRates(BaseModel):
    """Fractions of active infections needing care, and fatality ratios."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    hospitalization: float = Field(default=0.15, ge=0.0, le=1.0)
    icu: float = Field(default=0.05, ge=0.0, le=1.0)
    ventilator: float = Field(default=0.025, ge=0.0, le=1.0)
    base_ifr: float = Field(
        default=0.006,
        ge=0.0,
        le=1.0,
        description="Infection fatality ratio while ICU demand fits capacity",
    )
    collapsed_ifr: float = Field(
        default=0.025,
        ge=0.0,
        le=1.0,
        description="Infection fatality ratio once ICU capacity is exceeded",
    )


class CostModel(BaseModel):
    """Unit costs used by the economic-impact estimate (local currency)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    per_hospitalization: float = Field(default=15_000.0, ge=0.0)
    per_icu_day: float = Field(default=3_500.0, ge=0.0)
    per_death: float = Field(default=50_000.0, ge=0.0)
    workforce_share: float = Field(default=0.65, ge=0.0, le=1.0)
    missed_workdays: float = Field(default=14.0, ge=0.0)
    daily_wage: float = Field(default=150.0, ge=0.0)
    gdp_per_capita: float = Field(default=25_000.0, gt=0.0)
