"""Public-health interventions and their effect on model coefficients.

Interventions form a closed tagged union keyed by ``kind``:

- ``quarantine``: beta *= (1 - effectiveness) while
  ``start_day <= t < start_day + duration``.
- ``social_distancing``: beta *= (1 - reduction) from ``start_day`` on.
- ``vaccination``: moves ``daily_rate * dt * N`` people per step directly from
  S to R from ``start_day`` on (applied by the runner after each step, not
  through the derivative).
- ``testing``: gamma *= (1 + 0.5 * effectiveness) from ``start_day`` on
  (detection and isolation shortens the effective infectious period).
- ``treatment``: gamma *= (1 + effectiveness) from ``start_day`` on.

Apart from quarantine, interventions stay on once started. Rate effects stack
multiplicatively; vaccination rates of several campaigns add up.
:func:`evaluate` is the single fold that turns a set of interventions into the
effective coefficients at time ``t``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from typing import Annotated, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# -----------------------------------------------------------------------------
# Effective coefficients
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class EffectiveRates:
    """Model coefficients in force at one instant.

    Attributes:
        beta: Transmission rate (per day).
        gamma: Recovery/removal rate (per day).
        sigma: E->I progression rate (per day); unused by SIR.
        vaccination_rate: Fraction of N moved from S to R per day.
    """

    beta: float
    gamma: float
    sigma: float = 0.0
    vaccination_rate: float = 0.0


# -----------------------------------------------------------------------------
# Intervention variants
# -----------------------------------------------------------------------------


class BaseIntervention(BaseModel):
    """Fields and activation rule shared by every intervention kind.

    Fields validate under their snake_case names and their camelCase aliases
    (``startDay``, ``dailyRate``), so UI payloads parse as given.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    enabled: bool = Field(default=True, description="Disabled entries are ignored")
    start_day: float = Field(default=0.0, ge=0.0, description="Activation day")

    def is_active(self, t: float) -> bool:
        """Return True if the intervention acts at time t."""
        return self.enabled and t >= self.start_day

    def apply(self, rates: EffectiveRates) -> EffectiveRates:
        """Return rates modified by this (active) intervention."""
        raise NotImplementedError

    def describe(self) -> str:
        """Return a one-line human-readable summary."""
        raise NotImplementedError


class Quarantine(BaseIntervention):
    """Temporary strict quarantine reducing transmission."""

    kind: Literal["quarantine"] = "quarantine"
    duration: float = Field(default=60.0, ge=0.0)
    effectiveness: float = Field(default=0.7, ge=0.0, le=1.0)

    def is_active(self, t: float) -> bool:
        """Return True while start_day <= t < start_day + duration."""
        return self.enabled and self.start_day <= t < self.start_day + self.duration

    def apply(self, rates: EffectiveRates) -> EffectiveRates:
        return replace(rates, beta=rates.beta * (1.0 - self.effectiveness))

    def describe(self) -> str:
        return (
            f"Quarantine {self.effectiveness:.0%} effective, days "
            f"{self.start_day:g}-{self.start_day + self.duration:g}"
        )


class SocialDistancing(BaseIntervention):
    """Standing reduction of contacts."""

    kind: Literal["social_distancing"] = "social_distancing"
    reduction: float = Field(default=0.5, ge=0.0, le=1.0)

    def apply(self, rates: EffectiveRates) -> EffectiveRates:
        return replace(rates, beta=rates.beta * (1.0 - self.reduction))

    def describe(self) -> str:
        return (
            f"Social distancing {self.reduction:.0%} contact reduction "
            f"from day {self.start_day:g}"
        )


class Vaccination(BaseIntervention):
    """Vaccination campaign moving susceptibles directly to removed."""

    kind: Literal["vaccination"] = "vaccination"
    daily_rate: float = Field(default=0.005, ge=0.0, le=1.0)

    def apply(self, rates: EffectiveRates) -> EffectiveRates:
        return replace(rates, vaccination_rate=rates.vaccination_rate + self.daily_rate)

    def describe(self) -> str:
        return (
            f"Vaccination {self.daily_rate:.2%} of population per day "
            f"from day {self.start_day:g}"
        )


class Testing(BaseIntervention):
    """Mass testing and isolation, shortening the effective infectious period."""

    kind: Literal["testing"] = "testing"
    effectiveness: float = Field(default=0.6, ge=0.0)

    def apply(self, rates: EffectiveRates) -> EffectiveRates:
        return replace(rates, gamma=rates.gamma * (1.0 + 0.5 * self.effectiveness))

    def describe(self) -> str:
        return (
            f"Testing and isolation {self.effectiveness:.0%} effective "
            f"from day {self.start_day:g}"
        )


class Treatment(BaseIntervention):
    """Improved clinical treatment speeding recovery."""

    kind: Literal["treatment"] = "treatment"
    effectiveness: float = Field(default=0.3, ge=0.0)

    def apply(self, rates: EffectiveRates) -> EffectiveRates:
        return replace(rates, gamma=rates.gamma * (1.0 + self.effectiveness))

    def describe(self) -> str:
        return (
            f"Treatment {self.effectiveness:.0%} faster recovery "
            f"from day {self.start_day:g}"
        )


Intervention: TypeAlias = Annotated[
    Quarantine | SocialDistancing | Vaccination | Testing | Treatment,
    Field(discriminator="kind"),
]

INTERVENTION_KINDS: tuple[str, ...] = (
    "quarantine",
    "social_distancing",
    "vaccination",
    "testing",
    "treatment",
)


# -----------------------------------------------------------------------------
# Scheduler
# -----------------------------------------------------------------------------


def active_interventions(
    t: float,
    interventions: Iterable[BaseIntervention],
) -> list[BaseIntervention]:
    """Return the interventions acting at time t, in input order.

    Args:
        t: Simulation time in days.
        interventions: Intervention variants.

    Returns:
        List of active interventions.
    """
    return [item for item in interventions if item.is_active(t)]


def evaluate(
    t: float,
    base_rates: EffectiveRates,
    interventions: Iterable[BaseIntervention],
) -> EffectiveRates:
    """Fold every active intervention into the base coefficients.

    Pure function of its inputs; safe to call for any t in any order.

    Args:
        t: Simulation time in days.
        base_rates: Coefficients without interventions. Its vaccination_rate
            is taken as a baseline rate and campaigns add to it.
        interventions: Intervention variants.

    Returns:
        Effective coefficients at t.
    """
    rates = base_rates
    for item in active_interventions(t, interventions):
        rates = item.apply(rates)
    return rates
