"""Scenario generators: parameter variants derived from a base config.

All generators return new :class:`~epi_engine.config.SimulationConfig`
instances (the base is never mutated), ready for
:func:`epi_engine.runner.run_batch`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from epi_engine.config import SimulationConfig

SENSITIVITY_FACTORS: Final[tuple[float, ...]] = (0.8, 0.9, 1.0, 1.1, 1.2)


@dataclass(frozen=True, slots=True)
class NamedScenario:
    """A labelled config variant.

    Attributes:
        name: Short label.
        description: What the variant represents.
        config: The derived config.
        probability: Subjective likelihood (None where not applicable).
    """

    name: str
    description: str
    config: SimulationConfig
    probability: float | None = None


# (name, description, beta factor, gamma factor, probability)
_PROBABILISTIC: Final[tuple[tuple[str, str, float, float, float], ...]] = (
    ("best", "highly effective interventions, high adherence", 0.6, 1.2, 0.15),
    ("expected", "moderately effective interventions", 0.8, 1.0, 0.50),
    ("worst", "low adherence, more transmissible variant", 1.3, 0.9, 0.25),
    ("critical", "collapse of interventions, high transmissibility", 1.5, 0.85, 0.10),
)

# (name, description, sigma)
_INCUBATION: Final[tuple[tuple[str, str, float], ...]] = (
    ("short", "incubation period of 2-3 days (e.g. influenza)", 0.4),
    ("medium", "incubation period of 5-6 days (e.g. COVID-19)", 0.18),
    ("long", "incubation period of 10-14 days", 0.08),
)


def probabilistic_scenarios(config: SimulationConfig) -> list[NamedScenario]:
    """Best / expected / worst / critical variants of a config.

    The probabilities sum to one.

    Args:
        config: Base config.

    Returns:
        Four scenarios with scaled beta and gamma.
    """
    return [
        NamedScenario(
            name=name,
            description=description,
            config=config.with_rates(
                beta=config.beta * beta_factor,
                gamma=config.gamma * gamma_factor,
            ),
            probability=probability,
        )
        for name, description, beta_factor, gamma_factor, probability in _PROBABILISTIC
    ]


def incubation_scenarios(config: SimulationConfig) -> list[NamedScenario]:
    """SEIR variants with short, medium and long incubation periods.

    Args:
        config: Base config; the variants are always SEIR.

    Returns:
        Three scenarios with sigma 0.4, 0.18 and 0.08.
    """
    return [
        NamedScenario(
            name=name,
            description=description,
            config=config.model_copy(update={"model": "SEIR", "sigma": sigma}),
        )
        for name, description, sigma in _INCUBATION
    ]


# -----------------------------------------------------------------------------
# Sensitivity
# -----------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SensitivityRow:
    """One row of the sensitivity table.

    Attributes:
        factor: Multiplier applied to the varied parameter.
        value: Varied parameter value.
        r0: Resulting beta / gamma.
        infectious_period: Resulting 1 / gamma in days.
    """

    factor: float
    value: float
    r0: float
    infectious_period: float


@dataclass(frozen=True, slots=True)
class SensitivityTable:
    """R0 response to +/-20% changes in beta and gamma.

    Attributes:
        beta_variations: Rows varying beta.
        gamma_variations: Rows varying gamma.
        beta_threshold: Largest beta keeping R0 <= 1 at the base gamma.
        gamma_threshold: Smallest gamma keeping R0 <= 1 at the base beta.
    """

    beta_variations: tuple[SensitivityRow, ...]
    gamma_variations: tuple[SensitivityRow, ...]
    beta_threshold: float
    gamma_threshold: float


def _ratio(num: float, den: float) -> float:
    return num / den if den > 0.0 else float("inf")


def sensitivity_analysis(
    beta: float,
    gamma: float,
    factors: tuple[float, ...] = SENSITIVITY_FACTORS,
) -> SensitivityTable:
    """Tabulate R0 and infectious period under scaled beta and gamma.

    Args:
        beta: Base transmission rate.
        gamma: Base recovery rate.
        factors: Multipliers to apply.

    Returns:
        SensitivityTable.
    """
    beta_rows = tuple(
        SensitivityRow(
            factor=f,
            value=beta * f,
            r0=_ratio(beta * f, gamma),
            infectious_period=_ratio(1.0, gamma),
        )
        for f in factors
    )
    gamma_rows = tuple(
        SensitivityRow(
            factor=f,
            value=gamma * f,
            r0=_ratio(beta, gamma * f),
            infectious_period=_ratio(1.0, gamma * f),
        )
        for f in factors
    )
    return SensitivityTable(
        beta_variations=beta_rows,
        gamma_variations=gamma_rows,
        beta_threshold=gamma,
        gamma_threshold=beta,
    )
