"""Side-by-side comparison of scenario outcomes.

- :func:`compare_to_baseline` quantifies what an intervention scenario buys
  relative to a do-nothing baseline and gives a viability verdict.
- :func:`rank_scenarios` orders two or more scenarios by a scalar cost score
  ``total_infected * w1 + peak_icu * w2`` and names the recommended (lowest
  score, earliest on ties) and worst (highest score) scenario.
- :func:`compare_models` contrasts an SIR and an SEIR run of the same
  outbreak.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Literal

from epi_engine.metrics import find_peak, total_infected

if TYPE_CHECKING:
    from epi_engine.metrics import ScenarioMetrics
    from epi_engine.types import Trajectory

DEFAULT_WEIGHTS: Final[tuple[float, float]] = (1000.0, 5000.0)

_TOO_FEW_SCENARIOS_MSG = "at least 2 scenarios are required to compare, got {n}"
_BAD_WEIGHTS_MSG = "weights must be a pair of non-negative numbers, got {weights!r}"


def _percent(part: float, whole: float) -> float:
    return part / whole * 100.0 if whole > 0.0 else 0.0


# =============================================================================
# Baseline vs. intervention
# =============================================================================


@dataclass(frozen=True, slots=True)
class InterventionEffect:
    """Effect of an intervention scenario against its baseline.

    Attributes:
        peak_reduction: Baseline peak minus intervention peak.
        peak_reduction_pct: ``peak_reduction`` as a percentage of the baseline
            peak.
        peak_delay_days: Shift of the peak day (positive when delayed).
        cases_averted: Baseline total infected minus intervention total.
        cases_averted_pct: ``cases_averted`` as a percentage of the baseline.
        icu_occupancy_delta: Intervention minus baseline peak ICU occupancy,
            in percentage points.
        verdict: "viable" if the intervention keeps peak ICU occupancy at or
            below 100%, otherwise "insufficient".
    """

    peak_reduction: float
    peak_reduction_pct: float
    peak_delay_days: float
    cases_averted: float
    cases_averted_pct: float
    icu_occupancy_delta: float
    verdict: Literal["viable", "insufficient"]

    @property
    def is_viable(self) -> bool:
        """True when the verdict is "viable"."""
        return self.verdict == "viable"


def compare_to_baseline(
    baseline: ScenarioMetrics,
    intervention: ScenarioMetrics,
) -> InterventionEffect:
    """Quantify an intervention scenario against a baseline.

    Args:
        baseline: Metrics of the scenario without intervention.
        intervention: Metrics of the scenario with intervention.

    Returns:
        InterventionEffect.
    """
    peak_reduction = baseline.peak.value - intervention.peak.value
    averted = baseline.total_infected - intervention.total_infected
    icu_after = intervention.demand.icu_occupancy
    return InterventionEffect(
        peak_reduction=peak_reduction,
        peak_reduction_pct=_percent(peak_reduction, baseline.peak.value),
        peak_delay_days=intervention.peak.day - baseline.peak.day,
        cases_averted=averted,
        cases_averted_pct=_percent(averted, baseline.total_infected),
        icu_occupancy_delta=icu_after - baseline.demand.icu_occupancy,
        verdict="viable" if icu_after <= 100.0 else "insufficient",
    )


# =============================================================================
# Ranking
# =============================================================================


@dataclass(frozen=True, slots=True)
class ScenarioScore:
    """Cost-score entry of one ranked scenario."""

    name: str
    peak_infected: float
    total_infected: float
    peak_icu: float
    exceeds_capacity: bool
    cost_score: float


@dataclass(frozen=True, slots=True)
class ScenarioRanking:
    """Outcome of :func:`rank_scenarios`.

    Attributes:
        scores: One entry per scenario, in input order.
        recommended: Name of the lowest-score scenario.
        worst: Name of the highest-score scenario.
        recommendations: Human-readable guidance.
    """

    scores: tuple[ScenarioScore, ...]
    recommended: str
    worst: str
    recommendations: tuple[str, ...]

    def score_of(self, name: str) -> ScenarioScore:
        """Return the entry of a named scenario.

        Raises:
            KeyError: If no scenario has that name.
        """
        for entry in self.scores:
            if entry.name == name:
                return entry
        raise KeyError(name)


def rank_scenarios(
    scenarios: Mapping[str, ScenarioMetrics] | Sequence[tuple[str, ScenarioMetrics]],
    *,
    weights: tuple[float, float] = DEFAULT_WEIGHTS,
) -> ScenarioRanking:
    """Rank named scenarios by cost score.

    Args:
        scenarios: Named metrics, as a mapping or a sequence of pairs. Order
            decides ties.
        weights: ``(w1, w2)`` applied to total infected and peak ICU demand.

    Raises:
        ValueError: If fewer than two scenarios are given, or weights are
            malformed.

    Returns:
        ScenarioRanking.
    """
    items = list(scenarios.items()) if isinstance(scenarios, Mapping) else list(scenarios)
    if len(items) < 2:
        raise ValueError(_TOO_FEW_SCENARIOS_MSG.format(n=len(items)))
    if len(weights) != 2 or any(w < 0.0 for w in weights):
        raise ValueError(_BAD_WEIGHTS_MSG.format(weights=weights))
    w_infected, w_icu = weights

    scores = tuple(
        ScenarioScore(
            name=name,
            peak_infected=metrics.peak.value,
            total_infected=metrics.total_infected,
            peak_icu=metrics.demand.peak_icu,
            exceeds_capacity=metrics.demand.icu_exceeded,
            cost_score=metrics.total_infected * w_infected
            + metrics.demand.peak_icu * w_icu,
        )
        for name, metrics in items
    )

    # min/max return the first extreme, so ties go to the earliest scenario.
    best = min(scores, key=lambda entry: entry.cost_score)
    worst = max(scores, key=lambda entry: entry.cost_score)

    peak_cut = _percent(worst.peak_infected - best.peak_infected, worst.peak_infected)
    recommendations = [
        f"optimal scenario: {best.name}",
        f"peak reduction vs. worst: {peak_cut:.0f}%",
        f"cases averted vs. worst: {worst.total_infected - best.total_infected:,.0f}",
    ]
    if best.exceeds_capacity:
        recommendations.append(
            "WARNING: even the best scenario exceeds ICU capacity"
        )
        recommendations.append("ACTION: expanding hospital capacity is critical")

    return ScenarioRanking(
        scores=scores,
        recommended=best.name,
        worst=worst.name,
        recommendations=tuple(recommendations),
    )


# =============================================================================
# SIR vs. SEIR
# =============================================================================


@dataclass(frozen=True, slots=True)
class ModelComparison:
    """Differences of an SEIR run relative to an SIR run (SEIR minus SIR).

    Attributes:
        peak_difference: Peak I difference.
        peak_difference_pct: Peak difference relative to the SIR peak.
        peak_day_difference: Peak-day difference (positive: SEIR peaks later).
        total_infected_difference: Final R difference.
        total_infected_difference_pct: Relative to the SIR total.
        summary: Qualitative reading.
    """

    peak_difference: float
    peak_difference_pct: float
    peak_day_difference: float
    total_infected_difference: float
    total_infected_difference_pct: float
    summary: str


def compare_models(sir: Trajectory, seir: Trajectory) -> ModelComparison:
    """Compare an SEIR run to an SIR run of the same outbreak.

    Args:
        sir: SIR trajectory.
        seir: SEIR trajectory.

    Returns:
        ModelComparison.
    """
    sir_peak = find_peak(sir)
    seir_peak = find_peak(seir)
    sir_total = total_infected(sir)
    seir_total = total_infected(seir)

    if seir_peak.value < sir_peak.value:
        summary = "SEIR suggests a more contained epidemic due to the incubation period"
    else:
        summary = "both models suggest a similar epidemic"

    return ModelComparison(
        peak_difference=seir_peak.value - sir_peak.value,
        peak_difference_pct=_percent(seir_peak.value - sir_peak.value, sir_peak.value),
        peak_day_difference=seir_peak.day - sir_peak.day,
        total_infected_difference=seir_total - sir_total,
        total_infected_difference_pct=_percent(seir_total - sir_total, sir_total),
        summary=summary,
    )
