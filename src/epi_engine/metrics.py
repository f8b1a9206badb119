"""Decision-relevant indicators derived from a completed trajectory.

Every function is pure: it reads a :class:`~epi_engine.types.Trajectory` (and,
where needed, external capacity data) and returns plain values or frozen
records. :func:`compute_metrics` bundles all of them into a
:class:`ScenarioMetrics` record.

Conventions:
    - Demand series are ``ratio * I(t)`` without rounding.
    - Durations such as saturation days are measured in days, i.e. the number
      of samples above capacity times the sample spacing.
    - Person-day totals are trapezoid integrals over the time axis.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Final, Literal

import numpy as np
from scipy import stats
from scipy.integrate import trapezoid

from epi_engine.alerts import AlertReport, evaluate_alerts
from epi_engine.config import ClinicalRates, CostModel
from epi_engine.types import Float64Array, Trajectory, as_float64_1d

if TYPE_CHECKING:
    from epi_engine.config import HealthCapacity
    from epi_engine.runner import ScenarioResult

LN2: Final[float] = math.log(2.0)

# Doubling-time search
_DIRECT_SEARCH_FRACTION: Final[float] = 0.2
_DOUBLING_NOISE_FLOOR: Final[float] = 10.0
_REGRESSION_MAX_POINTS: Final[int] = 20
_REGRESSION_FRACTION: Final[float] = 0.15

# Growth indicators
_INDICATOR_WINDOW_DAYS: Final[float] = 7.0
_GROWTH_CRITICAL: Final[float] = 0.15
_GROWTH_HIGH: Final[float] = 0.08
_GROWTH_MODERATE: Final[float] = 0.03
_ACCELERATION_HIGH: Final[float] = 0.05

_CAPACITY_POSITIVE_MSG = "{name} capacity must be > 0, got {value!r}"


# =============================================================================
# Basic epidemic quantities
# =============================================================================


@dataclass(frozen=True, slots=True)
class Peak:
    """Location and size of the infectious peak.

    Attributes:
        index: Sample index of the first maximum.
        day: Time of the peak.
        value: Peak infectious count.
    """

    index: int
    day: float
    value: float


def find_peak(trajectory: Trajectory) -> Peak:
    """Return the first sample at which I is maximal.

    Args:
        trajectory: Completed trajectory.

    Returns:
        Peak record.
    """
    idx = int(np.argmax(trajectory.I))
    return Peak(
        index=idx,
        day=float(trajectory.time[idx]),
        value=float(trajectory.I[idx]),
    )


def total_infected(trajectory: Trajectory) -> float:
    """Final size of the removed compartment, R at the last sample.

    R includes people moved there by vaccination, so campaigns raise this
    figure even though they avert infections.
    """
    return float(trajectory.R[-1])


def attack_rate(trajectory: Trajectory, population: float | None = None) -> float:
    """Fraction of the population removed by the end of the run.

    Like :func:`total_infected`, this counts vaccinated people in R.

    Args:
        trajectory: Completed trajectory.
        population: Population to divide by; defaults to the trajectory's N.

    Returns:
        ``R[-1] / population`` as a fraction in [0, 1].
    """
    pop = trajectory.population if population is None else float(population)
    if pop <= 0.0:
        return 0.0
    return total_infected(trajectory) / pop


def basic_reproduction_number(beta: float, gamma: float) -> float:
    """R0 = beta / gamma for both SIR and SEIR.

    The incubation period of SEIR changes the time course, not the threshold.

    Args:
        beta: Transmission rate.
        gamma: Recovery rate.

    Returns:
        beta / gamma (inf when gamma == 0).
    """
    if gamma <= 0.0:
        return math.inf
    return beta / gamma


def effective_reproduction_number(trajectory: Trajectory, r0: float) -> Float64Array:
    """R_eff(t) = R0 * S(t) / N, elementwise.

    Args:
        trajectory: Completed trajectory.
        r0: Basic reproduction number.

    Returns:
        Series of the same length as the trajectory.
    """
    if trajectory.population <= 0.0:
        return np.zeros_like(trajectory.S)
    return r0 * trajectory.S / trajectory.population


def extinction_day(trajectory: Trajectory, threshold: float = 1.0) -> float | None:
    """First time after the peak at which I drops below threshold.

    Args:
        trajectory: Completed trajectory.
        threshold: Infectious count regarded as extinct.

    Returns:
        Time in days, or None if never reached within the horizon.
    """
    peak = find_peak(trajectory)
    after = np.nonzero(trajectory.I[peak.index + 1 :] < threshold)[0]
    if after.size == 0:
        return None
    return float(trajectory.time[peak.index + 1 + int(after[0])])


def infected_person_days(trajectory: Trajectory) -> float:
    """Total disease burden: integral of I over time (person-days)."""
    return float(trapezoid(trajectory.I, trajectory.time))


# =============================================================================
# Growth rate / doubling time
# =============================================================================


def growth_rate(
    infected: object,
    time: object,
    *,
    window: int | None = None,
) -> float:
    """Exponential growth rate from an OLS fit of ln(I) against t.

    Only strictly positive samples enter the fit.

    Args:
        infected: Infectious series.
        time: Matching sample times.
        window: Use only the first ``window`` samples (all if None).

    Returns:
        Slope r of ln(I) ~ a + r t, or NaN if fewer than two usable samples.
    """
    i_arr = as_float64_1d(infected, name="infected")
    t_arr = as_float64_1d(time, name="time")
    if window is not None:
        i_arr = i_arr[:window]
        t_arr = t_arr[:window]
    mask = i_arr > 0.0
    if np.count_nonzero(mask) < 2:
        return math.nan
    t_fit = t_arr[mask]
    if np.ptp(t_fit) == 0.0:
        return math.nan
    fit = stats.linregress(t_fit, np.log(i_arr[mask]))
    return float(fit.slope)


def regression_window(n_points: int) -> int:
    """Number of leading samples used by the doubling-time regression."""
    return min(_REGRESSION_MAX_POINTS, int(math.floor(n_points * _REGRESSION_FRACTION)))


def doubling_time(
    infected: object,
    time: object,
    *,
    method: Literal["auto", "direct", "regression"] = "auto",
) -> float | None:
    """Time for the infectious count to double during early growth.

    ``direct`` looks, within the first 20% of samples, for the first sample
    with ``I >= 2 * I[0]`` and ``I > 10`` (noise floor). ``regression`` fits
    ln(I) over the first ``min(20, 15%)`` samples and returns ``ln 2 / r``.
    ``auto`` tries direct first and falls back to regression.

    Args:
        infected: Infectious series.
        time: Matching sample times.
        method: Estimation method.

    Returns:
        Doubling time in days, or None if no positive growth is detected.
    """
    i_arr = as_float64_1d(infected, name="infected")
    t_arr = as_float64_1d(time, name="time")
    n_points = int(i_arr.size)
    if n_points < 2:
        return None

    if method in {"auto", "direct"}:
        n_search = int(math.floor(n_points * _DIRECT_SEARCH_FRACTION))
        head = i_arr[1:n_search]
        hits = np.nonzero((head >= 2.0 * i_arr[0]) & (head > _DOUBLING_NOISE_FLOOR))[0]
        if hits.size > 0:
            idx = 1 + int(hits[0])
            return float(t_arr[idx] - t_arr[0])
        if method == "direct":
            return None

    window = max(2, regression_window(n_points))
    rate = growth_rate(i_arr, t_arr, window=window)
    if math.isnan(rate) or rate <= 0.0:
        return None
    return LN2 / rate


class GrowthRisk(str, Enum):
    """Qualitative band of the recent growth rate."""

    LOW = "LOW"
    MODERATE = "MODERATE"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True, slots=True)
class GrowthIndicators:
    """Recent-growth indicators over the last week of the trajectory.

    Attributes:
        growth_rate_7d: Fitted daily growth rate over the last 7 days.
        acceleration: Growth rate of the second half-week minus the first.
        doubling_time: Early-phase doubling time (None if not growing).
        risk: Qualitative band.
        warnings: Human-readable findings.
    """

    growth_rate_7d: float
    acceleration: float
    doubling_time: float | None
    risk: GrowthRisk
    warnings: tuple[str, ...]


def _samples_per_span(time: Float64Array, days: float) -> int:
    if time.size < 2:
        return 1
    spacing = float(np.median(np.diff(time)))
    return max(2, int(round(days / spacing)))


def growth_indicators(trajectory: Trajectory) -> GrowthIndicators:
    """Classify the growth of I over the last seven days of the run.

    Args:
        trajectory: Completed trajectory.

    Returns:
        GrowthIndicators.
    """
    window = _samples_per_span(trajectory.time, _INDICATOR_WINDOW_DAYS)
    recent_i = trajectory.I[-window:]
    recent_t = trajectory.time[-window:]
    rate = growth_rate(recent_i, recent_t)

    mid = max(1, window // 2)
    first = growth_rate(recent_i[:mid], recent_t[:mid])
    second = growth_rate(recent_i[mid:], recent_t[mid:])
    acceleration = second - first

    findings: list[str] = []
    risk = GrowthRisk.LOW
    if rate > _GROWTH_CRITICAL:
        findings.append("rapid exponential growth detected (>15% per day)")
        risk = GrowthRisk.CRITICAL
    elif rate > _GROWTH_HIGH:
        findings.append("moderate exponential growth (8-15% per day)")
        risk = GrowthRisk.HIGH
    elif rate > _GROWTH_MODERATE:
        findings.append("sustained growth (3-8% per day)")
        risk = GrowthRisk.MODERATE

    if acceleration > _ACCELERATION_HIGH:
        findings.append("case growth is accelerating")
        if risk is GrowthRisk.MODERATE:
            risk = GrowthRisk.HIGH

    return GrowthIndicators(
        growth_rate_7d=rate,
        acceleration=acceleration,
        doubling_time=doubling_time(trajectory.I, trajectory.time),
        risk=risk,
        warnings=tuple(findings),
    )


# =============================================================================
# Health-system demand
# =============================================================================


@dataclass(frozen=True, slots=True)
class HospitalDemand:
    """Care demand implied by the infectious series.

    Attributes:
        hospital: Hospital-bed demand series.
        icu: ICU-bed demand series.
        ventilator: Ventilator demand series.
        peak_hospital: Maximum of ``hospital``.
        peak_icu: Maximum of ``icu``.
        peak_ventilator: Maximum of ``ventilator``.
        hospital_occupancy: Peak hospital demand / total beds in percent
            (None when total beds are unknown).
        icu_occupancy: Peak ICU demand / ICU beds in percent.
        ventilator_occupancy: Peak ventilator demand / ventilators in percent.
        hospital_saturation_days: Days with hospital demand above total beds.
        icu_saturation_days: Days with ICU demand above ICU beds.
        ventilator_saturation_days: Days with ventilator demand above supply.
        hospital_days: Hospital person-days.
        icu_days: ICU person-days.
        mean_daily_icu: Mean ICU demand over the run.
    """

    hospital: Float64Array
    icu: Float64Array
    ventilator: Float64Array
    peak_hospital: float
    peak_icu: float
    peak_ventilator: float
    hospital_occupancy: float | None
    icu_occupancy: float
    ventilator_occupancy: float
    hospital_saturation_days: float
    icu_saturation_days: float
    ventilator_saturation_days: float
    hospital_days: float
    icu_days: float
    mean_daily_icu: float

    @property
    def icu_exceeded(self) -> bool:
        """True if ICU demand exceeds capacity at any sample."""
        return self.icu_saturation_days > 0.0


def saturation_days(demand: object, capacity: float, time: object) -> float:
    """Days during which a demand series exceeds capacity.

    Args:
        demand: Demand series.
        capacity: Available units.
        time: Matching sample times.

    Returns:
        Number of samples above capacity times the sample spacing.
    """
    d_arr = as_float64_1d(demand, name="demand")
    t_arr = as_float64_1d(time, name="time")
    spacing = float(np.median(np.diff(t_arr))) if t_arr.size > 1 else 1.0
    return float(np.count_nonzero(d_arr > capacity)) * spacing


def _require_positive(name: str, value: float) -> None:
    if not value > 0.0:
        raise ValueError(_CAPACITY_POSITIVE_MSG.format(name=name, value=value))


def hospital_demand(
    trajectory: Trajectory,
    capacity: HealthCapacity,
    rates: ClinicalRates | None = None,
) -> HospitalDemand:
    """Hospital, ICU and ventilator demand with occupancy and saturation.

    Args:
        trajectory: Completed trajectory.
        capacity: Health-system capacity.
        rates: Clinical ratios (reference defaults if None).

    Raises:
        ValueError: If ICU beds or ventilators are not positive.

    Returns:
        HospitalDemand record.
    """
    clinical = rates or ClinicalRates()
    _require_positive("icu_beds", capacity.icu_beds)
    _require_positive("ventilators", capacity.ventilators)

    time = trajectory.time
    hospital = clinical.hospitalization * trajectory.I
    icu = clinical.icu * trajectory.I
    ventilator = clinical.ventilator * trajectory.I

    peak_hospital = float(np.max(hospital))
    peak_icu = float(np.max(icu))
    peak_ventilator = float(np.max(ventilator))

    hospital_occupancy: float | None = None
    hospital_saturation = 0.0
    if capacity.total_beds > 0.0:
        hospital_occupancy = peak_hospital / capacity.total_beds * 100.0
        hospital_saturation = saturation_days(hospital, capacity.total_beds, time)

    return HospitalDemand(
        hospital=hospital,
        icu=icu,
        ventilator=ventilator,
        peak_hospital=peak_hospital,
        peak_icu=peak_icu,
        peak_ventilator=peak_ventilator,
        hospital_occupancy=hospital_occupancy,
        icu_occupancy=peak_icu / capacity.icu_beds * 100.0,
        ventilator_occupancy=peak_ventilator / capacity.ventilators * 100.0,
        hospital_saturation_days=hospital_saturation,
        icu_saturation_days=saturation_days(icu, capacity.icu_beds, time),
        ventilator_saturation_days=saturation_days(
            ventilator, capacity.ventilators, time
        ),
        hospital_days=float(trapezoid(hospital, time)),
        icu_days=float(trapezoid(icu, time)),
        mean_daily_icu=float(np.mean(icu)),
    )


# =============================================================================
# Mortality / economics
# =============================================================================


@dataclass(frozen=True, slots=True)
class MortalityEstimate:
    """Capacity-dependent mortality estimate.

    Attributes:
        estimated_deaths: Deaths at the effective fatality ratio.
        deaths_without_collapse: Deaths had ICU capacity sufficed.
        additional_deaths: Excess deaths attributable to denied care.
        fatality_ratio: Effective infection fatality ratio used.
        hospital_collapse: True if peak ICU demand exceeded ICU beds.
    """

    estimated_deaths: float
    deaths_without_collapse: float
    additional_deaths: float
    fatality_ratio: float
    hospital_collapse: bool


def mortality_estimate(
    trajectory: Trajectory,
    capacity: HealthCapacity,
    rates: ClinicalRates | None = None,
) -> MortalityEstimate:
    """Deaths among all infected, with a higher IFR once ICU capacity breaks.

    Args:
        trajectory: Completed trajectory.
        capacity: Health-system capacity.
        rates: Clinical ratios (reference defaults if None).

    Returns:
        MortalityEstimate.
    """
    clinical = rates or ClinicalRates()
    infected_total = total_infected(trajectory)
    peak_icu = float(np.max(clinical.icu * trajectory.I))
    collapse = peak_icu > capacity.icu_beds

    ifr = clinical.collapsed_ifr if collapse else clinical.base_ifr
    deaths = infected_total * ifr
    baseline = infected_total * clinical.base_ifr
    return MortalityEstimate(
        estimated_deaths=deaths,
        deaths_without_collapse=baseline,
        additional_deaths=max(0.0, deaths - baseline),
        fatality_ratio=ifr,
        hospital_collapse=collapse,
    )


@dataclass(frozen=True, slots=True)
class EconomicImpact:
    """Direct and indirect cost estimate of one scenario.

    Attributes:
        hospitalization_costs: Admissions times cost per hospitalization.
        icu_costs: ICU person-days times cost per ICU day.
        mortality_costs: Deaths times cost per death.
        workforce_loss: Productivity lost by infected workers.
        total_cost: Sum of the four components.
        cost_per_capita: total_cost / population.
        gdp_fraction: total_cost / (population * GDP per capita).
    """

    hospitalization_costs: float
    icu_costs: float
    mortality_costs: float
    workforce_loss: float
    total_cost: float
    cost_per_capita: float
    gdp_fraction: float


def economic_impact(
    demand: HospitalDemand,
    mortality: MortalityEstimate,
    infected: float,
    population: float,
    *,
    rates: ClinicalRates | None = None,
    costs: CostModel | None = None,
) -> EconomicImpact:
    """Weighted sum of care, mortality and productivity costs.

    Args:
        demand: Hospital demand of the scenario.
        mortality: Mortality estimate of the scenario.
        infected: Total number infected over the run.
        population: Population of the region.
        rates: Clinical ratios (reference defaults if None).
        costs: Unit costs (reference defaults if None).

    Returns:
        EconomicImpact.
    """
    clinical = rates or ClinicalRates()
    unit = costs or CostModel()

    admissions = clinical.hospitalization * infected
    hospitalization_costs = admissions * unit.per_hospitalization
    icu_costs = demand.icu_days * unit.per_icu_day
    mortality_costs = mortality.estimated_deaths * unit.per_death
    workforce_loss = (
        infected * unit.workforce_share * unit.missed_workdays * unit.daily_wage
    )
    total = hospitalization_costs + icu_costs + mortality_costs + workforce_loss

    per_capita = total / population if population > 0.0 else 0.0
    gdp_fraction = per_capita / unit.gdp_per_capita
    return EconomicImpact(
        hospitalization_costs=hospitalization_costs,
        icu_costs=icu_costs,
        mortality_costs=mortality_costs,
        workforce_loss=workforce_loss,
        total_cost=total,
        cost_per_capita=per_capita,
        gdp_fraction=gdp_fraction,
    )


# =============================================================================
# Bundle
# =============================================================================


@dataclass(frozen=True, slots=True)
class ScenarioMetrics:
    """All indicators of one scenario.

    Attributes:
        peak: Infectious peak.
        attack_rate: Fraction of the population infected.
        total_infected: Final removed count.
        r0: Basic reproduction number.
        r_effective: R_eff(t) series.
        doubling_time: Early doubling time (None if not growing).
        growth_rate: Early-phase fitted growth rate.
        extinction_day: First day after the peak with I < 1 (None if never).
        infected_person_days: Integral of I over time.
        demand: Hospital/ICU/ventilator demand.
        mortality: Mortality estimate.
        economics: Economic impact.
        growth: Recent-growth indicators.
        alerts: Early-warning alert report.
    """

    peak: Peak
    attack_rate: float
    total_infected: float
    r0: float
    r_effective: Float64Array
    doubling_time: float | None
    growth_rate: float
    extinction_day: float | None
    infected_person_days: float
    demand: HospitalDemand
    mortality: MortalityEstimate
    economics: EconomicImpact
    growth: GrowthIndicators
    alerts: AlertReport


def compute_metrics(
    result: ScenarioResult,
    capacity: HealthCapacity,
    *,
    population: float | None = None,
    rates: ClinicalRates | None = None,
    costs: CostModel | None = None,
) -> ScenarioMetrics:
    """Compute every indicator for a completed scenario.

    Args:
        result: Output of :func:`epi_engine.runner.run_scenario`.
        capacity: Health-system capacity.
        population: Population for rates and per-capita figures; defaults to
            the conserved N of the run.
        rates: Clinical ratios (reference defaults if None).
        costs: Unit costs (reference defaults if None).

    Returns:
        ScenarioMetrics.
    """
    trajectory = result.trajectory
    pop = trajectory.population if population is None else float(population)
    clinical = rates or ClinicalRates()
    r0 = basic_reproduction_number(result.config.beta, result.config.gamma)

    infected = total_infected(trajectory)
    demand = hospital_demand(trajectory, capacity, clinical)
    mortality = mortality_estimate(trajectory, capacity, clinical)
    window = max(2, regression_window(trajectory.n_points))

    return ScenarioMetrics(
        peak=find_peak(trajectory),
        attack_rate=attack_rate(trajectory, pop),
        total_infected=infected,
        r0=r0,
        r_effective=effective_reproduction_number(trajectory, r0),
        doubling_time=doubling_time(trajectory.I, trajectory.time),
        growth_rate=growth_rate(trajectory.I, trajectory.time, window=window),
        extinction_day=extinction_day(trajectory),
        infected_person_days=infected_person_days(trajectory),
        demand=demand,
        mortality=mortality,
        economics=economic_impact(
            demand, mortality, infected, pop, rates=clinical, costs=costs
        ),
        growth=growth_indicators(trajectory),
        alerts=evaluate_alerts(trajectory, capacity, rates=clinical, population=pop),
    )
