"""Early-warning alerts for health-system decision makers.

Alerts are evaluated as of a "current" sample of a trajectory (the last one
by default) and classified by the thresholds below. Each check either returns
one :class:`Alert` or ``None``; :func:`evaluate_alerts` collects them into an
:class:`AlertReport` whose overall level is the most severe alert raised.

Thresholds:
    - Week-over-week growth factor of I: > 2.0 CRITICAL, > 1.5 RED,
      > 1.2 ORANGE.
    - ICU occupancy: > 100% CRITICAL, > 85% RED, > 70% ORANGE,
      > 50% YELLOW.
    - Attack rate: > 50% RED, > 30% ORANGE.
    - Ventilator occupancy: > 90% CRITICAL.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Final

import numpy as np

from epi_engine.config import ClinicalRates
from epi_engine.types import as_float64_1d

if TYPE_CHECKING:
    from epi_engine.config import HealthCapacity
    from epi_engine.types import Trajectory

_WEEK_DAYS: Final[float] = 7.0

_GROWTH_CRITICAL: Final[float] = 2.0
_GROWTH_RED: Final[float] = 1.5
_GROWTH_ORANGE: Final[float] = 1.2

_ICU_CRITICAL: Final[float] = 100.0
_ICU_RED: Final[float] = 85.0
_ICU_ORANGE: Final[float] = 70.0
_ICU_YELLOW: Final[float] = 50.0

_ATTACK_RED: Final[float] = 0.50
_ATTACK_ORANGE: Final[float] = 0.30

_VENTILATOR_CRITICAL: Final[float] = 90.0

_ICU_BEDS_POSITIVE_MSG = "icu_beds must be > 0, got {value!r}"
_NO_SAMPLES_MSG = "trajectory has no samples at or before day {day:g}"


class AlertLevel(IntEnum):
    """Ordered severity: NONE < YELLOW < ORANGE < RED < CRITICAL."""

    NONE = 0
    YELLOW = 1
    ORANGE = 2
    RED = 3
    CRITICAL = 4

    @property
    def priority(self) -> int:
        """Sort key for display; 1 is the most urgent."""
        return len(AlertLevel) - int(self)


class AlertType(str, Enum):
    """Category of an alert."""

    EXPONENTIAL_GROWTH = "exponential growth"
    RAPID_GROWTH = "rapid growth"
    SUSTAINED_GROWTH = "sustained growth"
    HOSPITAL_COLLAPSE = "hospital collapse"
    ICU_SATURATION = "ICU saturation"
    HOSPITAL_PRESSURE = "hospital pressure"
    PREVENTIVE = "preventive alert"
    HIGH_PREVALENCE = "high prevalence"
    SIGNIFICANT_PREVALENCE = "significant prevalence"
    VENTILATOR_CRISIS = "ventilator crisis"


@dataclass(frozen=True, slots=True)
class Alert:
    """One early-warning finding.

    Attributes:
        level: Severity.
        type: Category.
        message: What was observed.
        action: Recommended response.
        priority: Display order (1 is the most urgent).
    """

    level: AlertLevel
    type: AlertType
    message: str
    action: str
    priority: int


def _alert(level: AlertLevel, kind: AlertType, message: str, action: str) -> Alert:
    return Alert(
        level=level,
        type=kind,
        message=message,
        action=action,
        priority=level.priority,
    )


# =============================================================================
# Individual classifiers
# =============================================================================


def classify_growth(growth_factor: float) -> Alert | None:
    """Classify the week-over-week growth factor of active infections.

    Args:
        growth_factor: I(now) / I(one week earlier).

    Returns:
        Alert, or None below the ORANGE threshold (and for NaN).
    """
    if growth_factor > _GROWTH_CRITICAL:
        return _alert(
            AlertLevel.CRITICAL,
            AlertType.EXPONENTIAL_GROWTH,
            f"cases grew {growth_factor:.1f}x in the last week",
            "consider immediate strict measures",
        )
    if growth_factor > _GROWTH_RED:
        return _alert(
            AlertLevel.RED,
            AlertType.RAPID_GROWTH,
            f"cases grew {(growth_factor - 1.0) * 100.0:.0f}% in the last week",
            "strengthen containment measures",
        )
    if growth_factor > _GROWTH_ORANGE:
        return _alert(
            AlertLevel.ORANGE,
            AlertType.SUSTAINED_GROWTH,
            "cases are in sustained growth",
            "monitor closely and prepare interventions",
        )
    return None


def classify_icu_occupancy(
    occupancy: float,
    demand: float | None = None,
    icu_beds: float | None = None,
) -> Alert | None:
    """Classify ICU occupancy.

    Args:
        occupancy: ICU demand / ICU beds, in percent.
        demand: ICU demand, used only in the message.
        icu_beds: ICU beds, used only in the message.

    Returns:
        Alert, or None at or below the YELLOW threshold.
    """
    if demand is not None and icu_beds is not None:
        detail = f" ({demand:,.0f} patients for {icu_beds:,.0f} beds)"
    else:
        detail = ""

    if occupancy > _ICU_CRITICAL:
        return _alert(
            AlertLevel.CRITICAL,
            AlertType.HOSPITAL_COLLAPSE,
            f"ICU demand exceeds capacity by {occupancy - 100.0:.0f}%{detail}",
            "activate contingency plan and field hospitals",
        )
    if occupancy > _ICU_RED:
        return _alert(
            AlertLevel.RED,
            AlertType.ICU_SATURATION,
            f"ICUs at {occupancy:.0f}% of capacity{detail}",
            "prepare additional beds and defer elective procedures",
        )
    if occupancy > _ICU_ORANGE:
        return _alert(
            AlertLevel.ORANGE,
            AlertType.HOSPITAL_PRESSURE,
            f"ICUs at {occupancy:.0f}% of capacity",
            "review staff and supply availability",
        )
    if occupancy > _ICU_YELLOW:
        return _alert(
            AlertLevel.YELLOW,
            AlertType.PREVENTIVE,
            f"ICUs at {occupancy:.0f}% of capacity",
            "monitor the trend daily",
        )
    return None


def classify_attack_rate(rate: float) -> Alert | None:
    """Classify the cumulative attack rate.

    Args:
        rate: Fraction of the population infected so far.

    Returns:
        Alert, or None at or below the ORANGE threshold.
    """
    if rate > _ATTACK_RED:
        return _alert(
            AlertLevel.RED,
            AlertType.HIGH_PREVALENCE,
            f"more than half of the population infected ({rate:.1%})",
            "advanced epidemic: focus on protecting vulnerable groups",
        )
    if rate > _ATTACK_ORANGE:
        return _alert(
            AlertLevel.ORANGE,
            AlertType.SIGNIFICANT_PREVALENCE,
            f"{rate:.1%} of the population infected",
            "strengthen care and follow-up systems",
        )
    return None


def classify_ventilator_occupancy(occupancy: float) -> Alert | None:
    """Classify ventilator occupancy.

    Args:
        occupancy: Ventilator demand / ventilators, in percent.

    Returns:
        CRITICAL alert above 90%, otherwise None.
    """
    if occupancy > _VENTILATOR_CRITICAL:
        return _alert(
            AlertLevel.CRITICAL,
            AlertType.VENTILATOR_CRISIS,
            f"ventilators at {occupancy:.0f}% of capacity",
            "mobilize additional ventilators urgently",
        )
    return None


def icu_alert_for_series(demand: object, icu_beds: float) -> Alert | None:
    """Classify the peak of an ICU-demand series against ICU capacity.

    Args:
        demand: ICU-demand series.
        icu_beds: ICU beds available.

    Raises:
        ValueError: If icu_beds is not positive.

    Returns:
        Alert for the peak occupancy, or None.
    """
    if not icu_beds > 0.0:
        raise ValueError(_ICU_BEDS_POSITIVE_MSG.format(value=icu_beds))
    series = as_float64_1d(demand, name="demand")
    peak = float(np.max(series)) if series.size else 0.0
    return classify_icu_occupancy(peak / icu_beds * 100.0, peak, icu_beds)


# =============================================================================
# Report
# =============================================================================


@dataclass(frozen=True, slots=True)
class AlertReport:
    """All alerts raised for one trajectory.

    Attributes:
        level: Most severe level raised (NONE if no alert).
        alerts: Alerts sorted by priority, most urgent first.
        as_of_day: Time of the sample treated as "now".
        growth_factor: Week-over-week growth factor of I.
        icu_occupancy: ICU occupancy at now, in percent.
        ventilator_occupancy: Ventilator occupancy at now, in percent.
        attack_rate: Cumulative attack rate at now.
        active_infected: I at now.
    """

    level: AlertLevel
    alerts: tuple[Alert, ...]
    as_of_day: float
    growth_factor: float
    icu_occupancy: float
    ventilator_occupancy: float
    attack_rate: float
    active_infected: float

    @property
    def has_critical(self) -> bool:
        """True if any alert is CRITICAL."""
        return self.level is AlertLevel.CRITICAL


def week_over_week_growth(infected: object, time: object) -> float:
    """Ratio of the last sample of I to the sample seven days earlier.

    The earlier index is clamped to the first sample.

    Args:
        infected: Infectious series.
        time: Matching sample times.

    Returns:
        Growth factor; inf if I grew from zero, 1.0 if both ends are zero.
    """
    i_arr = as_float64_1d(infected, name="infected")
    t_arr = as_float64_1d(time, name="time")
    if i_arr.size < 2:
        return 1.0
    spacing = float(np.median(np.diff(t_arr)))
    lag = max(1, int(round(_WEEK_DAYS / spacing)))
    past = float(i_arr[max(0, i_arr.size - 1 - lag)])
    now = float(i_arr[-1])
    if past > 0.0:
        return now / past
    return float("inf") if now > 0.0 else 1.0


def evaluate_alerts(
    trajectory: Trajectory,
    capacity: HealthCapacity,
    *,
    rates: ClinicalRates | None = None,
    population: float | None = None,
    as_of_day: float | None = None,
) -> AlertReport:
    """Raise every applicable alert for a trajectory.

    Args:
        trajectory: Completed trajectory.
        capacity: Health-system capacity.
        rates: Clinical ratios (reference defaults if None).
        population: Population for the attack rate; defaults to the
            trajectory's N.
        as_of_day: Treat the last sample at or before this day as "now";
            defaults to the end of the run.

    Raises:
        ValueError: If no sample lies at or before as_of_day.

    Returns:
        AlertReport.
    """
    clinical = rates or ClinicalRates()
    pop = trajectory.population if population is None else float(population)

    end = trajectory.n_points
    if as_of_day is not None:
        end = int(np.searchsorted(trajectory.time, as_of_day, side="right"))
        if end == 0:
            raise ValueError(_NO_SAMPLES_MSG.format(day=as_of_day))

    time = trajectory.time[:end]
    infected = trajectory.I[:end]
    current = float(infected[-1])

    growth = week_over_week_growth(infected, time)
    icu_demand = clinical.icu * current
    icu_occupancy = icu_demand / capacity.icu_beds * 100.0
    ventilator_occupancy = (
        clinical.ventilator * current / capacity.ventilators * 100.0
    )
    attack = float(trajectory.R[end - 1]) / pop if pop > 0.0 else 0.0

    raised = [
        alert
        for alert in (
            classify_growth(growth),
            classify_icu_occupancy(icu_occupancy, icu_demand, capacity.icu_beds),
            classify_attack_rate(attack),
            classify_ventilator_occupancy(ventilator_occupancy),
        )
        if alert is not None
    ]
    raised.sort(key=lambda alert: alert.priority)
    level = max((alert.level for alert in raised), default=AlertLevel.NONE)

    return AlertReport(
        level=level,
        alerts=tuple(raised),
        as_of_day=float(time[-1]),
        growth_factor=growth,
        icu_occupancy=icu_occupancy,
        ventilator_occupancy=ventilator_occupancy,
        attack_rate=attack,
        active_infected=current,
    )
