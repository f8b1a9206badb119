"""epi_engine compartmental epidemic simulation and decision-metrics package."""

from __future__ import annotations

from .alerts import (
    Alert,
    AlertLevel,
    AlertReport,
    AlertType,
    classify_attack_rate,
    classify_growth,
    classify_icu_occupancy,
    classify_ventilator_occupancy,
    evaluate_alerts,
    icu_alert_for_series,
)
from .comparison import (
    InterventionEffect,
    ModelComparison,
    ScenarioRanking,
    compare_models,
    compare_to_baseline,
    rank_scenarios,
)
from .config import ClinicalRates, CostModel, HealthCapacity, SimulationConfig
from .core_solver import CoreSolver, RHSFunction, RunConfig, SolverDiagnostics
from .errors import EpiEngineError, InvalidParameterError, TrajectoryShapeError
from .interventions import (
    EffectiveRates,
    Quarantine,
    SocialDistancing,
    Testing,
    Treatment,
    Vaccination,
    active_interventions,
    evaluate,
)
from .metrics import ScenarioMetrics, compute_metrics
from .model_core import ModelCore
from .runner import ScenarioResult, run_batch, run_scenario, simulate
from .scenarios import (
    incubation_scenarios,
    probabilistic_scenarios,
    sensitivity_analysis,
)
from .types import COMPARTMENTS, Trajectory
from .validation import (
    ValidationResult,
    assess_data_quality,
    check_trajectory,
    validate_parameters,
)

__all__ = [
    "COMPARTMENTS",
    "Alert",
    "AlertLevel",
    "AlertReport",
    "AlertType",
    "ClinicalRates",
    "CoreSolver",
    "CostModel",
    "EffectiveRates",
    "EpiEngineError",
    "HealthCapacity",
    "InterventionEffect",
    "InvalidParameterError",
    "ModelComparison",
    "ModelCore",
    "Quarantine",
    "RHSFunction",
    "RunConfig",
    "ScenarioMetrics",
    "ScenarioRanking",
    "ScenarioResult",
    "SimulationConfig",
    "SocialDistancing",
    "SolverDiagnostics",
    "Testing",
    "Trajectory",
    "TrajectoryShapeError",
    "Treatment",
    "Vaccination",
    "ValidationResult",
    "active_interventions",
    "assess_data_quality",
    "check_trajectory",
    "classify_attack_rate",
    "classify_growth",
    "classify_icu_occupancy",
    "classify_ventilator_occupancy",
    "compare_models",
    "compare_to_baseline",
    "compute_metrics",
    "evaluate",
    "evaluate_alerts",
    "icu_alert_for_series",
    "incubation_scenarios",
    "probabilistic_scenarios",
    "rank_scenarios",
    "run_batch",
    "run_scenario",
    "sensitivity_analysis",
    "simulate",
    "validate_parameters",
]

__version__ = "0.1.0"
