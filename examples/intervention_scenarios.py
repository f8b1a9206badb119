# epi_engine/examples/intervention_scenarios.py
"""Baseline vs. intervention scenarios for a single region.

This example walks through the public API end to end:

- run_scenario(...) validates a SimulationConfig and integrates it.
- compute_metrics(...) derives peak, demand, mortality, cost and alerts.
- compare_to_baseline(...) / rank_scenarios(...) quantify what each
  intervention package buys.

Plots are drawn from the plain-data export (Trajectory.as_dict()), the same
contract any external chart or report consumer would use.

This script saves plots to disk (no interactive windows).
"""

from __future__ import annotations

from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from epi_engine import (
    HealthCapacity,
    SimulationConfig,
    compare_to_baseline,
    compute_metrics,
    rank_scenarios,
    run_scenario,
)

_OUTPUT_DIR = Path(__file__).resolve().parent / "output" / "interventions"


def save_infectious_plot(
    series: dict[str, dict[str, object]],
    *,
    icu_capacity_as_infected: float,
    out_path: Path,
) -> None:
    """Save the infectious curve of each scenario to an image file.

    Args:
        series: Scenario name -> Trajectory.as_dict() export.
        icu_capacity_as_infected: ICU beds expressed as the infectious count
            that would fill them (beds / ICU ratio).
        out_path: Output path for the saved figure.
    """
    plt.figure(figsize=(8, 5))
    for name, data in series.items():
        plt.plot(
            np.asarray(data["time"], dtype=float),
            np.asarray(data["I"], dtype=float),
            label=name,
        )
    plt.axhline(
        icu_capacity_as_infected,
        color="black",
        linestyle="--",
        label="ICU capacity",
    )
    plt.grid(visible=True)
    plt.legend()
    plt.title("Active infections by scenario")
    plt.xlabel("Day")
    plt.ylabel("Infectious")
    plt.tight_layout()

    out_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(out_path, dpi=150)
    plt.close()


def main() -> None:
    """Run three scenarios, print the comparison and save a plot.

    Files are written to: examples/output/interventions/
    """
    # ---------------------------------------------------------------------
    # Region
    # ---------------------------------------------------------------------
    capacity = HealthCapacity(total_beds=2_500.0, icu_beds=250.0, ventilators=120.0)
    base = SimulationConfig(
        model="SEIR",
        s0=499_500.0,
        e0=300.0,
        i0=200.0,
        beta=0.35,
        gamma=1.0 / 7.0,
        sigma=1.0 / 5.0,
        days=240.0,
    )

    # ---------------------------------------------------------------------
    # Intervention packages
    # ---------------------------------------------------------------------
    packages: dict[str, list[dict[str, object]]] = {
        "baseline": [],
        "distancing": [
            {"kind": "social_distancing", "start_day": 20, "reduction": 0.4},
        ],
        "combined": [
            {"kind": "quarantine", "start_day": 15, "duration": 45, "effectiveness": 0.5},
            {"kind": "social_distancing", "start_day": 20, "reduction": 0.3},
            {"kind": "vaccination", "start_day": 60, "daily_rate": 0.005},
        ],
    }

    metrics = {}
    exports = {}
    for name, interventions in packages.items():
        config = SimulationConfig.model_validate(
            {**base.model_dump(), "interventions": interventions}
        )
        result = run_scenario(config)
        metrics[name] = compute_metrics(result, capacity)
        exports[name] = result.trajectory.as_dict()

    # ---------------------------------------------------------------------
    # Comparison
    # ---------------------------------------------------------------------
    for name in ("distancing", "combined"):
        effect = compare_to_baseline(metrics["baseline"], metrics[name])
        print(  # noqa: T201
            f"{name:>10}: peak -{effect.peak_reduction_pct:.0f}%, "
            f"delayed {effect.peak_delay_days:.0f} days, "
            f"{effect.cases_averted:,.0f} cases averted ({effect.verdict})"
        )

    ranking = rank_scenarios(metrics)
    for line in ranking.recommendations:
        print(line)  # noqa: T201

    save_infectious_plot(
        exports,
        icu_capacity_as_infected=capacity.icu_beds / 0.05,
        out_path=_OUTPUT_DIR / "infectious_by_scenario.png",
    )


if __name__ == "__main__":
    main()
