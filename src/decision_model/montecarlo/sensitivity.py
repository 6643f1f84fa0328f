# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
One-at-a-time sensitivity (tornado) analysis.

Each testable parameter is nudged by ±step_percent and the target option is
re-simulated with a reduced sample count (at most SENSITIVITY_MAX_FAST_RUNS)
on offset seeds (seed + 11 for plus, seed + 13 for minus). Deltas are taken
against the full-size baseline run, so they include a small amount of
sampling noise.
"""

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd

from .config import (
    SENSITIVITY_MAX_FAST_RUNS,
    SENSITIVITY_MINUS_SEED_OFFSET,
    SENSITIVITY_PLUS_SEED_OFFSET,
    SENSITIVITY_STEP_BOUNDS,
    SimulationConfig,
)
from .errors import InvalidConfigurationError
from .results import SimulationResult, SimulationRun
from .scenario import DecisionOption, ScenarioVar
from .simulator import ScenarioSimulator


SENSITIVITY_METRICS = ("RAROC", "CE", "EV")


@dataclass(frozen=True)
class SensitivityRow:
    """Impact of perturbing one parameter on the target metric."""
    param_name: str
    param_type: str  # cost | return | varWeight | varMean
    delta_plus: float
    delta_minus: float
    percent_plus: float
    percent_minus: float
    max_abs_delta: float


@dataclass
class SensitivityReport:
    """Ranked sensitivity rows for one option and metric."""
    option_id: str
    option_label: str
    metric: str
    step_percent: float
    baseline_metric: float
    fast_runs: int
    rows: List[SensitivityRow] = field(default_factory=list)

    def top_factors(self, n: int = 3) -> List[Dict[str, Any]]:
        return [{"paramName": r.param_name, "impact": r.max_abs_delta} for r in self.rows[:n]]

    def to_rows(self, run_id_base: str = "") -> List[Dict[str, Any]]:
        """Long-format rows (one per parameter and direction) for CSV export."""
        rows = []
        for row in self.rows:
            for direction, delta, percent in (("Plus", row.delta_plus, row.percent_plus),
                                              ("Minus", row.delta_minus, row.percent_minus)):
                rows.append({
                    "paramName": row.param_name,
                    "direction": direction,
                    "delta": delta,
                    "percent": percent,
                    "metric": self.metric,
                    "optionLabel": self.option_label,
                    "runIdBase": run_id_base,
                })
        return rows

    def to_dataframe(self) -> pd.DataFrame:
        return pd.DataFrame(
            [asdict(row) for row in self.rows],
            columns=[f.name for f in fields(SensitivityRow)],
        )


def metric_value(result: SimulationResult, metric: str) -> float:
    if metric == "RAROC":
        return result.raroc
    if metric == "EV":
        return result.ev
    return result.certainty_equivalent if result.certainty_equivalent is not None else 0.0


def default_metric(config: SimulationConfig) -> str:
    """CE when a non-CARA utility is configured, RAROC otherwise."""
    if config.utility is not None and config.utility.mode != "CARA":
        return "CE"
    return "RAROC"


def _percent(delta: float, baseline: float) -> float:
    return delta / baseline * 100.0 if baseline != 0 else 0.0


def run_sensitivity(options: Sequence[DecisionOption],
                    scenario_vars: Sequence[ScenarioVar],
                    config: Optional[SimulationConfig] = None,
                    target_option_id: Optional[str] = None,
                    metric: Optional[str] = None,
                    step_percent: float = 10.0,
                    max_fast_runs: int = SENSITIVITY_MAX_FAST_RUNS,
                    baseline: Optional[SimulationRun] = None) -> SensitivityReport:
    """Tornado analysis around a baseline run.

    Args:
        options: All decision options of the baseline
        scenario_vars: Scenario variables of the baseline
        config: Baseline configuration
        target_option_id: Option to analyse; defaults to the best option by ``metric``
        metric: RAROC, CE or EV; defaults to ``default_metric(config)``
        step_percent: Perturbation size in percent, within [1, 50]
        max_fast_runs: Upper bound on reruns' sample count
        baseline: Precomputed baseline run; simulated from ``config`` if None

    Returns:
        SensitivityReport with rows sorted by max |delta|, descending

    Raises:
        InvalidConfigurationError: On an unknown option or metric, an
            out-of-range step, or CE without utility parameters
    """
    config = config or SimulationConfig()
    metric = metric or default_metric(config)
    if metric not in SENSITIVITY_METRICS:
        raise InvalidConfigurationError(
            f"Unknown sensitivity metric {metric!r}; expected one of {list(SENSITIVITY_METRICS)}"
        )
    if metric == "CE" and config.utility is None:
        raise InvalidConfigurationError("CE sensitivity requires utility parameters")
    low, high = SENSITIVITY_STEP_BOUNDS
    if not low <= step_percent <= high:
        raise InvalidConfigurationError(
            f"step_percent must be within [{low:g}, {high:g}], got {step_percent}"
        )

    options = list(options)
    scenario_vars = list(scenario_vars)
    if baseline is None:
        baseline = ScenarioSimulator(config).run(options, scenario_vars)

    if target_option_id is None:
        target_option_id = max(baseline, key=lambda r: metric_value(r, metric)).option_id
    target = next((o for o in options if o.id == target_option_id), None)
    if target is None:
        raise InvalidConfigurationError(f"Unknown target option '{target_option_id}'")

    try:
        baseline_result = baseline[target_option_id]
    except KeyError:
        raise InvalidConfigurationError(
            f"Baseline run has no result for option '{target_option_id}'"
        ) from None
    baseline_metric = metric_value(baseline_result, metric)
    step = step_percent / 100.0
    fast_runs = min(max_fast_runs, config.runs)
    rerun_config = config.with_updates(
        runs=fast_runs,
        option_strategies=tuple(s for s in config.option_strategies
                                if s.option_id == target_option_id),
    )

    def rerun(option: DecisionOption, variables: Sequence[ScenarioVar], seed_offset: int) -> float:
        run_config = rerun_config.with_updates(seed=config.seed + seed_offset)
        result = ScenarioSimulator(run_config).run([option], variables)[0]
        return metric_value(result, metric)

    def measure(param_name, param_type, plus_case, minus_case) -> SensitivityRow:
        delta_plus = rerun(*plus_case, SENSITIVITY_PLUS_SEED_OFFSET) - baseline_metric
        delta_minus = rerun(*minus_case, SENSITIVITY_MINUS_SEED_OFFSET) - baseline_metric
        return SensitivityRow(
            param_name=param_name,
            param_type=param_type,
            delta_plus=delta_plus,
            delta_minus=delta_minus,
            percent_plus=_percent(delta_plus, baseline_metric),
            percent_minus=_percent(delta_minus, baseline_metric),
            max_abs_delta=max(abs(delta_plus), abs(delta_minus)),
        )

    rows = []
    if target.cost > 0:
        rows.append(measure(
            "Option Cost", "cost",
            (target.with_updates(cost=target.cost * (1 + step)), scenario_vars),
            (target.with_updates(cost=target.cost * (1 - step)), scenario_vars),
        ))
    if target.expected_return > 0:
        rows.append(measure(
            "Option Return", "return",
            (target.with_updates(expected_return=target.expected_return * (1 + step)), scenario_vars),
            (target.with_updates(expected_return=target.expected_return * (1 - step)), scenario_vars),
        ))

    def swap(variable: ScenarioVar, replacement: ScenarioVar) -> List[ScenarioVar]:
        return [replacement if v.id == variable.id else v for v in scenario_vars]

    for variable in scenario_vars:
        rows.append(measure(
            f"{variable.name} (weight)", "varWeight",
            (target, swap(variable, variable.with_weight(variable.weight * (1 + step)))),
            (target, swap(variable, variable.with_weight(variable.weight * (1 - step)))),
        ))

    for variable in scenario_vars:
        key = {"normal": "mean", "lognormal": "mu"}.get(variable.dist)
        if key is None:
            continue
        base = variable.params[key]
        rows.append(measure(
            f"{variable.name} ({key})", "varMean",
            (target, swap(variable, variable.with_params(**{key: base * (1 + step)}))),
            (target, swap(variable, variable.with_params(**{key: base * (1 - step)}))),
        ))

    rows.sort(key=lambda r: r.max_abs_delta, reverse=True)
    return SensitivityReport(
        option_id=target.id,
        option_label=target.label,
        metric=metric,
        step_percent=step_percent,
        baseline_metric=baseline_metric,
        fast_runs=fast_runs,
        rows=rows,
    )
