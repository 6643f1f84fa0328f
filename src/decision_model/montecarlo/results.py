# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Scenario simulation results.

This module provides SimulationResult, the per-option metric record, and
SimulationRun, which aggregates the results of one engine call together with
run-level diagnostics (fingerprint, rejected settings).
"""

import math
import numbers
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .bayes import Rejection
from .dependence import CopulaSnapshot


# Metric names accepted by SimulationResult.metric, mapped to attributes
METRIC_FIELDS = {
    "EV": "ev",
    "VaR95": "var95",
    "CVaR95": "cvar95",
    "EconomicCapital": "economic_capital",
    "RAROC": "raroc",
    "CE": "certainty_equivalent",
    "TCOR": "tcor",
}

_REQUIRED_FINITE = ("ev", "var95", "cvar95", "economic_capital", "raroc")
_OPTIONAL_FINITE = ("expected_utility", "certainty_equivalent", "tcor")


@dataclass(eq=False)
class SimulationResult:
    """Metrics for one option.

    Attributes:
        option_id: Option identifier
        option_label: Option display label
        outcomes: Horizon-scaled outcome per run
        ev: Mean outcome
        var95: 5th-percentile outcome (nearest rank)
        cvar95: Mean of outcomes at or below VaR95
        economic_capital: Capital buffer implied by tail risk
        raroc: EV / economic capital
        horizon_months: Effective horizon used
        expected_utility: Present when a utility is configured and defined
        certainty_equivalent: Present when a utility is configured
        tcor: Total cost of risk, present when TCOR params are configured
        tcor_components: Breakdown of tcor
        achieved_spearman: Achieved rank correlation for pairwise dependence
        copula_snapshot: Achieved matrix and fit error for copula dependence
        fallbacks: Names of numerical guards that fired for this option
    """
    option_id: str
    option_label: str
    outcomes: np.ndarray
    ev: float
    var95: float
    cvar95: float
    economic_capital: float
    raroc: float
    horizon_months: float
    expected_utility: Optional[float] = None
    certainty_equivalent: Optional[float] = None
    tcor: Optional[float] = None
    tcor_components: Optional[Dict[str, float]] = None
    achieved_spearman: Optional[float] = None
    copula_snapshot: Optional[CopulaSnapshot] = None
    fallbacks: Tuple[str, ...] = field(default_factory=tuple)

    def metric(self, name: str) -> Optional[float]:
        """Look up a metric by display name (EV, VaR95, CVaR95, RAROC, CE, TCOR)."""
        if name not in METRIC_FIELDS:
            raise ValueError(f"Unknown metric '{name}'. Available: {list(METRIC_FIELDS)}")
        return getattr(self, METRIC_FIELDS[name])

    def non_finite_fields(self) -> List[str]:
        """Names of published metrics that are NaN or infinite."""
        bad = [name for name in _REQUIRED_FINITE if not math.isfinite(getattr(self, name))]
        bad.extend(name for name in _OPTIONAL_FINITE
                   if getattr(self, name) is not None and not math.isfinite(getattr(self, name)))
        return bad

    def to_dict(self, include_outcomes: bool = False) -> Dict[str, Any]:
        data = {
            "optionId": self.option_id,
            "optionLabel": self.option_label,
            "ev": self.ev,
            "var95": self.var95,
            "cvar95": self.cvar95,
            "economicCapital": self.economic_capital,
            "raroc": self.raroc,
            "expectedUtility": self.expected_utility,
            "certaintyEquivalent": self.certainty_equivalent,
            "tcor": self.tcor,
            "tcorComponents": self.tcor_components,
            "achievedSpearman": self.achieved_spearman,
            "copulaSnapshot": self.copula_snapshot.to_dict() if self.copula_snapshot else None,
            "horizonMonths": self.horizon_months,
            "fallbacks": list(self.fallbacks),
        }
        if include_outcomes:
            data["outcomes"] = self.outcomes.tolist()
        return data

    def __repr__(self) -> str:
        return (f"SimulationResult(option_id={self.option_id!r}, ev={self.ev:.4f}, "
                f"var95={self.var95:.4f}, raroc={self.raroc:.4f})")


class SimulationRun:
    """Aggregates the per-option results of one simulation call.

    Example:
        >>> run = simulator.run(options, scenario_vars)
        >>> print(run.best_option("RAROC").option_label)
        >>> df = run.to_dataframe()
    """

    def __init__(self,
                 results: Sequence[SimulationResult],
                 run_id: str,
                 seed: int,
                 runs: int,
                 rejections: Sequence[Rejection] = ()):
        self.results = list(results)
        self.run_id = run_id
        self.seed = seed
        self.runs = runs
        self.rejections = list(rejections)

    def __iter__(self) -> Iterator[SimulationResult]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    def __getitem__(self, key: Union[int, str]) -> SimulationResult:
        if isinstance(key, numbers.Integral):
            return self.results[key]
        for result in self.results:
            if result.option_id == key:
                return result
        raise KeyError(key)

    @property
    def achieved_spearman(self) -> Optional[float]:
        return self.results[0].achieved_spearman if self.results else None

    @property
    def copula_snapshot(self) -> Optional[CopulaSnapshot]:
        return self.results[0].copula_snapshot if self.results else None

    def best_option(self, metric: str = "RAROC") -> SimulationResult:
        """Option with the highest value of ``metric`` (missing values rank last)."""
        return max(self.results,
                   key=lambda r: r.metric(metric) if r.metric(metric) is not None else -math.inf)

    def to_dataframe(self) -> pd.DataFrame:
        """Per-option metrics as a DataFrame indexed by option id."""
        rows = []
        for result in self.results:
            row = result.to_dict()
            row.pop("copulaSnapshot")
            row.pop("tcorComponents")
            rows.append(row)
        return pd.DataFrame(rows).set_index("optionId")

    def to_dict(self, include_outcomes: bool = False) -> Dict[str, Any]:
        return {
            "runId": self.run_id,
            "seed": self.seed,
            "runs": self.runs,
            "results": [r.to_dict(include_outcomes) for r in self.results],
            "rejections": [
                {"setting": r.setting, "target": r.target, "reason": r.reason}
                for r in self.rejections
            ],
        }

    def __repr__(self) -> str:
        return (f"SimulationRun(run_id={self.run_id!r}, num_options={len(self.results)}, "
                f"runs={self.runs})")
