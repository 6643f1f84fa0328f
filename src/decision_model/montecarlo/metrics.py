# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Reduction of an option's outcome distribution to risk/return metrics.

Conventions:
    - VaR95 is the nearest-rank lower order statistic sorted[floor(0.05·n)].
    - CVaR95 is the mean of sorted[0 : floor(0.05·n) + 1], so CVaR95 <= VaR95.
    - Economic capital is max(1, |CVaR95|)·sqrt(h) for horizon factor h.
    - RAROC is EV / economic capital.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy.special import logsumexp

from .config import (
    CAPITAL_EPSILON,
    MIN_ECONOMIC_CAPITAL,
    RISK_NEUTRAL_THRESHOLD,
    VAR_TAIL_PROBABILITY,
    TCORParams,
    UtilityParams,
)
from .scenario import DecisionOption


@dataclass
class RiskMetrics:
    ev: float
    var95: float
    cvar95: float
    economic_capital: float
    raroc: float
    fallbacks: List[str] = field(default_factory=list)


@dataclass
class UtilityMetrics:
    expected_utility: Optional[float]
    certainty_equivalent: float
    fallbacks: List[str] = field(default_factory=list)


def tail_index(num_outcomes: int) -> int:
    """Index of the VaR order statistic in ascending-sorted outcomes."""
    return int(math.floor(num_outcomes * VAR_TAIL_PROBABILITY))


def compute_risk_metrics(outcomes: np.ndarray, horizon_factor: float) -> RiskMetrics:
    """EV, VaR95, CVaR95, economic capital and RAROC for one option.

    Args:
        outcomes: Horizon-scaled outcomes, one per run
        horizon_factor: h = horizon_months / 12
    """
    sorted_outcomes = np.sort(outcomes)
    idx = tail_index(len(sorted_outcomes))

    ev = float(np.mean(outcomes))
    var95 = float(sorted_outcomes[idx])
    cvar95 = float(np.mean(sorted_outcomes[:idx + 1]))
    economic_capital = max(MIN_ECONOMIC_CAPITAL, abs(cvar95)) * math.sqrt(horizon_factor)

    fallbacks = []
    if economic_capital < CAPITAL_EPSILON:
        raroc = 0.0
        fallbacks.append("raroc_zero_capital")
    else:
        raroc = ev / economic_capital

    return RiskMetrics(ev, var95, cvar95, economic_capital, raroc, fallbacks)


def _exponential_log_mean(xs: np.ndarray, a: float) -> float:
    """log(E[exp(-a·xs)]) evaluated without overflow."""
    return float(logsumexp(-a * xs) - math.log(len(xs)))


def compute_utility_metrics(outcomes: np.ndarray, params: UtilityParams) -> UtilityMetrics:
    """Expected utility and certainty equivalent under the configured utility.

    CARA/Exponential/Quadratic evaluate outcomes divided by ``scale`` and
    multiply the certainty equivalent back; CRRA/Power use raw outcomes and
    are undefined for non-positive outcomes (CE falls back to 0.0).
    """
    a = params.a
    xs = outcomes / params.scale

    if params.mode in ("CARA", "Exponential"):
        if a <= RISK_NEUTRAL_THRESHOLD:
            eu = float(np.mean(xs))
            return UtilityMetrics(eu, eu * params.scale)
        log_mean = _exponential_log_mean(xs, a)
        ce = -log_mean / a * params.scale
        # exp() overflows a double past ~709
        if log_mean > 700:
            return UtilityMetrics(None, ce, ["expected_utility_overflow"])
        mean_exp = math.exp(log_mean)
        eu = 1.0 - mean_exp if params.mode == "CARA" else -mean_exp
        return UtilityMetrics(eu, ce)

    if params.mode == "Quadratic":
        eu = float(np.mean(xs - (a / 2.0) * xs * xs))
        if a <= RISK_NEUTRAL_THRESHOLD:
            return UtilityMetrics(eu, eu * params.scale)
        discriminant = 1.0 - 2.0 * a * eu
        if discriminant < 0:
            return UtilityMetrics(eu, 0.0, ["ce_quadratic_discriminant"])
        return UtilityMetrics(eu, (1.0 - math.sqrt(discriminant)) / a * params.scale)

    # CRRA and Power work on raw outcomes
    if np.any(outcomes <= 0):
        return UtilityMetrics(None, 0.0, ["ce_nonpositive_outcomes"])

    if params.mode == "CRRA":
        if abs(a - 1.0) < RISK_NEUTRAL_THRESHOLD:
            eu = float(np.mean(np.log(outcomes)))
            return UtilityMetrics(eu, math.exp(eu))
        eu = float(np.mean(np.power(outcomes, 1.0 - a) / (1.0 - a)))
        base = (1.0 - a) * eu
        if base <= 0:
            return UtilityMetrics(eu, 0.0, ["ce_nonpositive_base"])
        return UtilityMetrics(eu, base ** (1.0 / (1.0 - a)))

    alpha = 1.0 - a
    if abs(alpha) < RISK_NEUTRAL_THRESHOLD:
        eu = float(np.mean(np.log(outcomes)))
        return UtilityMetrics(eu, math.exp(eu))
    eu = float(np.mean(np.power(outcomes, alpha)))
    if eu <= 0:
        return UtilityMetrics(eu, 0.0, ["ce_nonpositive_base"])
    return UtilityMetrics(eu, eu ** (1.0 / alpha))


def compute_tcor(outcomes: np.ndarray, option: DecisionOption, params: TCORParams,
                 economic_capital: float) -> Tuple[float, Dict[str, float]]:
    """Total cost of risk = expected loss + insurance + contingency + mitigation.

    Expected loss is P(outcome < 0) · E[|outcome| | outcome < 0].
    """
    losses = outcomes[outcomes < 0]
    p_loss = len(losses) / len(outcomes)
    mean_loss = float(np.mean(np.abs(losses))) if len(losses) else 0.0
    components = {
        "expected_loss": p_loss * mean_loss,
        "insurance": params.insurance_rate * option.cost,
        "contingency": params.contingency_on_cap * economic_capital,
        "mitigation": option.mitigation_cost,
    }
    return sum(components.values()), components
