# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Guardrail breach detection and automatic threshold tightening.

A guardrail watches one metric of one option. "above" guardrails breach when
the value exceeds the threshold, "below" guardrails when it falls under it.
Repeated breaches inside a rolling window tighten the threshold: "above"
thresholds move down, "below" thresholds move up.

All functions are pure; persisting guardrails, violations and adjustment
records is left to the caller.
"""

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .montecarlo.errors import InvalidConfigurationError
from .montecarlo.results import SimulationResult


DIRECTIONS = ("above", "below")
ALERT_LEVELS = ("info", "caution", "critical")
GUARDRAIL_METRICS = ("EV", "VaR95", "CVaR95", "RAROC", "CE", "TCOR")

# Breach size (fraction of threshold) at which each severity starts
SEVERITY_THRESHOLDS = {
    "moderate": 0.05,
    "severe": 0.15,
    "critical": 0.30,
}

# Tightening fraction applied per severity when severity-based adjustment is on
SEVERITY_TIGHTENING = {
    "minor": 0.05,
    "moderate": 0.10,
    "severe": 0.15,
    "critical": 0.20,
}


@dataclass(frozen=True)
class Guardrail:
    id: str
    option_id: str
    metric_name: str
    threshold_value: float
    direction: str = "above"
    alert_level: str = "caution"
    decision_id: str = ""

    def __post_init__(self):
        if self.direction not in DIRECTIONS:
            raise InvalidConfigurationError(
                f"direction must be one of {list(DIRECTIONS)}, got {self.direction!r}"
            )
        if self.alert_level not in ALERT_LEVELS:
            raise InvalidConfigurationError(
                f"alert_level must be one of {list(ALERT_LEVELS)}, got {self.alert_level!r}"
            )


@dataclass(frozen=True)
class AutoAdjustConfig:
    """Per-tenant auto-adjustment settings.

    Attributes:
        breach_window_days: Rolling window in which breaches are counted (1-365)
        breach_threshold_count: Breaches in the window that trigger tightening (1-10)
        tightening_percent: Flat tightening in percent (1-50), used when
            severity-based adjustment is off
        severity_based_adjustment: Tighten by SEVERITY_TIGHTENING instead
    """
    breach_window_days: int = 90
    breach_threshold_count: int = 2
    tightening_percent: float = 10.0
    severity_based_adjustment: bool = True

    def __post_init__(self):
        if not 1 <= self.breach_window_days <= 365:
            raise InvalidConfigurationError("breach_window_days must be within [1, 365]")
        if not 1 <= self.breach_threshold_count <= 10:
            raise InvalidConfigurationError("breach_threshold_count must be within [1, 10]")
        if not 1.0 <= self.tightening_percent <= 50.0:
            raise InvalidConfigurationError("tightening_percent must be within [1, 50]")


@dataclass(frozen=True)
class GuardrailViolation:
    id: str
    guardrail_id: str
    option_id: str
    metric_name: str
    threshold_value: float
    actual_value: float
    direction: str
    alert_level: str
    violated_at: datetime


@dataclass(frozen=True)
class AutoAdjustmentRecord:
    id: str
    guardrail_id: str
    option_id: str
    metric_name: str
    old_threshold: float
    new_threshold: float
    adjustment_percent: float
    reason: str
    triggered_by: Tuple[str, ...]
    adjusted_at: datetime
    severity: Optional[str] = None
    breach_severity_percent: Optional[float] = None


@dataclass
class OutcomeEvaluation:
    """Result of checking one observed value against a guardrail."""
    guardrail: Guardrail
    violation: Optional[GuardrailViolation] = None
    adjustment: Optional[AutoAdjustmentRecord] = None
    recent_violations: List[GuardrailViolation] = field(default_factory=list)

    @property
    def breached(self) -> bool:
        return self.violation is not None


def is_breached(guardrail: Guardrail, actual_value: float) -> bool:
    if guardrail.direction == "above":
        return actual_value > guardrail.threshold_value
    return actual_value < guardrail.threshold_value


def breach_severity(actual_value: float, threshold_value: float,
                    direction: str) -> Tuple[str, float]:
    """Classify how far past the threshold a value is.

    Returns:
        (severity, breach percent). A zero threshold has no relative scale
        and any breach of it is classed critical.
    """
    if threshold_value == 0:
        return "critical", float("inf")
    if direction == "above":
        fraction = (actual_value - threshold_value) / threshold_value
    else:
        fraction = (threshold_value - actual_value) / threshold_value
    fraction = abs(fraction)

    if fraction >= SEVERITY_THRESHOLDS["critical"]:
        severity = "critical"
    elif fraction >= SEVERITY_THRESHOLDS["severe"]:
        severity = "severe"
    elif fraction >= SEVERITY_THRESHOLDS["moderate"]:
        severity = "moderate"
    else:
        severity = "minor"
    return severity, fraction * 100.0


def tightened_threshold(current_threshold: float, direction: str,
                        tightening_percent: float,
                        severity_based: bool = False,
                        severity: Optional[str] = None) -> Tuple[float, float]:
    """New threshold after tightening.

    Returns:
        (new_threshold, adjustment percent applied)
    """
    fraction = tightening_percent / 100.0
    if severity_based and severity is not None:
        fraction = SEVERITY_TIGHTENING[severity]

    if direction == "above":
        new_threshold = current_threshold * (1 - fraction)
    else:
        new_threshold = current_threshold * (1 + fraction)
    return new_threshold, fraction * 100.0


def recent_violations(violations: Iterable[GuardrailViolation], guardrail_id: str,
                      window_days: int, now: datetime) -> List[GuardrailViolation]:
    cutoff = now - timedelta(days=window_days)
    return [v for v in violations if v.guardrail_id == guardrail_id and v.violated_at >= cutoff]


def evaluate_outcome(guardrail: Guardrail, actual_value: float,
                     prior_violations: Sequence[GuardrailViolation] = (),
                     config: Optional[AutoAdjustConfig] = None,
                     now: Optional[datetime] = None) -> OutcomeEvaluation:
    """Check an observed value and decide whether the guardrail auto-adjusts.

    Args:
        guardrail: Guardrail to check
        actual_value: Observed metric value
        prior_violations: Previously recorded violations (any guardrail)
        config: Auto-adjust settings; defaults apply if None
        now: Evaluation time; defaults to the current time

    Returns:
        OutcomeEvaluation. ``violation`` is set on a breach; ``adjustment``
        is set when the breaches in the window, including this one, reach
        the configured count.
    """
    config = config or AutoAdjustConfig()
    now = now or datetime.now()

    if not is_breached(guardrail, actual_value):
        return OutcomeEvaluation(guardrail)

    violation = GuardrailViolation(
        id=str(uuid.uuid4()),
        guardrail_id=guardrail.id,
        option_id=guardrail.option_id,
        metric_name=guardrail.metric_name,
        threshold_value=guardrail.threshold_value,
        actual_value=actual_value,
        direction=guardrail.direction,
        alert_level=guardrail.alert_level,
        violated_at=now,
    )
    recent = recent_violations(prior_violations, guardrail.id,
                               config.breach_window_days, now) + [violation]
    evaluation = OutcomeEvaluation(guardrail, violation, recent_violations=recent)
    if len(recent) < config.breach_threshold_count:
        return evaluation

    severity, percent = breach_severity(actual_value, guardrail.threshold_value,
                                        guardrail.direction)
    new_threshold, adjustment_percent = tightened_threshold(
        guardrail.threshold_value, guardrail.direction, config.tightening_percent,
        config.severity_based_adjustment, severity,
    )
    evaluation.adjustment = AutoAdjustmentRecord(
        id=str(uuid.uuid4()),
        guardrail_id=guardrail.id,
        option_id=guardrail.option_id,
        metric_name=guardrail.metric_name,
        old_threshold=guardrail.threshold_value,
        new_threshold=new_threshold,
        adjustment_percent=adjustment_percent,
        reason=f"Guardrail auto-adjusted due to {severity} repeated breach.",
        triggered_by=tuple(v.id for v in recent),
        adjusted_at=now,
        severity=severity,
        breach_severity_percent=percent,
    )
    return evaluation


def apply_adjustment(guardrail: Guardrail, adjustment: AutoAdjustmentRecord) -> Guardrail:
    """Guardrail with the adjusted threshold."""
    return replace(guardrail, threshold_value=adjustment.new_threshold)


def check_results(results: Iterable[SimulationResult],
                  guardrails: Sequence[Guardrail]) -> List[Dict[str, object]]:
    """Evaluate simulated metrics against guardrails.

    Guardrails on options or metrics the results do not carry are skipped.

    Returns:
        One entry per breached guardrail with the guardrail, the simulated
        value and its severity
    """
    by_option = {r.option_id: r for r in results}
    breaches = []
    for guardrail in guardrails:
        result = by_option.get(guardrail.option_id)
        if result is None or guardrail.metric_name not in GUARDRAIL_METRICS:
            continue
        value = result.metric(guardrail.metric_name)
        if value is None or not is_breached(guardrail, value):
            continue
        severity, percent = breach_severity(value, guardrail.threshold_value, guardrail.direction)
        breaches.append({
            "guardrail": guardrail,
            "value": value,
            "severity": severity,
            "breachPercent": percent,
        })
    return breaches
