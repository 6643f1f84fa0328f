# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Scenario variables and decision options.

A ScenarioVar is a named uncertainty driver sampled from a distribution; a
DecisionOption is a candidate choice whose baseline return and cost the
variables perturb on every run. Both are immutable: edits go through the
``with_*`` helpers, which return new objects.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import InvalidConfigurationError


# Required parameter names per distribution, in display order
DISTRIBUTION_PARAMS: Dict[str, Tuple[str, ...]] = {
    "normal": ("mean", "sd"),
    "lognormal": ("mu", "sigma"),
    "triangular": ("min", "mode", "max"),
    "uniform": ("min", "max"),
}

APPLIES_TO = ("return", "cost")


def get_dist_param_labels(dist: str) -> Tuple[str, ...]:
    """Return the parameter names a distribution expects (empty if unknown)."""
    return DISTRIBUTION_PARAMS.get(dist, ())


@dataclass(frozen=True)
class ScenarioVar:
    """A named uncertainty driver.

    Attributes:
        id: Unique identifier
        name: Display name
        applies_to: "return" or "cost"
        dist: One of "normal", "lognormal", "triangular", "uniform"
        params: Distribution parameters, keys exactly DISTRIBUTION_PARAMS[dist]
        weight: Multiplier strength applied to each draw
    """
    id: str
    name: str
    applies_to: str
    dist: str
    params: Mapping[str, float] = field(default_factory=dict)
    weight: float = 1.0

    def __post_init__(self):
        if self.applies_to not in APPLIES_TO:
            raise InvalidConfigurationError(
                f"Variable '{self.name}': applies_to must be 'return' or 'cost', "
                f"got {self.applies_to!r}"
            )
        if self.dist not in DISTRIBUTION_PARAMS:
            raise InvalidConfigurationError(
                f"Variable '{self.name}': unknown distribution {self.dist!r}"
            )

        expected = set(DISTRIBUTION_PARAMS[self.dist])
        if set(self.params) != expected:
            raise InvalidConfigurationError(
                f"Variable '{self.name}': {self.dist} requires parameters "
                f"{sorted(expected)}, got {sorted(self.params)}"
            )

        params = {key: float(value) for key, value in self.params.items()}
        if not all(math.isfinite(v) for v in params.values()):
            raise InvalidConfigurationError(
                f"Variable '{self.name}': parameters must be finite"
            )
        if not math.isfinite(self.weight):
            raise InvalidConfigurationError(f"Variable '{self.name}': weight must be finite")

        if self.dist == "normal" and params["sd"] <= 0:
            raise InvalidConfigurationError(
                f"Variable '{self.name}': sd must be > 0, got {params['sd']}"
            )
        if self.dist == "lognormal" and params["sigma"] <= 0:
            raise InvalidConfigurationError(
                f"Variable '{self.name}': sigma must be > 0, got {params['sigma']}"
            )
        if self.dist == "triangular":
            if not (params["min"] <= params["mode"] <= params["max"]) or params["min"] >= params["max"]:
                raise InvalidConfigurationError(
                    f"Variable '{self.name}': triangular requires min <= mode <= max and min < max"
                )
        if self.dist == "uniform" and params["min"] >= params["max"]:
            raise InvalidConfigurationError(
                f"Variable '{self.name}': uniform requires min < max"
            )

        object.__setattr__(self, "params", params)
        object.__setattr__(self, "weight", float(self.weight))

    def with_params(self, **changes: float) -> "ScenarioVar":
        """Return a copy with some distribution parameters replaced."""
        params = dict(self.params)
        params.update(changes)
        return replace(self, params=params)

    def with_weight(self, weight: float) -> "ScenarioVar":
        return replace(self, weight=weight)

    def with_updates(self, **changes: Any) -> "ScenarioVar":
        return replace(self, **changes)

    def format_params(self) -> str:
        """Short human-readable parameter summary, e.g. ``N(μ=0.05, σ=0.03)``."""
        p = self.params
        if self.dist == "normal":
            return f"N(μ={p['mean']:g}, σ={p['sd']:g})"
        if self.dist == "lognormal":
            return f"LogN(μ={p['mu']:g}, σ={p['sigma']:g})"
        if self.dist == "triangular":
            return f"Tri({p['min']:g}, {p['mode']:g}, {p['max']:g})"
        return f"U({p['min']:g}, {p['max']:g})"


@dataclass(frozen=True)
class DecisionOption:
    """One candidate choice being evaluated.

    Attributes:
        id: Unique identifier
        label: Display label
        expected_return: Baseline return before scenario perturbation
        cost: Baseline cost before scenario perturbation
        mitigation_cost: Fixed mitigation spend, counted in TCOR
        horizon_months: Optional per-option horizon overriding the global one
    """
    id: str
    label: str
    expected_return: float = 0.0
    cost: float = 0.0
    mitigation_cost: float = 0.0
    horizon_months: Optional[float] = None

    def __post_init__(self):
        for name in ("expected_return", "cost", "mitigation_cost"):
            value = float(getattr(self, name))
            if not math.isfinite(value):
                raise InvalidConfigurationError(f"Option '{self.label}': {name} must be finite")
            object.__setattr__(self, name, value)
        if self.horizon_months is not None and not (1 <= self.horizon_months <= 240):
            raise InvalidConfigurationError(
                f"Option '{self.label}': horizon_months must be between 1 and 240, "
                f"got {self.horizon_months}"
            )

    def with_updates(self, **changes: Any) -> "DecisionOption":
        return replace(self, **changes)


# Defaults offered to new decisions
DEFAULT_SCENARIO_VARS = (
    ScenarioVar(
        id="var-1",
        name="Demand",
        applies_to="return",
        dist="triangular",
        params={"min": -0.2, "mode": 0.0, "max": 0.4},
    ),
    ScenarioVar(
        id="var-2",
        name="CostInflation",
        applies_to="cost",
        dist="normal",
        params={"mean": 0.05, "sd": 0.03},
    ),
)
