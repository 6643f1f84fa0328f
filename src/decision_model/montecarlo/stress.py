# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Stress-test presets.

A preset rewrites the baseline inputs (never in place) and the simulation is
re-run on the same seed, so differences against the baseline come from the
shock alone.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from .config import SimulationConfig
from .fingerprint import compute_run_fingerprint
from .results import SimulationRun
from .scenario import DecisionOption, ScenarioVar
from .simulator import ScenarioSimulator


COST_SPIKE_MULTIPLIER = 1.15
DEMAND_SLUMP_FRACTION = 0.25
VOLATILITY_UP_MULTIPLIER = 1.5


class StressPreset(Enum):
    """Named shocks; the value is the display name."""
    BASE = "Base"
    COST_SPIKE = "Cost Spike"
    DEMAND_SLUMP = "Demand Slump"
    VOLATILITY_UP = "Volatility Up"

    @property
    def run_id_suffix(self) -> str:
        return _SUFFIXES[self]

    @classmethod
    def from_name(cls, name: str) -> "StressPreset":
        for preset in cls:
            if name in (preset.value, preset.name):
                return preset
        raise ValueError(f"Unknown stress preset '{name}'. Available: {[p.value for p in cls]}")


_SUFFIXES = {
    StressPreset.BASE: "",
    StressPreset.COST_SPIKE: "-CS",
    StressPreset.DEMAND_SLUMP: "-DS",
    StressPreset.VOLATILITY_UP: "-VU",
}


@dataclass
class StressTestRun:
    preset: StressPreset
    run_id: str
    results: SimulationRun

    @property
    def achieved_spearman(self) -> Optional[float]:
        return self.results.achieved_spearman


def apply_preset(preset: StressPreset,
                 options: Sequence[DecisionOption],
                 scenario_vars: Sequence[ScenarioVar]
                 ) -> Tuple[List[DecisionOption], List[ScenarioVar]]:
    """Return shocked copies of the options and scenario variables."""
    options = list(options)
    scenario_vars = list(scenario_vars)
    if preset is StressPreset.COST_SPIKE:
        options = [o.with_updates(cost=o.cost * COST_SPIKE_MULTIPLIER) for o in options]
    elif preset is StressPreset.DEMAND_SLUMP:
        options = [
            o.with_updates(expected_return=max(0.0, o.expected_return * (1 - DEMAND_SLUMP_FRACTION)))
            for o in options
        ]
    elif preset is StressPreset.VOLATILITY_UP:
        scenario_vars = [v.with_weight(v.weight * VOLATILITY_UP_MULTIPLIER) for v in scenario_vars]
    return options, scenario_vars


def run_stress_test(options: Sequence[DecisionOption],
                    scenario_vars: Sequence[ScenarioVar],
                    config: Optional[SimulationConfig] = None,
                    preset: StressPreset = StressPreset.BASE,
                    base_run_id: Optional[str] = None) -> StressTestRun:
    """Simulate the options under a stress preset.

    Args:
        options: Baseline decision options
        scenario_vars: Baseline scenario variables
        config: Simulation configuration shared with the baseline
        preset: Shock to apply
        base_run_id: Run id of the baseline; defaults to the baseline fingerprint

    Returns:
        StressTestRun whose run_id is the base id plus the preset suffix
    """
    if isinstance(preset, str):
        preset = StressPreset.from_name(preset)
    simulator = ScenarioSimulator(config)
    if base_run_id is None:
        base_run_id = compute_run_fingerprint(simulator.config.seed, simulator.config.runs,
                                              options, scenario_vars)

    stressed_options, stressed_vars = apply_preset(preset, options, scenario_vars)
    results = simulator.run(stressed_options, stressed_vars)
    return StressTestRun(preset=preset, run_id=base_run_id + preset.run_id_suffix, results=results)
