# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Monte Carlo scenario simulation for decision support.

This module samples uncertain scenario variables (optionally correlated or
Bayesian-updated), propagates them through decision options and reports
risk-adjusted metrics, with sensitivity and stress analysis on top.
"""

from .errors import (
    SimulationError,
    InvalidConfigurationError,
    DegenerateInputError,
    SimulationComputationError,
)
from .scenario import ScenarioVar, DecisionOption, DEFAULT_SCENARIO_VARS
from .game import MatchUndercutGame, MoveMultipliers, OptionStrategy, parse_game_config
from .config import (
    SimulationConfig,
    UtilityParams,
    TCORParams,
    DependenceConfig,
    CopulaMatrixConfig,
    BayesianPriorOverride,
)
from .bayes import Posterior, Rejection, compute_posterior
from .dependence import CopulaSnapshot
from .results import SimulationResult, SimulationRun
from .simulator import ScenarioSimulator, run_simulation
from .sensitivity import SensitivityReport, SensitivityRow, run_sensitivity
from .stress import StressPreset, StressTestRun, run_stress_test
from .fingerprint import compute_run_fingerprint, format_run_id, fingerprints_match

__all__ = [
    'SimulationError',
    'InvalidConfigurationError',
    'DegenerateInputError',
    'SimulationComputationError',
    'ScenarioVar',
    'DecisionOption',
    'DEFAULT_SCENARIO_VARS',
    'MatchUndercutGame',
    'MoveMultipliers',
    'OptionStrategy',
    'parse_game_config',
    'SimulationConfig',
    'UtilityParams',
    'TCORParams',
    'DependenceConfig',
    'CopulaMatrixConfig',
    'BayesianPriorOverride',
    'Posterior',
    'Rejection',
    'compute_posterior',
    'CopulaSnapshot',
    'SimulationResult',
    'SimulationRun',
    'ScenarioSimulator',
    'run_simulation',
    'SensitivityReport',
    'SensitivityRow',
    'run_sensitivity',
    'StressPreset',
    'StressTestRun',
    'run_stress_test',
    'compute_run_fingerprint',
    'format_run_id',
    'fingerprints_match',
]
