# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Decision Scenario Engine

Monte Carlo evaluation of decision options under uncertainty: seeded
sampling of scenario variables, rank-correlation and Bayesian adjustments,
risk-adjusted metrics (EV, VaR95, CVaR95, RAROC, certainty equivalent,
TCOR), tornado sensitivity, stress presets, guardrails and a decision
knowledge graph.

Example usage:
    from decision_model import DecisionOption, ScenarioVar, SimulationConfig, run_simulation

    options = [DecisionOption(id="a", label="Expand", expected_return=120, cost=80)]
    demand = ScenarioVar(id="v1", name="Demand", applies_to="return",
                         dist="triangular", params={"min": -0.2, "mode": 0.0, "max": 0.4})
    run = run_simulation(options, [demand], SimulationConfig(runs=5000, seed=7))
    df = run.to_dataframe()
"""

# Scenario inputs
from .montecarlo.scenario import ScenarioVar, DecisionOption, DEFAULT_SCENARIO_VARS
from .montecarlo.game import MatchUndercutGame, OptionStrategy, parse_game_config

# Configuration
from .montecarlo.config import (
    SimulationConfig,
    UtilityParams,
    TCORParams,
    DependenceConfig,
    CopulaMatrixConfig,
    BayesianPriorOverride,
)

# Errors
from .montecarlo.errors import (
    SimulationError,
    InvalidConfigurationError,
    DegenerateInputError,
    SimulationComputationError,
)

# Simulation and analysis
from .montecarlo import (
    ScenarioSimulator,
    SimulationResult,
    SimulationRun,
    run_simulation,
    compute_posterior,
    run_sensitivity,
    SensitivityReport,
    StressPreset,
    run_stress_test,
    compute_run_fingerprint,
)

# Snapshots, guardrails and the knowledge graph
from .snapshot import SimulationSnapshot, compare_snapshots
from .guardrails import (
    Guardrail,
    AutoAdjustConfig,
    GuardrailViolation,
    AutoAdjustmentRecord,
    evaluate_outcome,
    check_results,
)
from .knowledge_graph import (
    KnowledgeGraph,
    build_knowledge_graph,
    node_neighbors,
    subgraph,
    degree_centrality,
    find_learning_paths,
    graph_stats,
)

__version__ = "0.1.0"

__all__ = [
    'ScenarioVar',
    'DecisionOption',
    'DEFAULT_SCENARIO_VARS',
    'MatchUndercutGame',
    'OptionStrategy',
    'parse_game_config',
    'SimulationConfig',
    'UtilityParams',
    'TCORParams',
    'DependenceConfig',
    'CopulaMatrixConfig',
    'BayesianPriorOverride',
    'SimulationError',
    'InvalidConfigurationError',
    'DegenerateInputError',
    'SimulationComputationError',
    'ScenarioSimulator',
    'SimulationResult',
    'SimulationRun',
    'run_simulation',
    'compute_posterior',
    'run_sensitivity',
    'SensitivityReport',
    'StressPreset',
    'run_stress_test',
    'compute_run_fingerprint',
    'SimulationSnapshot',
    'compare_snapshots',
    'Guardrail',
    'AutoAdjustConfig',
    'GuardrailViolation',
    'AutoAdjustmentRecord',
    'evaluate_outcome',
    'check_results',
    'KnowledgeGraph',
    'build_knowledge_graph',
    'node_neighbors',
    'subgraph',
    'degree_centrality',
    'find_learning_paths',
    'graph_stats',
]
