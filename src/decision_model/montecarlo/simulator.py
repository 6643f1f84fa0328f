# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Scenario simulation orchestrator.

This module provides the ScenarioSimulator class, which samples scenario
variables, imposes any configured dependence, propagates the draws through
each decision option and reduces the outcomes to risk/return metrics.
"""

import sys
from typing import Any, Dict, Mapping, Optional, Sequence

import numpy as np

from .bayes import resolve_override
from .config import DEFAULT_HORIZON_MONTHS, SimulationConfig
from .dependence import DependencePlan, build_plan, correlate_scores, measure
from .distributions import option_generators, transform_scores
from .errors import DegenerateInputError, InvalidConfigurationError, SimulationComputationError
from .fingerprint import compute_run_fingerprint
from .metrics import compute_risk_metrics, compute_tcor, compute_utility_metrics
from .results import SimulationResult, SimulationRun
from .scenario import DecisionOption, ScenarioVar


class ScenarioSimulator:
    """Runs seeded Monte Carlo simulations over a set of decision options.

    The workflow for each call:
    1. Validate inputs and resolve Bayesian/dependence settings
    2. Spawn one seeded stream per option
    3. Draw standard normal scores, correlate them if configured, and map
       them through each variable's marginal distribution
    4. Perturb each option's baseline return and cost, apply game payoffs
       and the horizon factor
    5. Reduce the outcomes to metrics

    Example:
        >>> simulator = ScenarioSimulator(SimulationConfig(runs=5000, seed=7))
        >>> run = simulator.run(options, scenario_vars)
        >>> for result in run:
        ...     print(result.option_label, result.ev, result.raroc)
    """

    def __init__(self, config: Optional[SimulationConfig] = None):
        """Initialize the simulator.

        Args:
            config: Simulation configuration. If None, uses defaults.
        """
        self.config = config or SimulationConfig()

    def run(self, options: Sequence[DecisionOption],
            scenario_vars: Sequence[ScenarioVar]) -> SimulationRun:
        """Simulate every option.

        Args:
            options: Decision options to evaluate (at least one)
            scenario_vars: Scenario variables; may be empty (deterministic outcomes)

        Returns:
            SimulationRun with one SimulationResult per option, in input order

        Raises:
            DegenerateInputError: If there are no options
            InvalidConfigurationError: If ids collide or a setting cannot be applied
            SimulationComputationError: If any option yields a non-finite metric
        """
        options = list(options)
        scenario_vars = list(scenario_vars)
        self._validate_inputs(options, scenario_vars)

        override_params, rejections = resolve_override(scenario_vars,
                                                       self.config.bayesian_override)
        for rejection in rejections:
            self._log_debug(f"Ignoring {rejection.setting}: {rejection.reason}")

        plan = build_plan(scenario_vars, self.config.dependence, self.config.copula,
                          log=self._log_debug)

        generators = option_generators(self.config.seed, len(options))
        results = []
        failures: Dict[str, str] = {}
        for option, rng in zip(options, generators):
            result = self.simulate_option(option, scenario_vars, rng, override_params, plan)
            bad_fields = result.non_finite_fields()
            if bad_fields:
                failures[option.id] = f"non-finite {', '.join(bad_fields)}"
                continue
            for name in result.fallbacks:
                self._log_debug(f"Option '{option.label}': applied fallback {name}")
            results.append(result)

        if failures:
            raise SimulationComputationError(failures)

        run_id = compute_run_fingerprint(self.config.seed, self.config.runs,
                                         options, scenario_vars)
        return SimulationRun(results, run_id=run_id, seed=self.config.seed,
                             runs=self.config.runs, rejections=rejections)

    def simulate_option(self, option: DecisionOption,
                        scenario_vars: Sequence[ScenarioVar],
                        rng: np.random.Generator,
                        override_params: Optional[Mapping[str, Mapping[str, float]]] = None,
                        plan: Optional[DependencePlan] = None) -> SimulationResult:
        """Simulate a single option on its own stream.

        Args:
            option: Option to evaluate
            scenario_vars: Scenario variables applied to the option
            rng: The option's seeded generator
            override_params: Replacement parameters by variable id
            plan: Dependence to impose on the scores

        Returns:
            SimulationResult for the option (not yet checked for finiteness)
        """
        config = self.config
        runs = config.runs
        override_params = override_params or {}

        scores = rng.standard_normal((runs, len(scenario_vars)))
        if plan is not None:
            scores = correlate_scores(scores, plan)

        ret = np.full(runs, option.expected_return)
        cost = np.full(runs, option.cost)
        draws = np.empty_like(scores)
        with np.errstate(over="ignore", invalid="ignore"):
            for j, variable in enumerate(scenario_vars):
                draws[:, j] = transform_scores(variable, scores[:, j],
                                               override_params.get(variable.id))

            for j, variable in enumerate(scenario_vars):
                factor = 1.0 + variable.weight * draws[:, j]
                if variable.applies_to == "return":
                    ret = np.maximum(0.0, ret * factor)
                else:
                    cost = np.maximum(0.0, cost * factor)

            strategy = config.strategy_for(option.id)
            if config.game is not None and strategy is not None:
                ret_mult, cost_mult = config.game.draw_payoffs(strategy, runs, rng)
                ret = ret * ret_mult
                cost = cost * cost_mult

            horizon = self._effective_horizon(option)
            h = horizon / 12.0
            outcomes = (ret - cost) * h

        risk = compute_risk_metrics(outcomes, h)
        fallbacks = list(risk.fallbacks)

        expected_utility = certainty_equivalent = None
        if config.utility is not None:
            utility = compute_utility_metrics(outcomes, config.utility)
            expected_utility = utility.expected_utility
            certainty_equivalent = utility.certainty_equivalent
            fallbacks.extend(utility.fallbacks)

        tcor = tcor_components = None
        if config.tcor is not None:
            tcor, tcor_components = compute_tcor(outcomes, option, config.tcor,
                                                 risk.economic_capital)

        achieved_spearman = copula_snapshot = None
        if plan is not None:
            diagnostic = measure(draws, plan)
            if plan.mode == "pairwise":
                achieved_spearman = diagnostic
            else:
                copula_snapshot = diagnostic

        return SimulationResult(
            option_id=option.id,
            option_label=option.label,
            outcomes=outcomes,
            ev=risk.ev,
            var95=risk.var95,
            cvar95=risk.cvar95,
            economic_capital=risk.economic_capital,
            raroc=risk.raroc,
            horizon_months=horizon,
            expected_utility=expected_utility,
            certainty_equivalent=certainty_equivalent,
            tcor=tcor,
            tcor_components=tcor_components,
            achieved_spearman=achieved_spearman,
            copula_snapshot=copula_snapshot,
            fallbacks=tuple(fallbacks),
        )

    def _effective_horizon(self, option: DecisionOption) -> float:
        if option.horizon_months is not None:
            return float(option.horizon_months)
        if self.config.horizon_months is not None:
            return float(self.config.horizon_months)
        return float(DEFAULT_HORIZON_MONTHS)

    def _validate_inputs(self, options: Sequence[DecisionOption],
                         scenario_vars: Sequence[ScenarioVar]) -> None:
        if not options:
            raise DegenerateInputError("At least one decision option is required")

        option_ids = [o.id for o in options]
        if len(set(option_ids)) != len(option_ids):
            raise InvalidConfigurationError(f"Duplicate option ids: {option_ids}")
        var_ids = [v.id for v in scenario_vars]
        if len(set(var_ids)) != len(var_ids):
            raise InvalidConfigurationError(f"Duplicate scenario variable ids: {var_ids}")

        for assignment in self.config.option_strategies:
            if assignment.option_id not in option_ids:
                raise InvalidConfigurationError(
                    f"Strategy assigned to unknown option '{assignment.option_id}'"
                )

    def _log_debug(self, message: str) -> None:
        """Lightweight internal logging helper."""
        if self.config.verbose:
            print(f"[scenario-engine] {message}", file=sys.stderr, flush=True)


def run_simulation(options: Sequence[DecisionOption],
                   scenario_vars: Sequence[ScenarioVar],
                   config: Optional[SimulationConfig] = None,
                   **overrides: Any) -> SimulationRun:
    """Run a simulation in one call.

    Keyword overrides replace fields of ``config`` (or of the defaults), e.g.
    ``run_simulation(options, vars, runs=1000, seed=42)``.
    """
    config = config or SimulationConfig()
    if overrides:
        config = config.with_updates(**overrides)
    return ScenarioSimulator(config).run(options, scenario_vars)
