# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Flask web server for the decision scenario engine.

Payloads use camelCase field names. Engine failures come back as HTTP 422
with ``{"success": false, "error": ..., "kind": ...}``; a missing or
non-object JSON body is a 400.
"""

import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from dotenv import load_dotenv
from flask import Flask, jsonify, request

from ..knowledge_graph import build_knowledge_graph, degree_centrality, find_learning_paths, graph_stats, subgraph
from ..montecarlo.bayes import compute_posterior
from ..montecarlo.config import (
    BayesianPriorOverride,
    CopulaMatrixConfig,
    DependenceConfig,
    SimulationConfig,
    TCORParams,
    UtilityParams,
)
from ..montecarlo.errors import InvalidConfigurationError, SimulationComputationError, SimulationError
from ..montecarlo.fingerprint import compute_run_fingerprint, format_run_id
from ..montecarlo.game import OptionStrategy, parse_game_config
from ..montecarlo.scenario import DecisionOption, ScenarioVar
from ..montecarlo.sensitivity import run_sensitivity
from ..montecarlo.simulator import ScenarioSimulator
from ..montecarlo.stress import StressPreset, run_stress_test


# Process environment takes precedence over a local .env file
env_path = Path(__file__).parent / ".env"
if env_path.exists():
    load_dotenv(env_path, override=False)

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8080"))
LOCAL_DEV = os.getenv("LOCAL_DEV", "false").lower() == "true"

if LOCAL_DEV:
    print("Running in LOCAL_DEV mode - verbose engine logging enabled", file=sys.stderr, flush=True)

app = Flask(__name__)


def _to_float(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return default
    return default


def _to_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(float(value.strip()))
        except ValueError:
            return default
    return default


def _optional_float(value: Any) -> Optional[float]:
    return None if value is None else _to_float(value)


def _require(payload: Dict[str, Any], key: str, context: str, *aliases: str) -> Any:
    for name in (key,) + aliases:
        if payload.get(name) is not None:
            return payload[name]
    raise InvalidConfigurationError(f"{context} is missing '{key}'")


def _parse_options(raw: Any) -> List[DecisionOption]:
    if not isinstance(raw, list):
        raise InvalidConfigurationError("'options' must be a list")
    options = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise InvalidConfigurationError(f"options[{index}] must be an object")
        option_id = str(_require(item, "id", f"options[{index}]"))
        horizon = item.get("horizonMonths")
        options.append(DecisionOption(
            id=option_id,
            label=str(item.get("label", option_id)),
            expected_return=_to_float(item.get("expectedReturn")),
            cost=_to_float(item.get("cost")),
            mitigation_cost=_to_float(item.get("mitigationCost")),
            horizon_months=None if horizon is None else _to_int(horizon, 12),
        ))
    return options


def _parse_scenario_vars(raw: Any) -> List[ScenarioVar]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise InvalidConfigurationError("'scenarioVars' must be a list")
    variables = []
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            raise InvalidConfigurationError(f"scenarioVars[{index}] must be an object")
        context = f"scenarioVars[{index}]"
        params = _require(item, "params", context)
        if not isinstance(params, dict):
            raise InvalidConfigurationError(f"{context}.params must be an object")
        var_id = str(_require(item, "id", context))
        variables.append(ScenarioVar(
            id=var_id,
            name=str(item.get("name", var_id)),
            applies_to=_require(item, "appliesTo", context),
            dist=_require(item, "dist", context),
            params={k: _to_float(v, float("nan")) for k, v in params.items()},
            weight=_to_float(item.get("weight"), 1.0),
        ))
    return variables


def _parse_option_strategies(raw: Any) -> Tuple[OptionStrategy, ...]:
    if raw is None:
        return ()
    if isinstance(raw, dict):
        return tuple(OptionStrategy(str(k), v) for k, v in raw.items())
    if isinstance(raw, list):
        return tuple(OptionStrategy(str(_require(item, "optionId", "optionStrategies")),
                                    _require(item, "strategy", "optionStrategies"))
                     for item in raw)
    raise InvalidConfigurationError("'optionStrategies' must be an object or a list")


def _parse_config(payload: Dict[str, Any]) -> SimulationConfig:
    """Build a SimulationConfig from a request body."""
    utility = tcor = game = dependence = override = copula = None

    raw = payload.get("utility")
    if isinstance(raw, dict):
        utility = UtilityParams(mode=raw.get("mode", "CARA"), a=_to_float(raw.get("a")),
                                scale=_to_float(raw.get("scale"), 1.0))

    raw = payload.get("tcor")
    if isinstance(raw, dict):
        tcor = TCORParams(insurance_rate=_to_float(raw.get("insuranceRate")),
                          contingency_on_cap=_to_float(raw.get("contingencyOnCap")))

    if payload.get("game") is not None:
        game = parse_game_config(payload["game"])

    raw = payload.get("dependence")
    if isinstance(raw, dict):
        dependence = DependenceConfig(
            var_a_id=str(_require(raw, "varAId", "dependence", "varA")),
            var_b_id=str(_require(raw, "varBId", "dependence", "varB")),
            target_rho=_to_float(_require(raw, "targetRho", "dependence")),
        )

    raw = payload.get("bayesianOverride")
    if isinstance(raw, dict):
        override = BayesianPriorOverride(
            target_var_id=str(_require(raw, "targetVarId", "bayesianOverride")),
            posterior_mean=_to_float(_require(raw, "posteriorMean", "bayesianOverride", "muN")),
            posterior_sd=_to_float(_require(raw, "posteriorSd", "bayesianOverride", "sigmaN")),
        )

    raw = payload.get("copula")
    if isinstance(raw, dict):
        copula = CopulaMatrixConfig(matrix=_require(raw, "matrix", "copula"),
                                    use_nearest_pd=bool(raw.get("useNearestPD", True)))

    horizon = payload.get("horizonMonths")
    return SimulationConfig(
        runs=_to_int(payload.get("runs"), 10000),
        seed=_to_int(payload.get("seed"), 42),
        utility=utility,
        tcor=tcor,
        game=game,
        option_strategies=_parse_option_strategies(payload.get("optionStrategies")),
        dependence=dependence,
        bayesian_override=override,
        copula=copula,
        horizon_months=None if horizon is None else _to_int(horizon, 12),
        verbose=LOCAL_DEV,
    )


def _parse_request() -> Tuple[Optional[Dict[str, Any]], Optional[Tuple[Any, int]]]:
    payload = request.get_json(silent=True)
    if payload is None:
        return None, (jsonify({"success": False, "error": "Request JSON body is required"}), 400)
    if not isinstance(payload, dict):
        return None, (jsonify({"success": False, "error": "Request JSON body must be an object"}), 400)
    return payload, None


def _parse_simulation_inputs(payload: Dict[str, Any]):
    options = _parse_options(payload.get("options"))
    scenario_vars = _parse_scenario_vars(payload.get("scenarioVars"))
    return options, scenario_vars, _parse_config(payload)


@app.errorhandler(SimulationError)
def handle_simulation_error(error: SimulationError) -> Tuple[Any, int]:
    body = {"success": False, "error": str(error), "kind": error.kind}
    if isinstance(error, SimulationComputationError):
        body["failures"] = error.failures
    return jsonify(body), 422


@app.get("/health")
def health() -> Tuple[Any, int]:
    return jsonify({"ok": True, "service": "decision-model-api"}), 200


@app.post("/decision/api/v1/simulate")
def simulate() -> Tuple[Any, int]:
    payload, error = _parse_request()
    if error:
        return error
    options, scenario_vars, config = _parse_simulation_inputs(payload)
    run = ScenarioSimulator(config).run(options, scenario_vars)
    body = run.to_dict(include_outcomes=bool(payload.get("includeOutcomes", False)))
    body["success"] = True
    return jsonify(body), 200


@app.post("/decision/api/v1/sensitivity")
def sensitivity() -> Tuple[Any, int]:
    payload, error = _parse_request()
    if error:
        return error
    options, scenario_vars, config = _parse_simulation_inputs(payload)
    report = run_sensitivity(
        options, scenario_vars, config,
        target_option_id=payload.get("targetOptionId"),
        metric=payload.get("metric"),
        step_percent=_to_float(payload.get("stepPercent"), 10.0),
    )
    return jsonify({
        "success": True,
        "optionId": report.option_id,
        "optionLabel": report.option_label,
        "metric": report.metric,
        "stepPercent": report.step_percent,
        "baselineMetric": report.baseline_metric,
        "fastRuns": report.fast_runs,
        "rows": [
            {
                "paramName": row.param_name,
                "paramType": row.param_type,
                "deltaPlus": row.delta_plus,
                "deltaMinus": row.delta_minus,
                "percentPlus": row.percent_plus,
                "percentMinus": row.percent_minus,
                "maxAbsDelta": row.max_abs_delta,
            }
            for row in report.rows
        ],
    }), 200


@app.post("/decision/api/v1/stress")
def stress() -> Tuple[Any, int]:
    payload, error = _parse_request()
    if error:
        return error
    options, scenario_vars, config = _parse_simulation_inputs(payload)
    try:
        preset = StressPreset.from_name(str(payload.get("preset", "Base")))
    except ValueError as e:
        return jsonify({"success": False, "error": str(e)}), 400
    stress_run = run_stress_test(options, scenario_vars, config, preset,
                                 base_run_id=payload.get("baseRunId"))
    body = stress_run.results.to_dict()
    body.update({"success": True, "preset": preset.value, "runId": stress_run.run_id})
    return jsonify(body), 200


@app.post("/decision/api/v1/posterior")
def posterior() -> Tuple[Any, int]:
    payload, error = _parse_request()
    if error:
        return error
    result = compute_posterior(
        prior_mean=_to_float(payload.get("priorMean")),
        prior_sd=_to_float(payload.get("priorSd")),
        evidence_mean=_to_float(payload.get("evidenceMean")),
        evidence_n=_to_int(payload.get("evidenceN"), 0),
        likelihood_sd=_to_float(payload.get("likelihoodSd")),
    )
    return jsonify({"success": True, "muN": result.mean, "sigmaN": result.sd,
                    "variance": result.variance}), 200


@app.post("/decision/api/v1/fingerprint")
def fingerprint() -> Tuple[Any, int]:
    payload, error = _parse_request()
    if error:
        return error
    options = _parse_options(payload.get("options"))
    scenario_vars = _parse_scenario_vars(payload.get("scenarioVars"))
    run_id = compute_run_fingerprint(_to_int(payload.get("seed"), 42),
                                     _to_int(payload.get("runs"), 10000),
                                     options, scenario_vars)
    return jsonify({"success": True, "runId": run_id, "display": format_run_id(run_id)}), 200



def _parse_records(payload: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    raw = payload.get(key)
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(isinstance(item, dict) for item in raw):
        raise InvalidConfigurationError(f"'{key}' must be a list of objects")
    return raw


@app.post("/decision/api/v1/knowledge-graph")
def knowledge_graph() -> Tuple[Any, int]:
    payload, error = _parse_request()
    if error:
        return error
    kg = build_knowledge_graph(
        str(_require(payload, "tenantId", "request")),
        decisions=_parse_records(payload, "decisions"),
        signals=_parse_records(payload, "signals"),
        incidents=_parse_records(payload, "incidents"),
        outcomes=_parse_records(payload, "outcomes"),
        guardrails=_parse_records(payload, "guardrails"),
    )
    focus = payload.get("focusNodeId")
    if focus is not None:
        kg = subgraph(kg, str(focus), depth=_to_int(payload.get("depth"), 1))

    stats = graph_stats(kg)
    body = kg.to_dict()
    body.update({
        "success": True,
        "stats": {
            "totalNodes": stats.total_nodes,
            "totalEdges": stats.total_edges,
            "nodesByType": stats.nodes_by_type,
            "edgesByType": stats.edges_by_type,
            "avgDegree": stats.avg_degree,
        },
        "centrality": degree_centrality(kg),
        "learningPaths": [{"path": list(p.path), "description": p.description}
                          for p in find_learning_paths(kg)],
    })
    return jsonify(body), 200
