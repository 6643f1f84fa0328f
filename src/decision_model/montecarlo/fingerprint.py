# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Run fingerprints: a deterministic identity for simulation inputs.

Identical (seed, runs, options, scenario variables) always produce the same
fingerprint, so a caller can recognise a rerun that will reproduce earlier
results and key persisted snapshots by it.
"""

import hashlib
import json
from typing import Sequence

from .scenario import DecisionOption, ScenarioVar


RUN_ID_LENGTH = 12


def canonical_inputs(seed: int, runs: int, options: Sequence[DecisionOption],
                     scenario_vars: Sequence[ScenarioVar]) -> str:
    """Canonical JSON of the fingerprinted inputs (stable ordering, sorted keys)."""
    payload = {
        "seed": seed,
        "runs": runs,
        "options": sorted(
            ({"label": o.label, "cost": o.cost, "expectedReturn": o.expected_return}
             for o in options),
            key=lambda o: o["label"],
        ),
        "scenarioVars": sorted(
            ({"name": v.name, "appliesTo": v.applies_to, "dist": v.dist,
              "params": dict(v.params), "weight": v.weight}
             for v in scenario_vars),
            key=lambda v: v["name"],
        ),
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def compute_run_fingerprint(seed: int, runs: int, options: Sequence[DecisionOption],
                            scenario_vars: Sequence[ScenarioVar]) -> str:
    """First 12 hex characters of the SHA-256 of the canonical inputs."""
    digest = hashlib.sha256(canonical_inputs(seed, runs, options, scenario_vars).encode("utf-8"))
    return digest.hexdigest()[:RUN_ID_LENGTH]


def format_run_id(run_id: str) -> str:
    return f"Run ID: {run_id}"


def fingerprints_match(run_id_1: str, run_id_2: str) -> bool:
    return run_id_1 == run_id_2
