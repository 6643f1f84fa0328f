# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Persisted simulation snapshots.

A snapshot is the record kept for a completed run: identity, sample
settings, per-option metrics and the dependence/Bayesian diagnostics that
shaped them. Storage is the caller's concern; this module builds, validates
and compares the records.
"""

import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .montecarlo.bayes import Posterior
from .montecarlo.results import SimulationRun


RUN_ID_PREFIX = "run-"
TENANT_ID_PREFIX = "t-"
SNAPSHOT_RUNS_BOUNDS = (100, 100000)
HORIZON_BOUNDS = (1, 240)
COPULA_PREVIEW_SIZE = 3

REQUIRED_OPTION_METRICS = ("optionLabel", "ev", "var95", "cvar95", "economicCapital", "raroc")
COMPARED_METRICS = ("ev", "var95", "cvar95", "economicCapital", "raroc", "ce", "tcor")

_RUN_ID_PATTERN = re.compile(r"^run-[a-f0-9]+$")
_TENANT_ID_PATTERN = re.compile(r"^t-[A-Za-z0-9_-]+$")


@dataclass
class SimulationSnapshot:
    """Serializable record of one simulation run (camelCase field names in ``to_dict``)."""
    run_id: str
    decision_id: str
    tenant_id: str
    seed: int
    runs: int
    timestamp: int  # Unix milliseconds
    metrics_by_option: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    achieved_spearman: Optional[float] = None
    bayes: Optional[Dict[str, Any]] = None
    copula: Optional[Dict[str, Any]] = None
    horizon_months: Optional[float] = None
    sensitivity_baseline: Optional[Dict[str, str]] = None

    @classmethod
    def from_run(cls, run: SimulationRun, decision_id: str, tenant_id: str,
                 posterior: Optional[Posterior] = None,
                 bayes_target: Optional[str] = None,
                 horizon_months: Optional[float] = None,
                 sensitivity_basis: Optional[str] = None,
                 sensitivity_option_id: Optional[str] = None,
                 timestamp: Optional[int] = None) -> "SimulationSnapshot":
        """Build a snapshot from a completed run.

        Args:
            run: Completed simulation run
            decision_id: Owning decision
            tenant_id: Owning tenant ("t-" prefixed)
            posterior: Posterior used for a Bayesian override, if any
            bayes_target: Variable id the posterior was aimed at
            horizon_months: Global horizon of the run
            sensitivity_basis: RAROC or CE, when a sensitivity baseline is recorded
            sensitivity_option_id: Option the sensitivity baseline refers to
            timestamp: Creation time in Unix milliseconds (defaults to now)
        """
        metrics = {}
        for result in run:
            metrics[result.option_id] = {
                "optionLabel": result.option_label,
                "ev": result.ev,
                "var95": result.var95,
                "cvar95": result.cvar95,
                "economicCapital": result.economic_capital,
                "raroc": result.raroc,
                "ce": result.certainty_equivalent,
                "tcor": result.tcor,
            }

        bayes = None
        if posterior is not None and bayes_target is not None:
            rejected = any(r.setting == "bayesian_override" for r in run.rejections)
            bayes = {
                "varKey": bayes_target,
                "muN": posterior.mean,
                "sigmaN": posterior.sd,
                "applied": not rejected,
            }

        copula = None
        snapshot = run.copula_snapshot
        if snapshot is not None:
            preview = snapshot.achieved[:COPULA_PREVIEW_SIZE, :COPULA_PREVIEW_SIZE].tolist()
            copula = {
                "k": snapshot.k,
                "targetSet": True,
                "froErr": snapshot.fro_err,
                "achievedPreview": preview,
            }

        sensitivity_baseline = None
        if sensitivity_basis is not None and sensitivity_option_id is not None:
            sensitivity_baseline = {"basis": sensitivity_basis, "optionId": sensitivity_option_id}

        return cls(
            run_id=RUN_ID_PREFIX + run.run_id,
            decision_id=decision_id,
            tenant_id=tenant_id,
            seed=run.seed,
            runs=run.runs,
            timestamp=int(time.time() * 1000) if timestamp is None else timestamp,
            metrics_by_option=metrics,
            achieved_spearman=run.achieved_spearman,
            bayes=bayes,
            copula=copula,
            horizon_months=horizon_months,
            sensitivity_baseline=sensitivity_baseline,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "runId": self.run_id,
            "decisionId": self.decision_id,
            "tenantId": self.tenant_id,
            "seed": self.seed,
            "runs": self.runs,
            "timestamp": self.timestamp,
            "achievedSpearman": self.achieved_spearman,
            "bayes": self.bayes,
            "copula": self.copula,
            "horizonMonths": self.horizon_months,
            "sensitivityBaseline": self.sensitivity_baseline,
            "metricsByOption": self.metrics_by_option,
        }

    def validate(self) -> List[str]:
        """Return schema violations; an empty list means the snapshot is valid."""
        errors = []

        if not self.run_id:
            errors.append("runId is required")
        elif not _RUN_ID_PATTERN.match(self.run_id):
            errors.append(f"runId must match '{RUN_ID_PREFIX}<hex>', got {self.run_id!r}")
        if not self.decision_id:
            errors.append("decisionId is required")
        if not self.tenant_id:
            errors.append("tenantId is required")
        elif not _TENANT_ID_PATTERN.match(self.tenant_id):
            errors.append(f"tenantId must start with '{TENANT_ID_PREFIX}', got {self.tenant_id!r}")

        if self.seed is None or self.seed < 0:
            errors.append("seed must be >= 0")
        low, high = SNAPSHOT_RUNS_BOUNDS
        if self.runs is None or not low <= self.runs <= high:
            errors.append(f"runs must be within [{low}, {high}], got {self.runs}")
        if self.timestamp is None or self.timestamp < 0:
            errors.append("timestamp must be >= 0")

        if self.achieved_spearman is not None and not -1.0 <= self.achieved_spearman <= 1.0:
            errors.append(f"achievedSpearman must be within [-1, 1], got {self.achieved_spearman}")

        if self.bayes is not None:
            for key in ("varKey", "muN", "sigmaN", "applied"):
                if key not in self.bayes:
                    errors.append(f"bayes.{key} is required")
            if self.bayes.get("sigmaN") is not None and self.bayes["sigmaN"] < 0:
                errors.append("bayes.sigmaN must be >= 0")

        if self.copula is not None:
            k = self.copula.get("k")
            if k is None or k < 2:
                errors.append(f"copula.k must be >= 2, got {k}")
            if "targetSet" not in self.copula:
                errors.append("copula.targetSet is required")
            fro_err = self.copula.get("froErr")
            if fro_err is not None and fro_err < 0:
                errors.append("copula.froErr must be >= 0")

        if self.horizon_months is not None:
            low, high = HORIZON_BOUNDS
            if not low <= self.horizon_months <= high:
                errors.append(f"horizonMonths must be within [{low}, {high}]")

        if self.sensitivity_baseline is not None:
            if self.sensitivity_baseline.get("basis") not in ("RAROC", "CE"):
                errors.append("sensitivityBaseline.basis must be RAROC or CE")
            if not self.sensitivity_baseline.get("optionId"):
                errors.append("sensitivityBaseline.optionId is required")

        if not self.metrics_by_option:
            errors.append("metricsByOption must contain at least one option")
        for option_id, metrics in self.metrics_by_option.items():
            for key in REQUIRED_OPTION_METRICS:
                if metrics.get(key) is None:
                    errors.append(f"metricsByOption.{option_id}.{key} is required")
            capital = metrics.get("economicCapital")
            if capital is not None and capital < 0:
                errors.append(f"metricsByOption.{option_id}.economicCapital must be >= 0")

        return errors

    def is_valid(self) -> bool:
        return not self.validate()


def compare_snapshots(before: SimulationSnapshot,
                      after: SimulationSnapshot) -> Dict[str, Dict[str, float]]:
    """Per-option metric deltas (after - before) for options present in both snapshots.

    Metrics missing on either side are skipped.
    """
    changes = {}
    for option_id, old in before.metrics_by_option.items():
        new = after.metrics_by_option.get(option_id)
        if new is None:
            continue
        deltas = {}
        for key in COMPARED_METRICS:
            if old.get(key) is not None and new.get(key) is not None:
                deltas[key] = new[key] - old[key]
        changes[option_id] = deltas
    return changes
