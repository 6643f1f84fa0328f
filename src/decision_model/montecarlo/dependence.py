# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Rank-correlation injection across scenario variables (Gaussian copula).

Targets are Spearman rank correlations. They are mapped to the normal-score
scale with rho = 2·sin(π·rho_s/6), factorised with Cholesky, and applied to
the independent standard normal scores before each variable's marginal
transform, so marginals are untouched and achieved Spearman matches the
target in expectation.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
from scipy.stats import rankdata

from .config import CopulaMatrixConfig, DependenceConfig, MIN_EIGENVALUE_THRESHOLD
from .errors import InvalidConfigurationError
from .scenario import ScenarioVar


@dataclass(frozen=True, eq=False)
class CopulaSnapshot:
    """Diagnostics for a full copula run.

    Attributes:
        k: Matrix order (number of variables)
        target: Requested rank-correlation matrix
        achieved: Spearman matrix measured on the sampled draws
        fro_err: Frobenius norm of (achieved - target)
        repaired: Whether the target had to be projected to positive definite
    """
    k: int
    target: np.ndarray
    achieved: np.ndarray
    fro_err: float
    repaired: bool = False

    def to_dict(self):
        return {
            "k": self.k,
            "target": self.target.tolist(),
            "achieved": self.achieved.tolist(),
            "froErr": self.fro_err,
            "repaired": self.repaired,
        }


@dataclass(frozen=True, eq=False)
class DependencePlan:
    """Normal-scale correlation to impose on one option's scores."""
    normal_corr: np.ndarray
    target: np.ndarray
    var_indices: Tuple[int, ...]
    mode: str  # "pairwise" or "copula"
    repaired: bool = False


def spearman_to_normal(rho_s):
    """Normal-score correlation that yields Spearman ``rho_s`` under a Gaussian copula."""
    return 2.0 * np.sin(np.pi * np.asarray(rho_s, dtype=float) / 6.0)


def is_positive_definite(matrix: np.ndarray) -> bool:
    try:
        np.linalg.cholesky(matrix)
    except np.linalg.LinAlgError:
        return False
    return True


def nearest_correlation_matrix(matrix: np.ndarray, max_attempts: int = 10) -> np.ndarray:
    """Project a symmetric matrix onto a nearby positive-definite correlation matrix.

    Negative eigenvalues are clipped to MIN_EIGENVALUE_THRESHOLD and the
    result rescaled to a unit diagonal. If rounding still defeats Cholesky,
    an increasing diagonal adjustment is added and the diagonal renormalised.
    """
    sym = (matrix + matrix.T) / 2.0
    eigenvalues, eigenvectors = np.linalg.eigh(sym)
    eigenvalues = np.maximum(eigenvalues, MIN_EIGENVALUE_THRESHOLD)
    repaired = eigenvectors @ np.diag(eigenvalues) @ eigenvectors.T

    adjustment = MIN_EIGENVALUE_THRESHOLD
    for _ in range(max_attempts):
        scale = np.sqrt(np.diag(repaired))
        repaired = repaired / np.outer(scale, scale)
        np.fill_diagonal(repaired, 1.0)
        repaired = (repaired + repaired.T) / 2.0
        if is_positive_definite(repaired):
            return repaired
        repaired = repaired + np.eye(len(repaired)) * adjustment
        adjustment *= 10.0

    raise InvalidConfigurationError("Could not repair correlation matrix to positive definite")


def spearman_matrix(samples: np.ndarray) -> np.ndarray:
    """Spearman rank-correlation matrix of the columns of ``samples``.

    Constant columns have no rank variation; their correlations are reported as 0.
    """
    ranks = rankdata(samples, axis=0)
    with np.errstate(invalid="ignore", divide="ignore"):
        corr = np.corrcoef(ranks, rowvar=False)
    corr = np.atleast_2d(np.nan_to_num(corr, nan=0.0))
    np.fill_diagonal(corr, 1.0)
    return corr


def build_plan(variables: Sequence[ScenarioVar],
               dependence: Optional[DependenceConfig],
               copula: Optional[CopulaMatrixConfig],
               log: Callable[[str], None] = lambda message: None) -> Optional[DependencePlan]:
    """Resolve dependence settings into a correlation plan.

    The full copula takes precedence over the pairwise target.

    Raises:
        InvalidConfigurationError: If the copula order does not match the
            variables, a pairwise id is unknown, or a non positive-definite
            target may not be repaired
    """
    if copula is not None:
        if copula.k != len(variables):
            raise InvalidConfigurationError(
                f"Copula matrix is {copula.k}x{copula.k} but there are "
                f"{len(variables)} scenario variables"
            )
        target = np.array(copula.matrix, dtype=float)
        normal_corr = spearman_to_normal(target)
        np.fill_diagonal(normal_corr, 1.0)
        repaired = False
        if not is_positive_definite(normal_corr):
            min_eigenvalue = float(np.min(np.linalg.eigvalsh(normal_corr)))
            if not copula.use_nearest_pd:
                raise InvalidConfigurationError(
                    f"Copula matrix is not positive definite (min eigenvalue: "
                    f"{min_eigenvalue:.6f}) and nearest-PD repair is disabled"
                )
            log(f"Warning: copula matrix is not positive definite "
                f"(min eigenvalue: {min_eigenvalue:.6f}); applied nearest-PD projection")
            normal_corr = nearest_correlation_matrix(normal_corr)
            repaired = True
        return DependencePlan(normal_corr, target, tuple(range(len(variables))),
                              "copula", repaired)

    if dependence is not None:
        ids = [v.id for v in variables]
        for var_id in (dependence.var_a_id, dependence.var_b_id):
            if var_id not in ids:
                raise InvalidConfigurationError(
                    f"Dependence refers to unknown scenario variable '{var_id}'"
                )
        rho = float(spearman_to_normal(dependence.target_rho))
        normal_corr = np.array([[1.0, rho], [rho, 1.0]])
        target = np.array([[1.0, dependence.target_rho], [dependence.target_rho, 1.0]])
        indices = (ids.index(dependence.var_a_id), ids.index(dependence.var_b_id))
        return DependencePlan(normal_corr, target, indices, "pairwise")

    return None


def correlate_scores(scores: np.ndarray, plan: DependencePlan) -> np.ndarray:
    """Apply the plan's correlation to the selected columns of a runs×k score matrix."""
    cholesky = np.linalg.cholesky(plan.normal_corr)
    correlated = scores.copy()
    columns = list(plan.var_indices)
    correlated[:, columns] = scores[:, columns] @ cholesky.T
    return correlated


def measure(draws: np.ndarray, plan: DependencePlan):
    """Achieved dependence on the final draws.

    Returns:
        achieved Spearman rho (float) for pairwise plans, CopulaSnapshot for copula plans
    """
    achieved = spearman_matrix(draws[:, list(plan.var_indices)])
    if plan.mode == "pairwise":
        return float(achieved[0, 1])
    fro_err = float(np.linalg.norm(achieved - plan.target, ord="fro"))
    return CopulaSnapshot(k=len(plan.var_indices), target=plan.target,
                          achieved=achieved, fro_err=fro_err, repaired=plan.repaired)
