# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""Configuration for scenario simulations."""

import math
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Sequence

import numpy as np

from .errors import DegenerateInputError, InvalidConfigurationError
from .game import GameConfig, OptionStrategy


# ===== RISK METRIC PARAMETERS =====
VAR_TAIL_PROBABILITY = 0.05  # Lower tail used for VaR95 / CVaR95
MIN_ECONOMIC_CAPITAL = 1.0  # Floor applied to |CVaR95| before horizon scaling
CAPITAL_EPSILON = 1e-12  # Capital below this yields the RAROC fallback
RISK_NEUTRAL_THRESHOLD = 1e-10  # Risk aversion below this is treated as zero
DEFAULT_HORIZON_MONTHS = 12  # Outcomes are annual baselines

# ===== NUMERICAL STABILITY PARAMETERS =====
MIN_EIGENVALUE_THRESHOLD = 1e-8  # Minimum eigenvalue for positive definiteness
SYMMETRY_TOLERANCE = 1e-6  # Max |a_ij - a_ji| for a matrix to count as symmetric

# ===== SENSITIVITY PARAMETERS =====
SENSITIVITY_PLUS_SEED_OFFSET = 11
SENSITIVITY_MINUS_SEED_OFFSET = 13
SENSITIVITY_MAX_FAST_RUNS = 2000  # Cap on reduced-sample reruns
SENSITIVITY_STEP_BOUNDS = (1.0, 50.0)  # Allowed step percent range

UTILITY_MODES = ("CARA", "CRRA", "Exponential", "Quadratic", "Power")


@dataclass(frozen=True)
class UtilityParams:
    """Risk-aversion settings for certainty-equivalent metrics.

    Attributes:
        mode: Utility family (CARA, CRRA, Exponential, Quadratic, Power)
        a: Risk-aversion coefficient (relative risk aversion for CRRA/Power)
        scale: Divider applied to outcomes before the utility is evaluated
    """
    mode: str = "CARA"
    a: float = 0.0
    scale: float = 1.0

    def __post_init__(self):
        if self.mode not in UTILITY_MODES:
            raise InvalidConfigurationError(
                f"Unknown utility mode {self.mode!r}; expected one of {list(UTILITY_MODES)}"
            )
        if not math.isfinite(self.a) or self.a < 0:
            raise InvalidConfigurationError(f"Risk aversion a must be >= 0, got {self.a}")
        if not math.isfinite(self.scale) or self.scale <= 0:
            raise InvalidConfigurationError(f"Utility scale must be > 0, got {self.scale}")


@dataclass(frozen=True)
class TCORParams:
    """Total-cost-of-risk settings.

    Attributes:
        insurance_rate: Insurance premium as a fraction of option cost
        contingency_on_cap: Contingency reserve as a fraction of economic capital
    """
    insurance_rate: float = 0.0
    contingency_on_cap: float = 0.0

    def __post_init__(self):
        for name in ("insurance_rate", "contingency_on_cap"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise InvalidConfigurationError(f"{name} must be finite and >= 0, got {value}")


@dataclass(frozen=True)
class DependenceConfig:
    """Target Spearman rank correlation between two scenario variables."""
    var_a_id: str
    var_b_id: str
    target_rho: float

    def __post_init__(self):
        if self.var_a_id == self.var_b_id:
            raise InvalidConfigurationError("Dependence requires two distinct variables")
        if not -0.99 <= self.target_rho <= 0.99:
            raise InvalidConfigurationError(
                f"target_rho must be within [-0.99, 0.99], got {self.target_rho}"
            )


@dataclass(frozen=True, eq=False)
class CopulaMatrixConfig:
    """Full k×k target rank-correlation matrix across all scenario variables.

    Attributes:
        matrix: Symmetric matrix with unit diagonal, ordered like the variables
        use_nearest_pd: Repair a non positive-definite target instead of rejecting it
    """
    matrix: Any
    use_nearest_pd: bool = True

    def __post_init__(self):
        try:
            matrix = np.array(self.matrix, dtype=float)
        except (TypeError, ValueError) as e:
            raise InvalidConfigurationError(f"Copula matrix must be numeric: {e}") from e
        if matrix.ndim != 2 or matrix.shape[0] != matrix.shape[1] or matrix.shape[0] < 2:
            raise InvalidConfigurationError(
                f"Copula matrix must be square with k >= 2, got shape {matrix.shape}"
            )
        if not np.all(np.isfinite(matrix)):
            raise InvalidConfigurationError("Copula matrix contains NaN or infinite values")
        if np.max(np.abs(matrix - matrix.T)) > SYMMETRY_TOLERANCE:
            raise InvalidConfigurationError("Copula matrix is not symmetric")
        if not np.allclose(np.diag(matrix), 1.0):
            raise InvalidConfigurationError("Copula matrix must have a unit diagonal")
        if np.any(np.abs(matrix) > 1.0):
            raise InvalidConfigurationError("Copula matrix entries must lie within [-1, 1]")
        matrix.setflags(write=False)
        object.__setattr__(self, "matrix", matrix)

    @property
    def k(self) -> int:
        return self.matrix.shape[0]


@dataclass(frozen=True)
class BayesianPriorOverride:
    """Posterior parameters replacing a normal/lognormal variable's own for one run."""
    target_var_id: str
    posterior_mean: float
    posterior_sd: float

    def __post_init__(self):
        if not math.isfinite(self.posterior_mean):
            raise InvalidConfigurationError("posterior_mean must be finite")
        if not math.isfinite(self.posterior_sd) or self.posterior_sd <= 0:
            raise InvalidConfigurationError(
                f"posterior_sd must be > 0, got {self.posterior_sd}"
            )


@dataclass(frozen=True)
class SimulationConfig:
    """Configuration for a scenario simulation.

    Attributes:
        runs: Monte Carlo iterations per option. Default 10000.
        seed: Seed for reproducible results. Default 42.
        utility: Enables expected utility / certainty equivalent when set
        tcor: Enables total cost of risk when set
        game: Strategic-interaction payoff table
        option_strategies: Our strategy per option id, used with ``game``
        dependence: Pairwise rank-correlation target
        bayesian_override: Posterior override for one normal/lognormal variable
        copula: Full correlation target; takes precedence over ``dependence``
        horizon_months: Global horizon; per-option horizons win. Default 12.
        verbose: Print engine diagnostics to stderr
    """
    runs: int = 10000
    seed: int = 42
    utility: Optional[UtilityParams] = None
    tcor: Optional[TCORParams] = None
    game: Optional[GameConfig] = None
    option_strategies: Sequence[OptionStrategy] = field(default_factory=tuple)
    dependence: Optional[DependenceConfig] = None
    bayesian_override: Optional[BayesianPriorOverride] = None
    copula: Optional[CopulaMatrixConfig] = None
    horizon_months: Optional[float] = None
    verbose: bool = False

    def __post_init__(self):
        if int(self.runs) != self.runs or self.runs < 1:
            raise DegenerateInputError(f"runs must be a positive integer, got {self.runs}")
        if int(self.seed) != self.seed or self.seed < 0:
            raise InvalidConfigurationError(f"seed must be a non-negative integer, got {self.seed}")
        if self.horizon_months is not None and not (1 <= self.horizon_months <= 240):
            raise InvalidConfigurationError(
                f"horizon_months must be between 1 and 240, got {self.horizon_months}"
            )
        object.__setattr__(self, "runs", int(self.runs))
        object.__setattr__(self, "seed", int(self.seed))
        object.__setattr__(self, "option_strategies", tuple(self.option_strategies))

    def strategy_for(self, option_id: str) -> Optional[str]:
        for assignment in self.option_strategies:
            if assignment.option_id == option_id:
                return assignment.strategy
        return None

    def with_updates(self, **changes: Any) -> "SimulationConfig":
        return replace(self, **changes)

