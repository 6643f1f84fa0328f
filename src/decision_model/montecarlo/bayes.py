# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Conjugate normal-normal updating for scenario variable parameters.

The posterior is computed in closed form from a prior and a batch of
evidence, then applied to one normal or lognormal variable for a single
simulation run. Lognormal variables are updated in log space with the same
formula.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .config import BayesianPriorOverride
from .errors import InvalidConfigurationError
from .scenario import ScenarioVar


BAYES_SUPPORTED_DISTS = ("normal", "lognormal")


@dataclass(frozen=True)
class Posterior:
    """Posterior normal distribution."""
    mean: float
    sd: float
    variance: float

    def to_override(self, target_var_id: str) -> BayesianPriorOverride:
        return BayesianPriorOverride(target_var_id, self.mean, self.sd)


@dataclass(frozen=True)
class Rejection:
    """A configuration the engine declined to apply.

    The simulation still runs, exactly as if the setting were absent.
    """
    setting: str
    target: str
    reason: str


def compute_posterior(prior_mean: float, prior_sd: float, evidence_mean: float,
                      evidence_n: int, likelihood_sd: float) -> Posterior:
    """Conjugate normal-normal update.

    tau_n^2 = 1 / (1/tau_0^2 + n/sigma_L^2)
    mu_n    = tau_n^2 * (mu_0/tau_0^2 + n*xbar/sigma_L^2)

    Args:
        prior_mean: Prior mean mu_0
        prior_sd: Prior standard deviation tau_0 (> 0)
        evidence_mean: Mean of observed evidence xbar
        evidence_n: Number of observations n (>= 0; 0 returns the prior)
        likelihood_sd: Observation noise sigma_L (> 0)

    Raises:
        InvalidConfigurationError: On non-positive standard deviations or negative n
    """
    if prior_sd <= 0 or likelihood_sd <= 0:
        raise InvalidConfigurationError("prior_sd and likelihood_sd must be > 0")
    if evidence_n < 0:
        raise InvalidConfigurationError(f"evidence_n must be >= 0, got {evidence_n}")

    prior_var = prior_sd * prior_sd
    likelihood_var = likelihood_sd * likelihood_sd
    posterior_var = 1.0 / (1.0 / prior_var + evidence_n / likelihood_var)
    posterior_mean = posterior_var * (prior_mean / prior_var
                                      + evidence_n * evidence_mean / likelihood_var)
    return Posterior(mean=posterior_mean, sd=math.sqrt(posterior_var), variance=posterior_var)


def resolve_override(variables: Sequence[ScenarioVar],
                     override: Optional[BayesianPriorOverride]
                     ) -> Tuple[Dict[str, Dict[str, float]], List[Rejection]]:
    """Work out which variable parameters an override replaces.

    Returns:
        (params_by_var_id, rejections). ``params_by_var_id`` holds replacement
        parameters for the target variable only; it is empty when the
        override is absent or rejected.
    """
    if override is None:
        return {}, []

    target = next((v for v in variables if v.id == override.target_var_id), None)
    if target is None:
        return {}, [Rejection(
            setting="bayesian_override",
            target=override.target_var_id,
            reason=f"No scenario variable with id '{override.target_var_id}'",
        )]

    if target.dist == "normal":
        params = target.with_params(mean=override.posterior_mean, sd=override.posterior_sd).params
    elif target.dist == "lognormal":
        params = target.with_params(mu=override.posterior_mean, sigma=override.posterior_sd).params
    else:
        return {}, [Rejection(
            setting="bayesian_override",
            target=target.id,
            reason=(f"Variable '{target.name}' is {target.dist}. Bayesian prior only "
                    f"works with normal or lognormal distributions."),
        )]

    return {target.id: dict(params)}, []
