# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Seeded random variate sampling for scenario variables.

Every draw starts from a standard normal score. Normal and lognormal
variables use the score directly; triangular and uniform variables map it to
a uniform through the normal CDF and invert their own CDF. Keeping a single
score representation lets the dependence injector correlate scores without
touching any variable's marginal distribution.
"""

from typing import List, Mapping, Optional

import numpy as np
from scipy.stats import norm

from .scenario import ScenarioVar


def option_generators(seed: int, num_streams: int) -> List[np.random.Generator]:
    """Create independent, reproducible generators, one per option.

    Args:
        seed: Simulation seed
        num_streams: Number of child streams to spawn

    Returns:
        List of numpy Generators; the same seed always yields the same streams
    """
    children = np.random.SeedSequence(seed).spawn(num_streams)
    return [np.random.default_rng(child) for child in children]


def quantile(dist: str, params: Mapping[str, float], u: np.ndarray) -> np.ndarray:
    """Inverse CDF of a scenario distribution evaluated at uniforms ``u``."""
    u = np.asarray(u, dtype=float)
    if dist == "normal":
        return params["mean"] + params["sd"] * norm.ppf(u)
    if dist == "lognormal":
        return np.exp(params["mu"] + params["sigma"] * norm.ppf(u))
    if dist == "triangular":
        lo, mode, hi = params["min"], params["mode"], params["max"]
        width = hi - lo
        fc = (mode - lo) / width
        left = lo + np.sqrt(u * width * (mode - lo))
        right = hi - np.sqrt((1.0 - u) * width * (hi - mode))
        return np.where(u < fc, left, right)
    if dist == "uniform":
        return params["min"] + (params["max"] - params["min"]) * u
    raise ValueError(f"Unknown distribution: {dist}")


def transform_scores(variable: ScenarioVar, scores: np.ndarray,
                     params: Optional[Mapping[str, float]] = None) -> np.ndarray:
    """Map standard normal scores to draws from ``variable``'s distribution.

    Args:
        variable: Scenario variable to sample
        scores: Standard normal scores (possibly correlated with other variables)
        params: Parameters to use instead of ``variable.params`` (Bayesian override)

    Returns:
        Array of draws with the same shape as ``scores``
    """
    params = variable.params if params is None else params
    if variable.dist == "normal":
        return params["mean"] + params["sd"] * scores
    if variable.dist == "lognormal":
        return np.exp(params["mu"] + params["sigma"] * scores)
    return quantile(variable.dist, params, norm.cdf(scores))


def sample_variable(variable: ScenarioVar, size: int, rng: np.random.Generator,
                    params: Optional[Mapping[str, float]] = None) -> np.ndarray:
    """Draw ``size`` independent samples from a scenario variable."""
    return transform_scores(variable, rng.standard_normal(size), params)
