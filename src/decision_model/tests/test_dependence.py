# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Tests for rank-correlation injection.
"""

import unittest
import numpy as np

from ..montecarlo.config import CopulaMatrixConfig, DependenceConfig, SimulationConfig
from ..montecarlo.dependence import (
    build_plan,
    is_positive_definite,
    nearest_correlation_matrix,
    spearman_matrix,
    spearman_to_normal,
)
from ..montecarlo.errors import InvalidConfigurationError
from ..montecarlo.scenario import DecisionOption, ScenarioVar
from ..montecarlo.simulator import ScenarioSimulator


VARIABLES = [
    ScenarioVar("v1", "Demand", "return", "triangular", {"min": -0.2, "mode": 0.0, "max": 0.4}),
    ScenarioVar("v2", "CostInflation", "cost", "normal", {"mean": 0.05, "sd": 0.03}),
    ScenarioVar("v3", "Churn", "return", "uniform", {"min": -0.1, "max": 0.1}),
]
OPTIONS = [DecisionOption("o1", "Expand", expected_return=100, cost=50)]


class TestHelpers(unittest.TestCase):
    """Tests for matrix helpers."""

    def test_spearman_to_normal(self):
        """Test Spearman to normal-score correlation conversion."""
        self.assertAlmostEqual(float(spearman_to_normal(0.0)), 0.0)
        self.assertAlmostEqual(float(spearman_to_normal(1.0)), 1.0)
        self.assertGreater(float(spearman_to_normal(0.5)), 0.5)

    def test_nearest_correlation_matrix(self):
        """Test nearest-PD repair yields a symmetric positive-definite correlation matrix."""
        matrix = np.array([[1.0, 0.9, -0.9], [0.9, 1.0, 0.9], [-0.9, 0.9, 1.0]])
        self.assertFalse(is_positive_definite(matrix))
        repaired = nearest_correlation_matrix(matrix)
        self.assertTrue(is_positive_definite(repaired))
        np.testing.assert_allclose(np.diag(repaired), 1.0)
        np.testing.assert_allclose(repaired, repaired.T)

    def test_spearman_matrix_constant_column(self):
        """Test rank correlation with a constant column."""
        samples = np.column_stack([np.arange(10.0), np.ones(10)])
        corr = spearman_matrix(samples)
        self.assertEqual(corr[0, 1], 0.0)
        self.assertEqual(corr[1, 1], 1.0)

    def test_pairwise_unknown_variable(self):
        """Test pairwise dependence on an unknown variable is rejected."""
        with self.assertRaises(InvalidConfigurationError):
            build_plan(VARIABLES, DependenceConfig("v1", "missing", 0.5), None)

    def test_copula_takes_precedence(self):
        """Test the copula wins over pairwise dependence."""
        copula = CopulaMatrixConfig(np.eye(3))
        plan = build_plan(VARIABLES, DependenceConfig("v1", "v2", 0.5), copula)
        self.assertEqual(plan.mode, "copula")

    def test_no_dependence(self):
        """Test no dependence settings build no plan."""
        self.assertIsNone(build_plan(VARIABLES, None, None))


class TestDependenceInSimulation(unittest.TestCase):
    """Tests for achieved dependence on simulated draws."""

    def test_pairwise_achieved_spearman(self):
        """Test positive pairwise targets are achieved."""
        config = SimulationConfig(runs=20000, seed=3,
                                  dependence=DependenceConfig("v1", "v2", 0.6))
        run = ScenarioSimulator(config).run(OPTIONS, VARIABLES)
        self.assertAlmostEqual(run.achieved_spearman, 0.6, delta=0.03)
        self.assertIsNone(run.copula_snapshot)

    def test_negative_pairwise(self):
        """Test negative pairwise targets are achieved."""
        config = SimulationConfig(runs=20000, seed=3,
                                  dependence=DependenceConfig("v1", "v3", -0.4))
        run = ScenarioSimulator(config).run(OPTIONS, VARIABLES)
        self.assertAlmostEqual(run.achieved_spearman, -0.4, delta=0.03)

    def test_copula_frobenius_error(self):
        """Test the copula achieves its target matrix."""
        target = [[1.0, 0.5, 0.3], [0.5, 1.0, 0.2], [0.3, 0.2, 1.0]]
        config = SimulationConfig(runs=50000, seed=42, copula=CopulaMatrixConfig(target))
        run = ScenarioSimulator(config).run(OPTIONS, VARIABLES)
        snapshot = run.copula_snapshot
        self.assertIsNotNone(snapshot)
        self.assertEqual(snapshot.k, 3)
        self.assertFalse(snapshot.repaired)
        self.assertLess(snapshot.fro_err, 0.05)
        self.assertAlmostEqual(snapshot.achieved[0, 1], 0.5, delta=0.03)
        self.assertIsNone(run.achieved_spearman)

    def test_copula_order_mismatch(self):
        """Test copula size must match the variable count."""
        config = SimulationConfig(runs=100, copula=CopulaMatrixConfig(np.eye(2)))
        with self.assertRaises(InvalidConfigurationError):
            ScenarioSimulator(config).run(OPTIONS, VARIABLES)

    def test_non_pd_copula_rejected_without_repair(self):
        """Test a non-PD target is rejected when repair is off."""
        target = [[1.0, 0.9, -0.9], [0.9, 1.0, 0.9], [-0.9, 0.9, 1.0]]
        config = SimulationConfig(runs=100,
                                  copula=CopulaMatrixConfig(target, use_nearest_pd=False))
        with self.assertRaises(InvalidConfigurationError):
            ScenarioSimulator(config).run(OPTIONS, VARIABLES)

    def test_non_pd_copula_repaired(self):
        """Test a non-PD target is repaired when allowed."""
        target = [[1.0, 0.9, -0.9], [0.9, 1.0, 0.9], [-0.9, 0.9, 1.0]]
        config = SimulationConfig(runs=5000, copula=CopulaMatrixConfig(target))
        run = ScenarioSimulator(config).run(OPTIONS, VARIABLES)
        snapshot = run.copula_snapshot
        self.assertTrue(snapshot.repaired)
        self.assertGreater(snapshot.fro_err, 0.0)
        np.testing.assert_allclose(snapshot.target, target)


if __name__ == '__main__':
    unittest.main()
