# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Tests for guardrail breach detection and auto-adjustment.
"""

import unittest
from datetime import datetime, timedelta

from ..guardrails import (
    AutoAdjustConfig,
    Guardrail,
    apply_adjustment,
    breach_severity,
    check_results,
    evaluate_outcome,
    is_breached,
    tightened_threshold,
)
from ..montecarlo.errors import InvalidConfigurationError
from ..montecarlo.scenario import DecisionOption
from ..montecarlo.simulator import run_simulation


NOW = datetime(2025, 6, 1, 12, 0, 0)
CAP = Guardrail("g1", "o1", "VaR95", 100.0, direction="above", alert_level="critical")
FLOOR = Guardrail("g2", "o1", "RAROC", 0.12, direction="below", alert_level="caution")


class TestBreaches(unittest.TestCase):
    """Tests for breach detection and severity."""

    def test_is_breached(self):
        """Test breach direction handling."""
        self.assertTrue(is_breached(CAP, 101))
        self.assertFalse(is_breached(CAP, 100))
        self.assertTrue(is_breached(FLOOR, 0.1))
        self.assertFalse(is_breached(FLOOR, 0.2))

    def test_severity_levels(self):
        """Test severity bands."""
        self.assertEqual(breach_severity(104, 100, "above")[0], "minor")
        self.assertEqual(breach_severity(110, 100, "above")[0], "moderate")
        self.assertEqual(breach_severity(120, 100, "above")[0], "severe")
        self.assertEqual(breach_severity(150, 100, "above")[0], "critical")
        self.assertEqual(breach_severity(80, 100, "below")[0], "severe")

    def test_severity_percent(self):
        """Test breach percent."""
        severity, percent = breach_severity(110, 100, "above")
        self.assertAlmostEqual(percent, 10.0)

    def test_zero_threshold(self):
        """Test a zero threshold breach is critical."""
        self.assertEqual(breach_severity(5, 0, "above")[0], "critical")

    def test_invalid_guardrail(self):
        """Test guardrail validation."""
        with self.assertRaises(InvalidConfigurationError):
            Guardrail("g", "o", "EV", 1.0, direction="sideways")
        with self.assertRaises(InvalidConfigurationError):
            Guardrail("g", "o", "EV", 1.0, alert_level="panic")


class TestTightening(unittest.TestCase):
    """Tests for threshold tightening."""

    def test_flat_tightening(self):
        """Test flat percent tightening in both directions."""
        new, percent = tightened_threshold(100, "above", 10)
        self.assertAlmostEqual(new, 90.0)
        self.assertAlmostEqual(percent, 10.0)
        new, _ = tightened_threshold(100, "below", 10)
        self.assertAlmostEqual(new, 110.0)

    def test_severity_tightening(self):
        """Test severity-based tightening."""
        expected = {"minor": 95.0, "moderate": 90.0, "severe": 85.0, "critical": 80.0}
        for severity, threshold in expected.items():
            new, _ = tightened_threshold(100, "above", 10, severity_based=True, severity=severity)
            self.assertAlmostEqual(new, threshold)

    def test_config_defaults_and_bounds(self):
        """Test auto-adjust defaults and bounds."""
        config = AutoAdjustConfig()
        self.assertEqual(config.breach_window_days, 90)
        self.assertEqual(config.breach_threshold_count, 2)
        self.assertEqual(config.tightening_percent, 10.0)
        self.assertTrue(config.severity_based_adjustment)
        with self.assertRaises(InvalidConfigurationError):
            AutoAdjustConfig(breach_window_days=0)
        with self.assertRaises(InvalidConfigurationError):
            AutoAdjustConfig(tightening_percent=75)


class TestEvaluateOutcome(unittest.TestCase):
    """Tests for the auto-adjustment workflow."""

    def test_no_breach(self):
        """Test values inside the threshold record nothing."""
        evaluation = evaluate_outcome(CAP, 90, now=NOW)
        self.assertFalse(evaluation.breached)
        self.assertIsNone(evaluation.adjustment)

    def test_first_breach_records_violation_only(self):
        """Test a single breach does not tighten."""
        evaluation = evaluate_outcome(CAP, 120, now=NOW)
        self.assertTrue(evaluation.breached)
        self.assertEqual(evaluation.violation.actual_value, 120)
        self.assertEqual(evaluation.violation.violated_at, NOW)
        self.assertIsNone(evaluation.adjustment)

    def test_repeated_breach_tightens(self):
        """Test repeated breaches in the window tighten the threshold."""
        first = evaluate_outcome(CAP, 120, now=NOW - timedelta(days=10)).violation
        evaluation = evaluate_outcome(CAP, 120, [first], now=NOW)
        adjustment = evaluation.adjustment
        self.assertIsNotNone(adjustment)
        self.assertEqual(adjustment.severity, "severe")
        self.assertAlmostEqual(adjustment.new_threshold, 85.0)
        self.assertAlmostEqual(adjustment.adjustment_percent, 15.0)
        self.assertEqual(adjustment.triggered_by, (first.id, evaluation.violation.id))
        self.assertAlmostEqual(apply_adjustment(CAP, adjustment).threshold_value, 85.0)
        self.assertEqual(CAP.threshold_value, 100.0)

    def test_flat_tightening_when_severity_disabled(self):
        """Test flat tightening when severity-based adjustment is off."""
        config = AutoAdjustConfig(severity_based_adjustment=False, tightening_percent=20)
        first = evaluate_outcome(FLOOR, 0.1, now=NOW - timedelta(days=1)).violation
        adjustment = evaluate_outcome(FLOOR, 0.1, [first], config, now=NOW).adjustment
        self.assertAlmostEqual(adjustment.new_threshold, 0.12 * 1.2)

    def test_old_breaches_outside_window(self):
        """Test breaches outside the window are not counted."""
        old = evaluate_outcome(CAP, 120, now=NOW - timedelta(days=120)).violation
        evaluation = evaluate_outcome(CAP, 120, [old], now=NOW)
        self.assertIsNone(evaluation.adjustment)
        self.assertEqual(len(evaluation.recent_violations), 1)

    def test_other_guardrails_ignored(self):
        """Test violations of other guardrails are not counted."""
        other = evaluate_outcome(FLOOR, 0.0, now=NOW - timedelta(days=1)).violation
        evaluation = evaluate_outcome(CAP, 120, [other], now=NOW)
        self.assertIsNone(evaluation.adjustment)


class TestCheckResults(unittest.TestCase):
    """Tests for checking simulated metrics."""

    def test_check_results(self):
        """Test guardrails against simulated metrics."""
        option = DecisionOption("o1", "Fixed", expected_return=100, cost=50)
        run = run_simulation([option], [], runs=100)
        guardrails = [
            Guardrail("g1", "o1", "EV", 40.0, direction="above"),
            Guardrail("g2", "o1", "RAROC", 2.0, direction="below"),
            Guardrail("g3", "o1", "TCOR", 0.0, direction="above"),
            Guardrail("g4", "o9", "EV", 0.0, direction="above"),
            Guardrail("g5", "o1", "VaR95", 60.0, direction="below"),
        ]
        breaches = check_results(run, guardrails)
        self.assertEqual([b["guardrail"].id for b in breaches], ["g1", "g2", "g5"])
        self.assertEqual(breaches[0]["value"], 50.0)
        self.assertEqual(breaches[0]["severity"], "severe")


if __name__ == '__main__':
    unittest.main()
