# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Tests for run fingerprints.
"""

import json
import unittest

from ..montecarlo.fingerprint import (
    RUN_ID_LENGTH,
    canonical_inputs,
    compute_run_fingerprint,
    fingerprints_match,
    format_run_id,
)
from ..montecarlo.scenario import DEFAULT_SCENARIO_VARS, DecisionOption


OPTIONS = [
    DecisionOption("o1", "Expand", expected_return=120, cost=80),
    DecisionOption("o2", "Hold", expected_return=60, cost=30),
]


class TestFingerprint(unittest.TestCase):
    """Tests for compute_run_fingerprint."""

    def test_format(self):
        """Test fingerprint length and display format."""
        run_id = compute_run_fingerprint(42, 10000, OPTIONS, DEFAULT_SCENARIO_VARS)
        self.assertEqual(len(run_id), RUN_ID_LENGTH)
        int(run_id, 16)
        self.assertEqual(format_run_id(run_id), f"Run ID: {run_id}")

    def test_stable(self):
        """Test identical inputs give identical fingerprints."""
        first = compute_run_fingerprint(42, 10000, OPTIONS, DEFAULT_SCENARIO_VARS)
        second = compute_run_fingerprint(42, 10000, OPTIONS, DEFAULT_SCENARIO_VARS)
        self.assertTrue(fingerprints_match(first, second))

    def test_order_independent(self):
        """Test option and variable order do not change the fingerprint."""
        first = compute_run_fingerprint(42, 10000, OPTIONS, DEFAULT_SCENARIO_VARS)
        second = compute_run_fingerprint(42, 10000, OPTIONS[::-1], DEFAULT_SCENARIO_VARS[::-1])
        self.assertEqual(first, second)

    def test_ids_do_not_matter(self):
        """Test ids are excluded from the fingerprint."""
        renamed = [o.with_updates(id=o.id + "-copy") for o in OPTIONS]
        self.assertEqual(compute_run_fingerprint(1, 100, OPTIONS, []),
                         compute_run_fingerprint(1, 100, renamed, []))

    def test_inputs_change_fingerprint(self):
        """Test seed, runs and parameters change the fingerprint."""
        base = compute_run_fingerprint(42, 10000, OPTIONS, DEFAULT_SCENARIO_VARS)
        self.assertNotEqual(base, compute_run_fingerprint(43, 10000, OPTIONS, DEFAULT_SCENARIO_VARS))
        self.assertNotEqual(base, compute_run_fingerprint(42, 5000, OPTIONS, DEFAULT_SCENARIO_VARS))
        changed = [OPTIONS[0].with_updates(cost=81), OPTIONS[1]]
        self.assertNotEqual(base, compute_run_fingerprint(42, 10000, changed, DEFAULT_SCENARIO_VARS))
        weighted = [DEFAULT_SCENARIO_VARS[0].with_weight(2.0), DEFAULT_SCENARIO_VARS[1]]
        self.assertNotEqual(base, compute_run_fingerprint(42, 10000, OPTIONS, weighted))

    def test_canonical_inputs(self):
        """Test the canonical input structure."""
        payload = json.loads(canonical_inputs(7, 100, OPTIONS, DEFAULT_SCENARIO_VARS))
        self.assertEqual([o["label"] for o in payload["options"]], ["Expand", "Hold"])
        self.assertEqual([v["name"] for v in payload["scenarioVars"]], ["CostInflation", "Demand"])
        self.assertEqual(payload["seed"], 7)


if __name__ == '__main__':
    unittest.main()
