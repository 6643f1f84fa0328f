# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Tests for the HTTP facade.
"""

import unittest

from ..api.app import app


FIXED_PAYLOAD = {
    "runs": 1000,
    "seed": 42,
    "options": [{"id": "o1", "label": "Fixed", "expectedReturn": 100, "cost": 50}],
    "scenarioVars": [],
}

STOCHASTIC_PAYLOAD = {
    "runs": 1000,
    "seed": 7,
    "options": [
        {"id": "o1", "label": "Expand", "expectedReturn": 120, "cost": 80},
        {"id": "o2", "label": "Hold", "expectedReturn": "60", "cost": 30, "horizonMonths": 24},
    ],
    "scenarioVars": [
        {"id": "v1", "name": "Demand", "appliesTo": "return", "dist": "triangular",
         "params": {"min": -0.2, "mode": 0, "max": 0.4}},
        {"id": "v2", "name": "CostInflation", "appliesTo": "cost", "dist": "normal",
         "params": {"mean": 0.05, "sd": 0.03}, "weight": 1.5},
    ],
    "utility": {"mode": "CARA", "a": 0.01},
    "tcor": {"insuranceRate": 0.02, "contingencyOnCap": 0.1},
    "dependence": {"varAId": "v1", "varBId": "v2", "targetRho": 0.5},
}


class TestApi(unittest.TestCase):
    """Tests for API routes."""

    def setUp(self):
        app.config["TESTING"] = True
        self.client = app.test_client()

    def test_health(self):
        """Test the health endpoint."""
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.get_json()["ok"])

    def test_simulate_fixed(self):
        """Test a deterministic simulation over HTTP."""
        response = self.client.post("/decision/api/v1/simulate", json=FIXED_PAYLOAD)
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertTrue(body["success"])
        result = body["results"][0]
        self.assertAlmostEqual(result["ev"], 50.0)
        self.assertAlmostEqual(result["raroc"], 1.0)
        self.assertEqual(len(body["runId"]), 12)

    def test_simulate_stochastic(self):
        """Test a simulation with variables, utility, TCOR and dependence."""
        response = self.client.post("/decision/api/v1/simulate", json=STOCHASTIC_PAYLOAD)
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(len(body["results"]), 2)
        self.assertEqual(body["results"][1]["horizonMonths"], 24)
        self.assertIsNotNone(body["results"][0]["certaintyEquivalent"])
        self.assertIsNotNone(body["results"][0]["tcor"])
        self.assertIsNotNone(body["results"][0]["achievedSpearman"])

    def test_simulate_with_outcomes(self):
        """Test raw outcomes are returned on request."""
        payload = dict(FIXED_PAYLOAD, includeOutcomes=True, runs=100)
        body = self.client.post("/decision/api/v1/simulate", json=payload).get_json()
        self.assertEqual(len(body["results"][0]["outcomes"]), 100)

    def test_missing_body(self):
        """Test a non-JSON body is a 400."""
        response = self.client.post("/decision/api/v1/simulate", data="not json",
                                    content_type="text/plain")
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.get_json()["success"])

    def test_non_object_body(self):
        """Test a JSON array body is a 400."""
        response = self.client.post("/decision/api/v1/simulate", json=[1, 2])
        self.assertEqual(response.status_code, 400)

    def test_invalid_configuration(self):
        """Test invalid variables map to a 422 with their kind."""
        payload = dict(FIXED_PAYLOAD, scenarioVars=[
            {"id": "v1", "name": "Bad", "appliesTo": "return", "dist": "normal",
             "params": {"mean": 0, "sd": -1}},
        ])
        response = self.client.post("/decision/api/v1/simulate", json=payload)
        self.assertEqual(response.status_code, 422)
        body = response.get_json()
        self.assertFalse(body["success"])
        self.assertEqual(body["kind"], "invalid_configuration")

    def test_no_options(self):
        """Test an empty option list is degenerate input."""
        response = self.client.post("/decision/api/v1/simulate", json=dict(FIXED_PAYLOAD, options=[]))
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()["kind"], "degenerate_input")

    def test_sensitivity(self):
        """Test the sensitivity route."""
        payload = dict(FIXED_PAYLOAD, metric="EV")
        response = self.client.post("/decision/api/v1/sensitivity", json=payload)
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["metric"], "EV")
        self.assertEqual(body["rows"][0]["paramName"], "Option Return")
        self.assertAlmostEqual(body["rows"][0]["deltaPlus"], 10.0)

    def test_stress(self):
        """Test the stress route applies the preset and suffix."""
        payload = dict(FIXED_PAYLOAD, preset="Cost Spike", baseRunId="abc")
        body = self.client.post("/decision/api/v1/stress", json=payload).get_json()
        self.assertEqual(body["runId"], "abc-CS")
        self.assertEqual(body["preset"], "Cost Spike")
        self.assertAlmostEqual(body["results"][0]["ev"], 42.5)

    def test_unknown_stress_preset(self):
        """Test an unknown stress preset is a 400."""
        payload = dict(FIXED_PAYLOAD, preset="Meteor")
        response = self.client.post("/decision/api/v1/stress", json=payload)
        self.assertEqual(response.status_code, 400)

    def test_posterior(self):
        """Test the posterior route."""
        payload = {"priorMean": 0, "priorSd": 0.2, "evidenceMean": 0.1, "evidenceN": 20,
                   "likelihoodSd": 0.25}
        body = self.client.post("/decision/api/v1/posterior", json=payload).get_json()
        self.assertAlmostEqual(body["muN"], 32.0 / 345.0)
        self.assertAlmostEqual(body["variance"], 1.0 / 345.0)

    def test_posterior_invalid(self):
        """Test invalid posterior inputs are a 422."""
        payload = {"priorMean": 0, "priorSd": 0, "evidenceMean": 0.1, "evidenceN": 20,
                   "likelihoodSd": 0.25}
        response = self.client.post("/decision/api/v1/posterior", json=payload)
        self.assertEqual(response.status_code, 422)

    def test_dependence_short_keys(self):
        """Test dependence still accepts varA/varB as variable ids."""
        payload = dict(STOCHASTIC_PAYLOAD, dependence={"varA": "v1", "varB": "v2", "targetRho": 0.5})
        response = self.client.post("/decision/api/v1/simulate", json=payload)
        self.assertEqual(response.status_code, 200)
        self.assertIsNotNone(response.get_json()["results"][0]["achievedSpearman"])

    def test_bayesian_override_posterior_keys(self):
        """Test bayesianOverride reads posteriorMean/posteriorSd."""
        payload = dict(STOCHASTIC_PAYLOAD, bayesianOverride={
            "targetVarId": "v2", "posteriorMean": 0.2, "posteriorSd": 0.05})
        response = self.client.post("/decision/api/v1/simulate", json=payload)
        self.assertEqual(response.status_code, 200)
        baseline = self.client.post("/decision/api/v1/simulate", json=STOCHASTIC_PAYLOAD).get_json()
        self.assertNotAlmostEqual(response.get_json()["results"][0]["ev"],
                                  baseline["results"][0]["ev"])

    def test_bayesian_override_short_keys(self):
        """Test bayesianOverride still accepts muN/sigmaN."""
        payload = dict(STOCHASTIC_PAYLOAD, bayesianOverride={
            "targetVarId": "v2", "muN": 0.2, "sigmaN": 0.05})
        response = self.client.post("/decision/api/v1/simulate", json=payload)
        self.assertEqual(response.status_code, 200)

    def test_non_numeric_copula_matrix(self):
        """Test a non-numeric copula matrix is a structured configuration error."""
        payload = dict(FIXED_PAYLOAD, copula={"matrix": [["x", 1], [1, 1]]})
        response = self.client.post("/decision/api/v1/simulate", json=payload)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()["kind"], "invalid_configuration")

    def test_non_numeric_p_undercut(self):
        """Test a non-numeric pUndercut is a structured configuration error."""
        multipliers = {"retMult": {"Conservative": 1, "Aggressive": 1},
                       "costMult": {"Conservative": 1, "Aggressive": 1}}
        payload = dict(FIXED_PAYLOAD, game={
            "pUndercut": "abc", "multipliers": {"Match": multipliers, "Undercut": multipliers}})
        response = self.client.post("/decision/api/v1/simulate", json=payload)
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.get_json()["kind"], "invalid_configuration")

    def test_knowledge_graph(self):
        """Test the knowledge graph route returns the graph, stats and learning paths."""
        payload = {
            "tenantId": "t-acme",
            "decisions": [{"id": "d1", "title": "Pricing", "scenarioVars": [{"name": "Demand"}]},
                          {"id": "d2", "title": "Expansion", "scenarioVars": [{"name": "Demand"}]}],
            "outcomes": [{"id": "out1", "decisionId": "d1", "triggeredAdjustment": True}],
            "guardrails": [{"id": "g1", "decisionId": "d1", "name": "RAROC floor", "metric": "RAROC"}],
        }
        response = self.client.post("/decision/api/v1/knowledge-graph", json=payload)
        self.assertEqual(response.status_code, 200)
        body = response.get_json()
        self.assertEqual(body["tenantId"], "t-acme")
        self.assertEqual(body["stats"]["totalNodes"], 4)
        self.assertEqual(body["stats"]["totalEdges"], 4)
        self.assertEqual(body["centrality"]["decision-d1"], 3)
        self.assertEqual(body["learningPaths"][0]["path"],
                         ["decision-d1", "outcome-out1", "guardrail-g1"])

        focused = self.client.post("/decision/api/v1/knowledge-graph",
                                   json=dict(payload, focusNodeId="decision-d2", depth=1)).get_json()
        self.assertEqual({n["id"] for n in focused["nodes"]}, {"decision-d1", "decision-d2"})

    def test_knowledge_graph_requires_tenant(self):
        """Test the knowledge graph route rejects a body without tenantId."""
        response = self.client.post("/decision/api/v1/knowledge-graph", json={"decisions": []})
        self.assertEqual(response.status_code, 422)

    def test_fingerprint_matches_simulation(self):
        """Test the fingerprint route matches the simulation run id."""
        fingerprint = self.client.post("/decision/api/v1/fingerprint", json=FIXED_PAYLOAD).get_json()
        simulated = self.client.post("/decision/api/v1/simulate", json=FIXED_PAYLOAD).get_json()
        self.assertEqual(fingerprint["runId"], simulated["runId"])
        self.assertEqual(fingerprint["display"], f"Run ID: {fingerprint['runId']}")


if __name__ == '__main__':
    unittest.main()
