# Copyright 2025 Spencer Williams
#
# Use of this source code is governed by an MIT license:
# https://github.com/sw23/life-model/blob/main/LICENSE

"""
Knowledge graph linking decisions to the signals, incidents, outcomes and
guardrails around them.

Node types:
    Decision, RiskSignal, Incident, Outcome, Guardrail

Edge types (directed):
    LINKED_TO        RiskSignal -> Decision (the decision tracks the signal)
    TRIGGERED        Incident -> Decision (the incident affected the decision)
    RESULTED_IN      Decision -> Outcome
    GOVERNED_BY      Decision -> Guardrail
    INFLUENCED       Outcome -> Guardrail (the outcome triggered an auto-adjustment)
    SHARES_VARIABLE  Decision -> Decision (common scenario variables or signal keys)

Input records may be mappings with camelCase keys or objects with
snake_case attributes, so ``Guardrail`` instances can be passed directly.
Edges whose endpoints are not in the graph are skipped.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import networkx as nx

from .montecarlo.errors import InvalidConfigurationError


NODE_TYPES = ("Decision", "RiskSignal", "Incident", "Outcome", "Guardrail")
EDGE_TYPES = ("LINKED_TO", "TRIGGERED", "RESULTED_IN", "GOVERNED_BY", "INFLUENCED", "SHARES_VARIABLE")

# Relationship strengths in [0, 1]
LINKED_TO_WEIGHT = 0.8
TRIGGERED_WEIGHT = 0.6
TRIGGERED_CRITICAL_WEIGHT = 1.0
RESULTED_IN_WEIGHT = 1.0
GOVERNED_BY_WEIGHT = 0.9
INFLUENCED_WEIGHT = 0.7


@dataclass(frozen=True)
class GraphNode:
    id: str
    type: str
    label: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    variables: Tuple[str, ...] = ()
    timestamp: Optional[int] = None

    def __post_init__(self):
        if self.type not in NODE_TYPES:
            raise InvalidConfigurationError(
                f"Unknown node type {self.type!r}; expected one of {list(NODE_TYPES)}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "label": self.label,
            "metadata": dict(self.metadata),
            "variables": list(self.variables),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True)
class GraphEdge:
    id: str
    source: str
    target: str
    type: str
    weight: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.type not in EDGE_TYPES:
            raise InvalidConfigurationError(
                f"Unknown edge type {self.type!r}; expected one of {list(EDGE_TYPES)}"
            )
        if not 0.0 <= self.weight <= 1.0:
            raise InvalidConfigurationError(f"Edge weight must be within [0, 1], got {self.weight}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type,
            "weight": self.weight,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class LearningPath:
    """Decision -> Outcome -> Guardrail chain where an outcome tightened a guardrail."""
    path: Tuple[str, str, str]
    description: str


@dataclass(frozen=True)
class GraphStats:
    total_nodes: int
    total_edges: int
    nodes_by_type: Dict[str, int]
    edges_by_type: Dict[str, int]
    avg_degree: float


class KnowledgeGraph:
    """Tenant-scoped graph of decision records.

    Nodes and edges live on a networkx MultiDiGraph: node attribute ``node``
    holds the GraphNode, and each edge is keyed by its id with attribute
    ``edge`` holding the GraphEdge.
    """

    def __init__(self, tenant_id: str, last_updated: Optional[int] = None,
                 graph: Optional[nx.MultiDiGraph] = None):
        self.tenant_id = tenant_id
        self.last_updated = int(time.time() * 1000) if last_updated is None else last_updated
        self.graph = graph if graph is not None else nx.MultiDiGraph()

    def __len__(self) -> int:
        return self.graph.number_of_nodes()

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.graph

    def __repr__(self) -> str:
        return (f"KnowledgeGraph(tenant_id={self.tenant_id!r}, "
                f"nodes={len(self)}, edges={self.graph.number_of_edges()})")

    @property
    def nodes(self) -> List[GraphNode]:
        return [data["node"] for _, data in self.graph.nodes(data=True)]

    @property
    def edges(self) -> List[GraphEdge]:
        return [data["edge"] for _, _, data in self.graph.edges(data=True)]

    def node(self, node_id: str) -> GraphNode:
        if node_id not in self.graph:
            raise KeyError(node_id)
        return self.graph.nodes[node_id]["node"]

    def add_node(self, node: GraphNode) -> None:
        self.graph.add_node(node.id, node=node)

    def add_edge(self, edge: GraphEdge) -> bool:
        """Add ``edge``; returns False when an endpoint is not in the graph."""
        if edge.source not in self.graph or edge.target not in self.graph:
            return False
        self.graph.add_edge(edge.source, edge.target, key=edge.id, edge=edge)
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "tenantId": self.tenant_id,
            "lastUpdated": self.last_updated,
        }


def _field(record: Any, *names: str, default: Any = None) -> Any:
    """First non-None value among ``names``, read as mapping keys or attributes."""
    for name in names:
        if isinstance(record, dict):
            value = record.get(name)
        else:
            value = getattr(record, name, None)
        if value is not None:
            return value
    return default


def _decision_variables(decision: Any) -> Tuple[str, ...]:
    """Scenario variable names and linked signal keys, de-duplicated in order."""
    variables = []
    for var in _field(decision, "scenarioVars", "scenario_vars", default=()):
        name = _field(var, "name")
        if name is not None:
            variables.append(str(name))
    for link in _field(decision, "linkedSignals", "linked_signals", default=()):
        key = _field(link, "variableKey", "variable_key")
        if key:
            variables.append(str(key))
    return tuple(dict.fromkeys(variables))


def shared_variables(vars_a: Sequence[str], vars_b: Sequence[str]) -> List[str]:
    return [v for v in vars_a if v in vars_b]


def build_knowledge_graph(tenant_id: str,
                          decisions: Iterable[Any] = (),
                          signals: Iterable[Any] = (),
                          incidents: Iterable[Any] = (),
                          outcomes: Iterable[Any] = (),
                          guardrails: Iterable[Any] = (),
                          timestamp: Optional[int] = None) -> KnowledgeGraph:
    """Build a tenant's knowledge graph from its decision records.

    Args:
        tenant_id: Owning tenant
        decisions: Records with id, title, status, chosenOptionId, createdAt,
            finalizedAt, scenarioVars and linkedSignals ({signalId, variableKey})
        signals: Records with signalId, name, category, currentValue, trend, lastUpdated
        incidents: Records with id, title, severity, category, resolved,
            timestamp and affectedDecisions (decision ids)
        outcomes: Records with id, decisionId, actualValue, expectedValue,
            variance, loggedAt and triggeredAdjustment
        guardrails: Records with id, decisionId, name, metric, threshold,
            alertLevel, createdAt; ``Guardrail`` instances are accepted
        timestamp: Build time in Unix milliseconds (defaults to now)

    Returns:
        KnowledgeGraph with every node added before any edge
    """
    decisions = list(decisions)
    signals = list(signals)
    incidents = list(incidents)
    outcomes = list(outcomes)
    guardrails = list(guardrails)
    kg = KnowledgeGraph(tenant_id, last_updated=timestamp)

    decision_nodes = []
    for decision in decisions:
        node = GraphNode(
            id=f"decision-{_field(decision, 'id')}",
            type="Decision",
            label=_field(decision, "title", default="Untitled Decision"),
            metadata={
                "status": _field(decision, "status"),
                "chosenOption": _field(decision, "chosenOptionId", "chosen_option_id"),
                "createdAt": _field(decision, "createdAt", "created_at"),
                "finalizedAt": _field(decision, "finalizedAt", "finalized_at"),
            },
            variables=_decision_variables(decision),
            timestamp=_field(decision, "createdAt", "created_at"),
        )
        kg.add_node(node)
        decision_nodes.append(node)

    for signal in signals:
        name = _field(signal, "name", default="")
        kg.add_node(GraphNode(
            id=f"signal-{_field(signal, 'signalId', 'signal_id')}",
            type="RiskSignal",
            label=name,
            metadata={
                "category": _field(signal, "category"),
                "currentValue": _field(signal, "currentValue", "current_value"),
                "trend": _field(signal, "trend"),
            },
            variables=(name,),
            timestamp=_field(signal, "lastUpdated", "last_updated"),
        ))

    for incident in incidents:
        kg.add_node(GraphNode(
            id=f"incident-{_field(incident, 'id')}",
            type="Incident",
            label=_field(incident, "title", default=""),
            metadata={
                "severity": _field(incident, "severity"),
                "category": _field(incident, "category"),
                "resolved": _field(incident, "resolved"),
            },
            timestamp=_field(incident, "timestamp"),
        ))

    for outcome in outcomes:
        decision_id = _field(outcome, "decisionId", "decision_id")
        kg.add_node(GraphNode(
            id=f"outcome-{_field(outcome, 'id')}",
            type="Outcome",
            label=f"Outcome: {decision_id}",
            metadata={
                "actualValue": _field(outcome, "actualValue", "actual_value"),
                "expectedValue": _field(outcome, "expectedValue", "expected_value"),
                "variance": _field(outcome, "variance"),
            },
            timestamp=_field(outcome, "loggedAt", "logged_at"),
        ))

    for guardrail in guardrails:
        metric = _field(guardrail, "metric", "metric_name")
        kg.add_node(GraphNode(
            id=f"guardrail-{_field(guardrail, 'id')}",
            type="Guardrail",
            label=_field(guardrail, "name", default=f"{metric} guardrail"),
            metadata={
                "metric": metric,
                "threshold": _field(guardrail, "threshold", "threshold_value"),
                "alertLevel": _field(guardrail, "alertLevel", "alert_level"),
            },
            timestamp=_field(guardrail, "createdAt", "created_at"),
        ))

    for signal in signals:
        signal_id = _field(signal, "signalId", "signal_id")
        for decision in decisions:
            links = _field(decision, "linkedSignals", "linked_signals", default=())
            match = next((link for link in links
                          if _field(link, "signalId", "signal_id") == signal_id), None)
            if match is not None:
                decision_id = _field(decision, "id")
                kg.add_edge(GraphEdge(
                    id=f"signal-{signal_id}-decision-{decision_id}",
                    source=f"signal-{signal_id}",
                    target=f"decision-{decision_id}",
                    type="LINKED_TO",
                    weight=LINKED_TO_WEIGHT,
                    metadata={"variableKey": _field(match, "variableKey", "variable_key")},
                ))

    for incident in incidents:
        incident_id = _field(incident, "id")
        critical = _field(incident, "severity") == "critical"
        for decision_id in _field(incident, "affectedDecisions", "affected_decisions", default=()):
            kg.add_edge(GraphEdge(
                id=f"incident-{incident_id}-decision-{decision_id}",
                source=f"incident-{incident_id}",
                target=f"decision-{decision_id}",
                type="TRIGGERED",
                weight=TRIGGERED_CRITICAL_WEIGHT if critical else TRIGGERED_WEIGHT,
            ))

    for outcome in outcomes:
        outcome_id = _field(outcome, "id")
        decision_id = _field(outcome, "decisionId", "decision_id")
        kg.add_edge(GraphEdge(
            id=f"decision-{decision_id}-outcome-{outcome_id}",
            source=f"decision-{decision_id}",
            target=f"outcome-{outcome_id}",
            type="RESULTED_IN",
            weight=RESULTED_IN_WEIGHT,
        ))
        if not _field(outcome, "triggeredAdjustment", "triggered_adjustment", default=False):
            continue
        for guardrail in guardrails:
            if _field(guardrail, "decisionId", "decision_id") == decision_id:
                guardrail_id = _field(guardrail, "id")
                kg.add_edge(GraphEdge(
                    id=f"outcome-{outcome_id}-guardrail-{guardrail_id}",
                    source=f"outcome-{outcome_id}",
                    target=f"guardrail-{guardrail_id}",
                    type="INFLUENCED",
                    weight=INFLUENCED_WEIGHT,
                ))

    for guardrail in guardrails:
        guardrail_id = _field(guardrail, "id")
        decision_id = _field(guardrail, "decisionId", "decision_id")
        kg.add_edge(GraphEdge(
            id=f"decision-{decision_id}-guardrail-{guardrail_id}",
            source=f"decision-{decision_id}",
            target=f"guardrail-{guardrail_id}",
            type="GOVERNED_BY",
            weight=GOVERNED_BY_WEIGHT,
        ))

    for i, node_a in enumerate(decision_nodes):
        for node_b in decision_nodes[i + 1:]:
            shared = shared_variables(node_a.variables, node_b.variables)
            if shared:
                kg.add_edge(GraphEdge(
                    id=f"{node_a.id}-shares-{node_b.id}",
                    source=node_a.id,
                    target=node_b.id,
                    type="SHARES_VARIABLE",
                    weight=len(shared) / max(len(node_a.variables) or 1, len(node_b.variables) or 1),
                    metadata={"sharedVariables": shared},
                ))

    return kg


def node_neighbors(kg: KnowledgeGraph, node_id: str) -> List[GraphNode]:
    """Nodes joined to ``node_id`` by an edge in either direction."""
    if node_id not in kg:
        return []
    neighbor_ids = set(kg.graph.successors(node_id)) | set(kg.graph.predecessors(node_id))
    return [node for node in kg.nodes if node.id in neighbor_ids]


def subgraph(kg: KnowledgeGraph, node_id: str, depth: int = 1) -> KnowledgeGraph:
    """Nodes within ``depth`` hops of ``node_id`` (ignoring direction) and the edges among them."""
    if depth < 0:
        raise InvalidConfigurationError(f"depth must be >= 0, got {depth}")
    if node_id not in kg:
        return KnowledgeGraph(kg.tenant_id, last_updated=kg.last_updated)
    reachable = nx.single_source_shortest_path_length(
        kg.graph.to_undirected(as_view=True), node_id, cutoff=depth)
    return KnowledgeGraph(kg.tenant_id, last_updated=kg.last_updated,
                          graph=kg.graph.subgraph(reachable).copy())


def degree_centrality(kg: KnowledgeGraph) -> Dict[str, int]:
    """Number of edges touching each node, counting both directions."""
    return {node_id: degree for node_id, degree in kg.graph.degree()}


def find_learning_paths(kg: KnowledgeGraph) -> List[LearningPath]:
    paths = []
    for decision in kg.nodes:
        if decision.type != "Decision":
            continue
        for _, outcome_id, data in kg.graph.out_edges(decision.id, data=True):
            if data["edge"].type != "RESULTED_IN":
                continue
            for _, guardrail_id, influence in kg.graph.out_edges(outcome_id, data=True):
                if influence["edge"].type != "INFLUENCED":
                    continue
                guardrail = kg.node(guardrail_id)
                paths.append(LearningPath(
                    path=(decision.id, outcome_id, guardrail_id),
                    description=f"{decision.label} -> Outcome -> {guardrail.label} adjustment",
                ))
    return paths


def graph_stats(kg: KnowledgeGraph) -> GraphStats:
    nodes_by_type = {node_type: 0 for node_type in NODE_TYPES}
    for node in kg.nodes:
        nodes_by_type[node.type] += 1
    edges_by_type = {edge_type: 0 for edge_type in EDGE_TYPES}
    for edge in kg.edges:
        edges_by_type[edge.type] += 1

    total_nodes = kg.graph.number_of_nodes()
    total_edges = kg.graph.number_of_edges()
    return GraphStats(
        total_nodes=total_nodes,
        total_edges=total_edges,
        nodes_by_type=nodes_by_type,
        edges_by_type=edges_by_type,
        avg_degree=2.0 * total_edges / total_nodes if total_nodes else 0.0,
    )
