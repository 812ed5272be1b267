# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow Validation

DAG validation using topological sort (Kahn's algorithm).
"""

from typing import List, Set, Dict, Optional
from collections import deque

from .models import FlowDefinition, NodeType
from .exceptions import FlowValidationError


def validate_flow(flow: FlowDefinition, function_names: Optional[Set[str]] = None) -> List[str]:
    """
    Validate flow structure.

    Returns topological order of the nodes reachable from the start nodes.

    Raises FlowValidationError if validation fails.
    """
    # 1. Empty flow check
    if len(flow.nodes) == 0:
        raise FlowValidationError("Flow must have at least one node", field="nodes")

    # 2. Duplicate node IDs
    node_ids = [node.id for node in flow.nodes]
    if len(node_ids) != len(set(node_ids)):
        duplicates = {nid for nid in node_ids if node_ids.count(nid) > 1}
        raise FlowValidationError(f"Duplicate node IDs found: {duplicates}", field="nodes")

    # 3. Invalid edge references
    node_id_set = set(node_ids)
    for edge in flow.edges:
        if edge.from_ not in node_id_set:
            raise FlowValidationError(
                f"Edge references non-existent node: {edge.from_}",
                field="edges"
            )
        if edge.to not in node_id_set:
            raise FlowValidationError(
                f"Edge references non-existent node: {edge.to}",
                field="edges"
            )

    # 4. Designated start/end nodes must exist
    for field_name, designated in (("start_nodes", flow.start_nodes), ("end_nodes", flow.end_nodes)):
        unknown = [nid for nid in designated if nid not in node_id_set]
        if unknown:
            raise FlowValidationError(
                f"{field_name} references non-existent node(s): {unknown}",
                field=field_name
            )

    # 5. Node configuration
    for node in flow.nodes:
        _validate_node_config(node, function_names)

    # 6. DAG validation (topological sort)
    return topological_sort(flow)


def _validate_node_config(node, function_names: Optional[Set[str]]) -> None:
    field = f"nodes[{node.id}].config"
    cfg = node.config

    if node.type == NodeType.API and not cfg.endpoint:
        raise FlowValidationError(f"API node '{node.id}' requires an endpoint", field=field)
    if node.type == NodeType.LLM and not cfg.prompt:
        raise FlowValidationError(f"LLM node '{node.id}' requires a prompt", field=field)
    if node.type == NodeType.TRANSFORM and not cfg.transform_script:
        raise FlowValidationError(f"Transform node '{node.id}' requires a transform_script", field=field)
    if node.type == NodeType.CONDITIONAL and not cfg.expression:
        raise FlowValidationError(f"Conditional node '{node.id}' requires an expression", field=field)
    if node.type == NodeType.FUNCTION:
        if not cfg.function_name:
            raise FlowValidationError(f"Function node '{node.id}' requires a function_name", field=field)
        if function_names is not None and cfg.function_name not in function_names:
            raise FlowValidationError(
                f"Function '{cfg.function_name}' used by node '{node.id}' is not registered",
                field=field
            )


def find_start_nodes(flow: FlowDefinition) -> List[str]:
    """Designated start nodes, else every node without an incoming edge."""
    if flow.start_nodes:
        return list(flow.start_nodes)
    targets = {edge.to for edge in flow.edges}
    return [node.id for node in flow.nodes if node.id not in targets]


def reachable_from(flow: FlowDefinition, roots: List[str]) -> Set[str]:
    """All node ids reachable from `roots` (inclusive), following edge direction."""
    graph: Dict[str, List[str]] = {node.id: [] for node in flow.nodes}
    for edge in flow.edges:
        graph[edge.from_].append(edge.to)

    visited: Set[str] = set()
    queue = deque(roots)
    while queue:
        node_id = queue.popleft()
        if node_id in visited:
            continue
        visited.add(node_id)
        queue.extend(graph[node_id])
    return visited


def topological_sort(flow: FlowDefinition) -> List[str]:
    """
    Perform topological sort using Kahn's algorithm.

    Only the subgraph reachable from the start nodes is ordered; a cycle
    anywhere in that subgraph rejects the flow. Self-loops are rejected
    outright.

    Returns list of node IDs in topological order.

    Raises FlowValidationError if DAG is invalid.
    """
    for edge in flow.edges:
        if edge.from_ == edge.to:
            raise FlowValidationError(
                f"Self-loop not allowed: {edge.from_} -> {edge.to}",
                field="edges"
            )

    start_nodes = find_start_nodes(flow)
    if not start_nodes:
        raise FlowValidationError(
            "No start nodes found (all nodes have incoming edges - cycle detected)",
            field="edges"
        )

    reachable = reachable_from(flow, start_nodes)

    # Build adjacency list and in-degree count over the reachable subgraph
    graph: Dict[str, List[str]] = {node_id: [] for node_id in reachable}
    in_degree: Dict[str, int] = {node_id: 0 for node_id in reachable}

    for edge in flow.edges:
        if edge.from_ in reachable and edge.to in reachable:
            graph[edge.from_].append(edge.to)
            in_degree[edge.to] += 1

    # Designated starts that have in-reachable predecessors are part of a cycle
    queue = deque([nid for nid in start_nodes if in_degree[nid] == 0])

    # Kahn's algorithm
    topological_order = []

    while queue:
        node_id = queue.popleft()
        topological_order.append(node_id)

        for neighbor in graph[node_id]:
            in_degree[neighbor] -= 1
            if in_degree[neighbor] == 0:
                queue.append(neighbor)

    if len(topological_order) != len(reachable):
        unprocessed = reachable - set(topological_order)
        raise FlowValidationError(
            f"Cycle detected in flow graph involving nodes: {sorted(unprocessed)}",
            field="edges"
        )

    return topological_order
