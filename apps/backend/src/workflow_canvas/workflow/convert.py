"""Conversion between the ordered step list and the canvas graph.

``hydrate`` builds a simple chain from a step list. ``linearize`` walks the
graph back into a step list and never fails: cycles, branches and
disconnected nodes all produce a best-effort order.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Sequence

from .categories import TRIGGER_CATEGORY, CategoryRule, category_of, humanize_tool_name
from .schema import (
    TRIGGER_NODE_ID,
    Edge,
    Graph,
    Node,
    NodeData,
    Position,
    Step,
    TriggerType,
    edge_id_for,
    node_id_for,
)

logger = logging.getLogger(__name__)

# Vertical layout of the canvas
NODE_X = 250
TRIGGER_Y = 40
FIRST_STEP_Y = 180
NODE_SPACING = 160


def step_position(index: int) -> Position:
    """Position of the ``index``-th (0-based) step node in a fresh chain."""
    return Position(x=NODE_X, y=FIRST_STEP_Y + index * NODE_SPACING)


def trigger_node(trigger_type: TriggerType) -> Node:
    return Node(
        id=TRIGGER_NODE_ID,
        position=Position(x=NODE_X, y=TRIGGER_Y),
        data=NodeData(
            label="Start",
            tool_name="trigger",
            category=TRIGGER_CATEGORY,
            description=f"{trigger_type} trigger",
            step_number=0,
            is_configured=True,
            is_trigger=True,
            trigger_type=trigger_type,
        ),
    )


def step_node(step: Step, index: int, categories: Sequence[CategoryRule]) -> Node:
    return Node(
        id=node_id_for(step.id),
        position=step_position(index),
        data=NodeData(
            label=humanize_tool_name(step.tool_name),
            tool_name=step.tool_name,
            category=category_of(step.tool_name, categories),
            description=step.description,
            step_number=index + 1,
            is_configured=len(step.tool_parameters) > 0,
            parameters=dict(step.tool_parameters),
            retry_config=step.retry_config,
            timeout=step.timeout,
        ),
    )


def hydrate(
    steps: Sequence[Step],
    trigger_type: TriggerType,
    categories: Sequence[CategoryRule],
) -> Graph:
    """Build a single chain ``trigger -> steps[0] -> ... -> steps[-1]``.

    Steps are placed in the order given; ``step_number`` is not consulted.
    """
    nodes = [trigger_node(trigger_type)]
    edges: list[Edge] = []

    previous_id = TRIGGER_NODE_ID
    for index, step in enumerate(steps):
        node = step_node(step, index, categories)
        nodes.append(node)
        edges.append(Edge(id=edge_id_for(previous_id, node.id), source=previous_id, target=node.id))
        previous_id = node.id

    return Graph(nodes=tuple(nodes), edges=tuple(edges))


def traversal_order(graph: Graph) -> list[str]:
    """Node ids in DFS reverse post-order from the trigger, then orphans.

    Every visited id is memoised, so revisits (cycles, fan-in) are skipped
    instead of rejected. Edge targets that do not name a node are kept here
    and dropped by ``linearize``.
    """
    adjacency: dict[str, list[str]] = defaultdict(list)
    for edge in graph.edges:
        adjacency[edge.source].append(edge.target)

    visited: set[str] = {TRIGGER_NODE_ID}
    finished: list[str] = []
    # Explicit stack of (node id, index of next child to visit)
    stack: list[tuple[str, int]] = [(TRIGGER_NODE_ID, 0)]
    while stack:
        node_id, child_index = stack[-1]
        children = adjacency.get(node_id, [])
        if child_index < len(children):
            stack[-1] = (node_id, child_index + 1)
            child = children[child_index]
            if child not in visited:
                visited.add(child)
                stack.append((child, 0))
            continue
        stack.pop()
        finished.append(node_id)

    order = finished[::-1]

    orphans = [n.id for n in graph.nodes if not n.is_trigger and n.id not in visited]
    if orphans:
        logger.debug("Appending %d node(s) unreachable from the trigger: %s", len(orphans), orphans)
    order.extend(orphans)
    return order


def linearize(graph: Graph) -> list[Step]:
    """Convert the canvas graph into the ordered step list.

    ``step_number`` is reassigned as the 1-based position in the result.
    """
    nodes_by_id = {n.id: n for n in graph.nodes if not n.is_trigger}

    steps: list[Step] = []
    for node_id in traversal_order(graph):
        node = nodes_by_id.get(node_id)
        if node is None:
            continue
        data = node.data
        steps.append(
            Step(
                id=node.step_id,
                step_number=len(steps) + 1,
                tool_name=data.tool_name,
                tool_parameters=dict(data.parameters),
                description=data.description,
                retry_config=data.retry_config,
                timeout=data.timeout,
            )
        )
    return steps
