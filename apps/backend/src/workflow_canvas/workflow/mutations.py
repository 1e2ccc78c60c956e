"""Editing operations on the canvas graph.

Every function takes a ``Graph`` and returns a new one. None of them enforce
the single-chain shape the workflow engine expects; ``linearize`` deals with
whatever the user builds.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Optional, Sequence

from .categories import CategoryRule, category_of, humanize_tool_name
from .convert import NODE_SPACING, NODE_X, TRIGGER_Y, step_position
from .errors import NodeNotFoundError, TriggerNodeError
from .schema import (
    TRIGGER_NODE_ID,
    Edge,
    Graph,
    Node,
    NodeData,
    Position,
    RetryConfig,
    edge_id_for,
    node_id_for,
)

logger = logging.getLogger(__name__)


def new_step_id() -> str:
    return f"s_{uuid.uuid4().hex[:12]}"


def add_node(
    graph: Graph,
    tool_name: str,
    categories: Sequence[CategoryRule],
    *,
    step_id: Optional[str] = None,
    retry_config: Optional[RetryConfig] = None,
    timeout: int = 60,
) -> tuple[Graph, Node]:
    """Append a node for ``tool_name`` and wire it to the current tail.

    The tail is the last non-trigger node in storage order, or the trigger
    when the canvas has no steps yet. Returns the new graph and the new node.
    """
    existing = graph.step_nodes()
    node = Node(
        id=node_id_for(step_id or new_step_id()),
        position=step_position(len(existing)),
        data=NodeData(
            label=humanize_tool_name(tool_name),
            tool_name=tool_name,
            category=category_of(tool_name, categories),
            description=f"Execute {tool_name}",
            step_number=len(existing) + 1,
            is_configured=False,
            parameters={},
            retry_config=retry_config or RetryConfig(),
            timeout=timeout,
        ),
    )
    if graph.get_node(node.id) is not None:
        raise ValueError(f"Node '{node.id}' already exists")

    tail_id = existing[-1].id if existing else TRIGGER_NODE_ID
    edge = Edge(id=edge_id_for(tail_id, node.id), source=tail_id, target=node.id)

    logger.debug("Added node %s (%s) after %s", node.id, tool_name, tail_id)
    return (
        graph.model_copy(update={"nodes": graph.nodes + (node,), "edges": graph.edges + (edge,)}),
        node,
    )


def connect(graph: Graph, source: str, target: str) -> Graph:
    """Add an edge ``source -> target``.

    Cycles, fan-in and fan-out are allowed. Connecting an already connected
    pair returns the graph unchanged.
    """
    for node_id in (source, target):
        if graph.get_node(node_id) is None:
            raise NodeNotFoundError(node_id)
    if target == TRIGGER_NODE_ID:
        raise TriggerNodeError("The trigger node cannot have incoming connections")

    if graph.has_edge(source, target):
        return graph

    edge = Edge(id=edge_id_for(source, target), source=source, target=target)
    logger.debug("Connected %s -> %s", source, target)
    return graph.model_copy(update={"edges": graph.edges + (edge,)})


def delete_node(graph: Graph, node_id: str) -> Graph:
    """Remove a node and every edge touching it.

    The neighbours are not reattached, so deleting from the middle of a chain
    leaves two fragments. Display step numbers of the remaining nodes are
    recounted in storage order, which can differ from the order the graph
    will be saved in.
    """
    if node_id == TRIGGER_NODE_ID:
        raise TriggerNodeError("The trigger node cannot be deleted")
    if graph.get_node(node_id) is None:
        raise NodeNotFoundError(node_id)

    nodes: list[Node] = []
    step_count = 0
    for node in graph.nodes:
        if node.id == node_id:
            continue
        if not node.is_trigger:
            step_count += 1
            node = node.model_copy(update={"data": node.data.model_copy(update={"step_number": step_count})})
        nodes.append(node)

    edges = tuple(e for e in graph.edges if e.source != node_id and e.target != node_id)
    logger.debug("Deleted node %s, dropped %d edge(s)", node_id, len(graph.edges) - len(edges))
    return Graph(nodes=tuple(nodes), edges=edges)


def auto_layout(graph: Graph) -> Graph:
    """Restack nodes top to bottom by their current height, trigger first.

    Only positions change; node order in storage follows the new stacking.
    """
    ordered = sorted(graph.nodes, key=lambda n: (not n.is_trigger, n.position.y))
    nodes = tuple(
        n.model_copy(update={"position": Position(x=NODE_X, y=TRIGGER_Y + i * NODE_SPACING)})
        for i, n in enumerate(ordered)
    )
    return graph.model_copy(update={"nodes": nodes})


def move_node(graph: Graph, node_id: str, x: float, y: float) -> Graph:
    return _replace_node(graph, node_id, lambda n: n.model_copy(update={"position": Position(x=x, y=y)}))


def update_node(
    graph: Graph,
    node_id: str,
    *,
    parameters: Optional[dict[str, Any]] = None,
    description: Optional[str] = None,
    retry_config: Optional[RetryConfig] = None,
    timeout: Optional[int] = None,
) -> Graph:
    """Apply configuration-panel edits to a step node.

    Fields left as ``None`` are kept. Setting parameters also refreshes the
    configured flag.
    """
    if node_id == TRIGGER_NODE_ID:
        raise TriggerNodeError("The trigger node has no step configuration")

    update: dict[str, Any] = {}
    if parameters is not None:
        update["parameters"] = dict(parameters)
        update["is_configured"] = len(parameters) > 0
    if description is not None:
        update["description"] = description
    if retry_config is not None:
        update["retry_config"] = retry_config
    if timeout is not None:
        if timeout <= 0:
            raise ValueError("timeout must be a positive number of seconds")
        update["timeout"] = timeout

    return _replace_node(
        graph,
        node_id,
        lambda n: n.model_copy(update={"data": n.data.model_copy(update=update)}),
    )


def _replace_node(graph: Graph, node_id: str, change) -> Graph:
    if graph.get_node(node_id) is None:
        raise NodeNotFoundError(node_id)
    nodes = tuple(change(n) if n.id == node_id else n for n in graph.nodes)
    return graph.model_copy(update={"nodes": nodes})


def set_trigger_type(graph: Graph, trigger_type: str) -> Graph:
    """Refresh the trigger node's display payload after the trigger changes."""
    return _replace_node(
        graph,
        TRIGGER_NODE_ID,
        lambda n: n.model_copy(
            update={
                "data": n.data.model_copy(
                    update={"trigger_type": trigger_type, "description": f"{trigger_type} trigger"}
                )
            }
        ),
    )
