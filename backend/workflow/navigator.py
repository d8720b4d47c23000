"""Graph navigation for a single automation."""

from typing import Optional

import structlog

from core.constants import TRIGGER_NODE_TYPES, EdgeHandle
from core.exceptions import GraphIntegrityError, StartNodeNotFoundError
from workflow.models import Automation, AutomationNode, BackendEdge

logger = structlog.get_logger(__name__)


class GraphNavigator:
    """Resolves the next node to visit from the current node and a handle.

    Edges are indexed by (source node id, handle); an unlabelled edge is
    stored under handle None. A handle with no matching edge is a dead end,
    not an error.
    """

    def __init__(self, automation: Automation):
        self._automation_id = automation.id
        self._nodes: dict[str, AutomationNode] = {n.id: n for n in automation.nodes}
        self._edges: dict[tuple[str, Optional[str]], BackendEdge] = {}
        self._targets: set[str] = set()

        for edge in automation.edges:
            handle = edge.source_handle.value if edge.source_handle else None
            key = (edge.source_node_id, handle)
            if key in self._edges:
                logger.warning(
                    "Duplicate edge for source handle, keeping the last one",
                    automation_id=self._automation_id,
                    source=edge.source_node_id,
                    handle=handle,
                )
            self._edges[key] = edge
            self._targets.add(edge.target_node_id)

    def outgoing(self, node_id: str) -> list[BackendEdge]:
        """Edges leaving a node."""
        return [edge for (source, _), edge in self._edges.items() if source == node_id]

    def find_start_node(
        self,
        start_node_id: Optional[str] = None,
        trigger_type: Optional[str] = None,
    ) -> AutomationNode:
        """Locate the node a run starts from.

        An explicit start_node_id wins. Otherwise the first node of the given
        trigger type, or failing that the first trigger node nothing points to.

        Raises:
            StartNodeNotFoundError: If no suitable node exists.
        """
        if start_node_id is not None:
            node = self._nodes.get(start_node_id)
            if node is None:
                raise StartNodeNotFoundError(
                    f"Start node {start_node_id} not found in automation {self._automation_id}"
                )
            return node

        if trigger_type is not None:
            for node in self._nodes.values():
                if node.type == trigger_type:
                    return node
            raise StartNodeNotFoundError(
                f"No '{trigger_type}' trigger node in automation {self._automation_id}"
            )

        for node in self._nodes.values():
            if node.type in TRIGGER_NODE_TYPES and node.id not in self._targets:
                return node
        raise StartNodeNotFoundError(
            f"Automation {self._automation_id} has no trigger node to start from"
        )

    def next_node(
        self,
        node_id: str,
        handle: Optional[str | EdgeHandle] = None,
    ) -> Optional[AutomationNode]:
        """Node reached from node_id through the edge labelled handle.

        Returns None when no such edge exists (the run ends here).

        Raises:
            GraphIntegrityError: If the edge targets a node that does not exist.
        """
        if isinstance(handle, EdgeHandle):
            handle = handle.value
        edge = self._edges.get((node_id, handle or None))
        if edge is None:
            logger.debug("No outgoing edge, run ends here", node_id=node_id, handle=handle)
            return None

        target = self._nodes.get(edge.target_node_id)
        if target is None:
            raise GraphIntegrityError(
                f"Edge from node {node_id} points to missing node {edge.target_node_id}"
            )
        return target
