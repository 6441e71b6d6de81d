"""
Workflow Data Models: workflows, canvas nodes, and connections.

These are the serializable data structures that describe a
user-composed multi-agent workflow graph. They carry no behavior
beyond lookups and invariant checks; all mutation goes through
``CanvasController``.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class WorkflowStatus(str, Enum):
    """Workflow lifecycle status."""
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"


class NodeType(str, Enum):
    """Kinds of node that can be dropped on the canvas."""
    AGENT = "agent"
    TRIGGER = "trigger"
    ACTION = "action"
    CONDITION = "condition"


# Runtime keys written into ``NodeData.config`` by execution.
CONFIG_AGENT_ID = "agentId"
CONFIG_STATUS = "status"
CONFIG_LAST_RESPONSE = "lastResponse"

NODE_STATUS_RUNNING = "running"
NODE_STATUS_STOPPED = "stopped"


class Position(BaseModel):
    """A canvas coordinate (top-left origin)."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0

    def offset(self, dx: float, dy: float) -> "Position":
        return Position(x=self.x + dx, y=self.y + dy)


class NodeData(BaseModel):
    """User-facing payload of a node.

    ``config`` holds per-type settings set from the configuration
    panel as well as runtime status (``agentId``, ``status``,
    ``lastResponse``).
    """

    label: str
    description: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)


class WorkflowNode(BaseModel):
    """A single node placed on the workflow canvas."""

    id: str = Field(default_factory=lambda: f"node_{uuid.uuid4().hex[:8]}")
    type: NodeType
    position: Position = Field(default_factory=Position)
    data: NodeData

    def status_label(self) -> str:
        """Short hint rendered in the node body."""
        config = self.data.config
        if self.type is NodeType.AGENT and config.get(CONFIG_AGENT_ID):
            status = config.get(CONFIG_STATUS)
            if status == NODE_STATUS_RUNNING:
                return "Running"
            if status == NODE_STATUS_STOPPED:
                return "Stopped"
            return "Ready"
        if self.type is NodeType.AGENT and config.get("instructions"):
            return "Configured"
        return "Click to configure"


class WorkflowConnection(BaseModel):
    """A directed edge between two nodes.

    ``path`` caches the rendered curve; it is re-derived whenever
    either endpoint moves.
    """

    id: str
    source_id: str
    target_id: str
    source_handle_id: Optional[str] = None
    target_handle_id: Optional[str] = None
    path: str = ""


class Workflow(BaseModel):
    """A complete workflow graph: nodes, connections and lifecycle status."""

    id: str = Field(default_factory=lambda: f"wf_{uuid.uuid4().hex[:12]}")
    name: str = "New Workflow"
    description: Optional[str] = None
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[WorkflowConnection] = Field(default_factory=list)
    status: WorkflowStatus = WorkflowStatus.DRAFT
    created_at: str = Field(default_factory=_utc_now)
    updated_at: str = Field(default_factory=_utc_now)

    def touch(self) -> None:
        """Update the ``updated_at`` timestamp."""
        self.updated_at = _utc_now()

    def get_node(self, node_id: str) -> Optional[WorkflowNode]:
        """Find a node by ID."""
        for n in self.nodes:
            if n.id == node_id:
                return n
        return None

    def get_connection(self, connection_id: str) -> Optional[WorkflowConnection]:
        for c in self.connections:
            if c.id == connection_id:
                return c
        return None

    def get_connections_from(self, node_id: str) -> List[WorkflowConnection]:
        """Get all connections originating from a node."""
        return [c for c in self.connections if c.source_id == node_id]

    def get_connections_to(self, node_id: str) -> List[WorkflowConnection]:
        """Get all connections pointing to a node."""
        return [c for c in self.connections if c.target_id == node_id]

    def get_connections_for(self, node_id: str) -> List[WorkflowConnection]:
        """Get every connection touching a node, in either direction."""
        return [
            c for c in self.connections
            if c.source_id == node_id or c.target_id == node_id
        ]

    def has_connection(self, source_id: str, target_id: str) -> bool:
        """Whether the ordered (source, target) pair is already connected."""
        return any(
            c.source_id == source_id and c.target_id == target_id
            for c in self.connections
        )

    def validate_graph(self) -> List[str]:
        """Validate the workflow graph invariants.

        Returns a list of error messages (empty = valid). Cycles are
        allowed and not reported.
        """
        errors: List[str] = []

        node_ids = set()
        for node in self.nodes:
            if node.id in node_ids:
                errors.append(f"Duplicate node id: {node.id}")
            node_ids.add(node.id)

        seen_pairs = set()
        for conn in self.connections:
            if conn.source_id not in node_ids:
                errors.append(
                    f"Connection {conn.id} references unknown source node: {conn.source_id}"
                )
            if conn.target_id not in node_ids:
                errors.append(
                    f"Connection {conn.id} references unknown target node: {conn.target_id}"
                )
            if conn.source_id == conn.target_id:
                errors.append(f"Connection {conn.id} is a self-loop on {conn.source_id}")

            pair = (conn.source_id, conn.target_id)
            if pair in seen_pairs:
                errors.append(
                    f"Duplicate connection {conn.source_id} -> {conn.target_id} ({conn.id})"
                )
            seen_pairs.add(pair)

        return errors
