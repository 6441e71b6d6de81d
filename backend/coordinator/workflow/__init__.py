"""
Workflow Canvas: visual multi-agent workflow composer.

Architecture:
    workflow_model      Workflow / node / connection data models
    palette             Node-type descriptors offered for dropping
    handles             Connector handles derived from node positions
    geometry            Anchor points and Bezier connection paths
    placement           Anti-overlap placement for new nodes
    connection_manager  Drag-to-connect state machine
    shortcuts           Keyboard shortcut resolution
    canvas_controller   Sole writer of the workflow aggregate
    workflow_executor   Execution collaborator (LangGraph-backed)
    interaction_panel   Ad-hoc chat with a node's agent
    workflow_store      JSON-file persistence collaborator
"""

from coordinator.workflow.workflow_model import (
    NodeData,
    NodeType,
    Position,
    Workflow,
    WorkflowConnection,
    WorkflowNode,
    WorkflowStatus,
)
from coordinator.workflow.errors import (
    CanvasError,
    ConnectionNotFoundError,
    NoWorkflowSelectedError,
    NodeNotFoundError,
    UnknownNodeTypeError,
    WorkflowExecutionError,
    WorkflowStateError,
)
from coordinator.workflow.palette import NodePalette, NodeTypeDescriptor, default_palette
from coordinator.workflow.handles import Handle, HandleSide, HandleType, NodeFootprint
from coordinator.workflow.geometry import bezier_path, connection_path
from coordinator.workflow.placement import CanvasBounds, PlacementSettings, place
from coordinator.workflow.connection_manager import (
    ConnectionManager,
    ConnectOutcome,
    DragConnection,
    HandleVisualState,
    transition,
)
from coordinator.workflow.shortcuts import KeyEvent, Shortcut, resolve_shortcut
from coordinator.workflow.workflow_executor import (
    AgentMessenger,
    AgentReply,
    ExecutionResult,
    LangGraphCoordinator,
    NodeExecutionResult,
    WorkflowCoordinator,
)
from coordinator.workflow.interaction_panel import AgentInteractionPanel
from coordinator.workflow.workflow_store import WorkflowRepository, WorkflowStore
from coordinator.workflow.canvas_controller import CanvasController

__all__ = [
    "NodeData",
    "NodeType",
    "Position",
    "Workflow",
    "WorkflowConnection",
    "WorkflowNode",
    "WorkflowStatus",
    "CanvasError",
    "ConnectionNotFoundError",
    "NoWorkflowSelectedError",
    "NodeNotFoundError",
    "UnknownNodeTypeError",
    "WorkflowExecutionError",
    "WorkflowStateError",
    "NodePalette",
    "NodeTypeDescriptor",
    "default_palette",
    "Handle",
    "HandleSide",
    "HandleType",
    "NodeFootprint",
    "bezier_path",
    "connection_path",
    "CanvasBounds",
    "PlacementSettings",
    "place",
    "ConnectionManager",
    "ConnectOutcome",
    "DragConnection",
    "HandleVisualState",
    "transition",
    "KeyEvent",
    "Shortcut",
    "resolve_shortcut",
    "AgentMessenger",
    "AgentReply",
    "ExecutionResult",
    "LangGraphCoordinator",
    "NodeExecutionResult",
    "WorkflowCoordinator",
    "AgentInteractionPanel",
    "WorkflowRepository",
    "WorkflowStore",
    "CanvasController",
]
