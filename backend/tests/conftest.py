"""Shared fixtures for canvas tests.

Provides:
- A deterministic CanvasConfig (1200x800 canvas, 160x96 nodes)
- A CanvasController wired to an AsyncMock execution collaborator
- Small helpers to build nodes and find handles
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from coordinator.config.canvas_config import CanvasConfig
from coordinator.logging.activity_log import reset_activity_logs
from coordinator.workflow.canvas_controller import CanvasController
from coordinator.workflow.handles import Handle, HandleSide, NodeFootprint, node_handles
from coordinator.workflow.workflow_executor import ExecutionResult
from coordinator.workflow.workflow_model import NodeData, NodeType, Position, WorkflowNode


@pytest.fixture(autouse=True)
def _clean_activity_logs():
    reset_activity_logs()
    yield
    reset_activity_logs()


@pytest.fixture
def canvas_config() -> CanvasConfig:
    return CanvasConfig()


@pytest.fixture
def footprint(canvas_config) -> NodeFootprint:
    return NodeFootprint(canvas_config.node_width, canvas_config.node_height)


@pytest.fixture
def coordinator() -> AsyncMock:
    mock = AsyncMock()
    mock.execute_coordinator_workflow.return_value = ExecutionResult(success=True)
    return mock


@pytest.fixture
def controller(coordinator, canvas_config) -> CanvasController:
    canvas = CanvasController(coordinator, config=canvas_config)
    canvas.create_workflow("Test Workflow")
    return canvas


def make_node(node_id: str, x: float, y: float, node_type: NodeType = NodeType.AGENT) -> WorkflowNode:
    return WorkflowNode(
        id=node_id,
        type=node_type,
        position=Position(x=x, y=y),
        data=NodeData(label=node_id),
    )


def handle_on(node: WorkflowNode, side: HandleSide, footprint: NodeFootprint) -> Handle:
    for handle in node_handles(node, footprint):
        if handle.side is side:
            return handle
    raise AssertionError(f"no {side} handle on {node.id}")
