"""
Canvas error hierarchy.

Everything the canvas raises derives from ``CanvasError`` so the
rendering layer can catch a single type at its boundary.
"""

from __future__ import annotations

from typing import Optional


class CanvasError(Exception):
    """Base class for canvas errors."""


class NoWorkflowSelectedError(CanvasError):
    """An operation needs a selected workflow and none is selected."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"No workflow selected for '{operation}'")
        self.operation = operation


class UnknownNodeTypeError(CanvasError, ValueError):
    """The palette has no descriptor for the requested node type."""

    def __init__(self, node_type: str) -> None:
        super().__init__(f"Unknown node type '{node_type}'")
        self.node_type = node_type


class NodeNotFoundError(CanvasError, KeyError):
    def __init__(self, node_id: str) -> None:
        super().__init__(f"Node not found: {node_id}")
        self.node_id = node_id

    def __str__(self) -> str:
        return str(self.args[0])


class ConnectionNotFoundError(CanvasError, KeyError):
    def __init__(self, connection_id: str) -> None:
        super().__init__(f"Connection not found: {connection_id}")
        self.connection_id = connection_id

    def __str__(self) -> str:
        return str(self.args[0])


class WorkflowStateError(CanvasError):
    """A lifecycle operation was requested from an incompatible status."""


class WorkflowExecutionError(CanvasError):
    """Execution failed; the workflow has already been moved to ``paused``."""

    def __init__(self, workflow_id: str, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.workflow_id = workflow_id
        self.cause = cause
