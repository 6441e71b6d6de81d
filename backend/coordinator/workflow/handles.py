"""
Connection handles: the connectors on a node's boundary.

Handles are a pure projection of a node's position plus four fixed
offsets. They are never stored; every query recomputes them so a node
move can't leave stale handle positions behind.

    top    = input   (x + W/2, y)
    bottom = output  (x + W/2, y + H)
    left   = input   (x,       y + H/2)
    right  = output  (x + W,   y + H/2)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from coordinator.workflow.workflow_model import Position, WorkflowNode


class HandleType(str, Enum):
    INPUT = "input"
    OUTPUT = "output"


class HandleSide(str, Enum):
    TOP = "top"
    BOTTOM = "bottom"
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class NodeFootprint:
    """Rendered size of every node on the canvas."""
    width: float = 160.0
    height: float = 96.0

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(
                f"Node footprint must be positive, got {self.width}x{self.height}"
            )


@dataclass(frozen=True)
class Handle:
    """A directional connector; inputs accept edges, outputs originate them."""
    id: str
    node_id: str
    type: HandleType
    side: HandleSide
    position: Position

    @property
    def is_input(self) -> bool:
        return self.type is HandleType.INPUT

    @property
    def is_output(self) -> bool:
        return self.type is HandleType.OUTPUT


# Side → (handle type, fraction of width, fraction of height)
_HANDLE_LAYOUT: Tuple[Tuple[HandleSide, HandleType, float, float], ...] = (
    (HandleSide.TOP,    HandleType.INPUT,  0.5, 0.0),
    (HandleSide.BOTTOM, HandleType.OUTPUT, 0.5, 1.0),
    (HandleSide.LEFT,   HandleType.INPUT,  0.0, 0.5),
    (HandleSide.RIGHT,  HandleType.OUTPUT, 1.0, 0.5),
)


def handle_id(node_id: str, side: HandleSide) -> str:
    return f"{node_id}-{side.value}"


def node_handles(node: WorkflowNode, footprint: NodeFootprint) -> List[Handle]:
    """Compute the four handles of a node from its current position."""
    x, y = node.position.x, node.position.y
    return [
        Handle(
            id=handle_id(node.id, side),
            node_id=node.id,
            type=handle_type,
            side=side,
            position=Position(
                x=x + footprint.width * fx,
                y=y + footprint.height * fy,
            ),
        )
        for side, handle_type, fx, fy in _HANDLE_LAYOUT
    ]


def all_handles(nodes: Iterable[WorkflowNode], footprint: NodeFootprint) -> List[Handle]:
    """Every live handle of every node, in node insertion order."""
    handles: List[Handle] = []
    for node in nodes:
        handles.extend(node_handles(node, footprint))
    return handles


def find_handle(
    node: WorkflowNode,
    footprint: NodeFootprint,
    handle_id_: Optional[str],
) -> Optional[Handle]:
    """Look up one of a node's handles by ID."""
    if handle_id_ is None:
        return None
    for handle in node_handles(node, footprint):
        if handle.id == handle_id_:
            return handle
    return None


def default_output(node: WorkflowNode, footprint: NodeFootprint) -> Handle:
    """The handle a connection leaves from when none was recorded."""
    return node_handles(node, footprint)[1]


def default_input(node: WorkflowNode, footprint: NodeFootprint) -> Handle:
    """The handle a connection arrives at when none was recorded."""
    return node_handles(node, footprint)[0]
