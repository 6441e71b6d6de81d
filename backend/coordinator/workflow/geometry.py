"""
Geometry Engine: connector anchors and cubic-Bezier connection paths.

Pure functions only. A path is derived from two anchor points (or a
source anchor plus the live pointer during a drag) and is never
mutated in place; callers re-derive it after any endpoint moves.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Tuple

from coordinator.workflow.handles import (
    NodeFootprint,
    default_input,
    default_output,
    find_handle,
)
from coordinator.workflow.workflow_model import (
    Position,
    Workflow,
    WorkflowConnection,
)

if TYPE_CHECKING:
    from coordinator.workflow.connection_manager import DragConnection

CURVE_FACTOR = 0.4
MIN_CURVE_OFFSET = 60.0
MAX_CURVE_OFFSET = 120.0


def distance(a: Position, b: Position) -> float:
    return math.hypot(b.x - a.x, b.y - a.y)


def curve_offset(source: Position, target: Position) -> float:
    """Control-point distance, clamped so short and long edges look alike."""
    raw = distance(source, target) * CURVE_FACTOR
    return max(MIN_CURVE_OFFSET, min(raw, MAX_CURVE_OFFSET))


def control_points(source: Position, target: Position) -> Tuple[Position, Position]:
    """Compute the two Bezier control points between ``source`` and ``target``.

    When vertical travel dominates (``|dy| > |dx|``) the control points
    are pushed vertically from each anchor toward the other; otherwise
    horizontally. The curve therefore bulges along the dominant axis.
    """
    dx = target.x - source.x
    dy = target.y - source.y
    offset = curve_offset(source, target)

    if abs(dy) > abs(dx):
        step = offset if dy > 0 else -offset
        return (
            Position(x=source.x, y=source.y + step),
            Position(x=target.x, y=target.y - step),
        )

    step = offset if dx > 0 else -offset
    return (
        Position(x=source.x + step, y=source.y),
        Position(x=target.x - step, y=target.y),
    )


def format_coordinate(value: float) -> str:
    """Render a coordinate the way the canvas path strings expect.

    Integral values print without a fractional part; everything else
    keeps at most three decimals.
    """
    rounded = round(value, 3) + 0.0  # folds -0.0 into 0.0
    if rounded.is_integer():
        return str(int(rounded))
    return f"{rounded:.3f}".rstrip("0").rstrip(".")


def bezier_path(source: Position, target: Position) -> str:
    """``M x1 y1 C cp1x cp1y, cp2x cp2y, x2 y2`` between two anchors."""
    cp1, cp2 = control_points(source, target)
    f = format_coordinate
    return (
        f"M {f(source.x)} {f(source.y)} "
        f"C {f(cp1.x)} {f(cp1.y)}, {f(cp2.x)} {f(cp2.y)}, "
        f"{f(target.x)} {f(target.y)}"
    )


def connection_anchors(
    workflow: Workflow,
    connection: WorkflowConnection,
    footprint: NodeFootprint,
) -> Tuple[Position, Position]:
    """Resolve the source and target anchor of a stored connection.

    Uses the recorded handle IDs and falls back to the source's bottom
    output and the target's top input.

    Raises:
        KeyError: If either endpoint node is missing.
    """
    source_node = workflow.get_node(connection.source_id)
    target_node = workflow.get_node(connection.target_id)
    if source_node is None or target_node is None:
        raise KeyError(
            f"Connection {connection.id} has a missing endpoint "
            f"({connection.source_id} -> {connection.target_id})"
        )

    source = (
        find_handle(source_node, footprint, connection.source_handle_id)
        or default_output(source_node, footprint)
    )
    target = (
        find_handle(target_node, footprint, connection.target_handle_id)
        or default_input(target_node, footprint)
    )
    return source.position, target.position


def connection_path(
    workflow: Workflow,
    connection: WorkflowConnection,
    footprint: NodeFootprint,
) -> str:
    source, target = connection_anchors(workflow, connection, footprint)
    return bezier_path(source, target)


def connection_midpoint(
    workflow: Workflow,
    connection: WorkflowConnection,
    footprint: NodeFootprint,
) -> Position:
    """Where the per-connection delete affordance is drawn."""
    source, target = connection_anchors(workflow, connection, footprint)
    return Position(x=(source.x + target.x) / 2, y=(source.y + target.y) / 2)


def drag_path(drag: "DragConnection") -> str:
    """Preview curve from the dragged source handle to the live pointer."""
    return bezier_path(drag.source_handle.position, drag.pointer_position)
