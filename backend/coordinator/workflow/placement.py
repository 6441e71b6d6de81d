"""
Placement Engine: pick a non-overlapping position for a new node.

``place`` never fails. It clamps the requested point into the canvas,
and if that spot collides with an existing node it searches in two
phases:

    1. a deterministic row-major grid scan anchored at the clamped
       point that wraps around the placeable area (reproducible for
       identical input)
    2. an outward spiral around the same point

If the attempt budget runs out, the last candidate is returned even if
it still overlaps.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from logging import getLogger
from typing import Iterable, List, Sequence

from coordinator.config.canvas_config import CanvasConfig
from coordinator.workflow.handles import NodeFootprint
from coordinator.workflow.workflow_model import Position, WorkflowNode

logger = getLogger(__name__)

SPIRAL_ANGLE_STEP = 0.8
SPIRAL_BASE_RADIUS = 100.0
SPIRAL_RADIUS_STEP = 30.0


@dataclass(frozen=True)
class CanvasBounds:
    """Visible canvas extent, starting at (0, 0)."""
    width: float
    height: float


@dataclass(frozen=True)
class PlacementSettings:
    footprint: NodeFootprint = field(default_factory=NodeFootprint)
    margin: float = 20.0
    grid_step: float = 200.0
    grid_attempts: int = 20
    max_attempts: int = 100

    @classmethod
    def from_config(cls, config: CanvasConfig) -> "PlacementSettings":
        return cls(
            footprint=NodeFootprint(config.node_width, config.node_height),
            margin=config.placement_margin,
            grid_step=config.grid_step,
            grid_attempts=config.grid_attempts,
            max_attempts=config.max_placement_attempts,
        )


def _axis_limits(extent: float, size: float, margin: float) -> tuple:
    low = margin + size / 2
    high = extent - size / 2 - margin
    # Canvas smaller than a node: pin to the low edge.
    return low, max(low, high)


def clamp_position(
    position: Position,
    bounds: CanvasBounds,
    settings: PlacementSettings,
) -> Position:
    """Clamp a point into the placeable area of the canvas."""
    fp = settings.footprint
    min_x, max_x = _axis_limits(bounds.width, fp.width, settings.margin)
    min_y, max_y = _axis_limits(bounds.height, fp.height, settings.margin)
    return Position(
        x=min(max(position.x, min_x), max_x),
        y=min(max(position.y, min_y), max_y),
    )


def overlaps(
    candidate: Position,
    existing: Iterable[Position],
    footprint: NodeFootprint,
) -> bool:
    """Box-exclusion test: too close on both axes counts as overlap.

    This is deliberately more generous than true rectangle
    intersection so placed nodes keep visible breathing room.
    """
    for pos in existing:
        if (
            abs(candidate.x - pos.x) < footprint.width
            and abs(candidate.y - pos.y) < footprint.height
        ):
            return True
    return False


def _grid_cells(low: float, high: float, step: float) -> int:
    """How many grid steps fit in the range [low, high] (at least 1)."""
    return max(1, int((high - low) // step) + 1)


def _wrap(anchor: float, low: float, high: float, steps: int, step: float) -> float:
    """Move ``steps`` grid steps from ``anchor``, wrapping back to ``low``."""
    period = _grid_cells(low, high, step) * step
    return low + (anchor - low + steps * step) % period


def grid_candidate(
    index: int,
    base: Position,
    bounds: CanvasBounds,
    settings: PlacementSettings,
) -> Position:
    """Cell ``index`` (1-based) of the row-major grid anchored at ``base``.

    Columns and rows wrap around the placeable area, so a drop near the
    right or bottom edge still scans distinct cells instead of clamping
    every candidate back onto the edge.
    """
    step = settings.grid_step
    if step <= 0:
        return base

    fp = settings.footprint
    min_x, max_x = _axis_limits(bounds.width, fp.width, settings.margin)
    min_y, max_y = _axis_limits(bounds.height, fp.height, settings.margin)
    row, column = divmod(index, _grid_cells(min_x, max_x, step))
    return clamp_position(
        Position(
            x=_wrap(base.x, min_x, max_x, column, step),
            y=_wrap(base.y, min_y, max_y, row, step),
        ),
        bounds,
        settings,
    )


def spiral_candidate(
    index: int,
    base: Position,
    bounds: CanvasBounds,
    settings: PlacementSettings,
) -> Position:
    """Point ``index`` of the outward spiral around ``base``."""
    angle = index * SPIRAL_ANGLE_STEP
    radius = SPIRAL_BASE_RADIUS + index * SPIRAL_RADIUS_STEP
    return clamp_position(
        base.offset(math.cos(angle) * radius, math.sin(angle) * radius),
        bounds,
        settings,
    )


def place(
    requested: Position,
    existing_nodes: Sequence[WorkflowNode],
    bounds: CanvasBounds,
    settings: PlacementSettings = PlacementSettings(),
) -> Position:
    """Compute a position for a new node dropped at ``requested``.

    Deterministic: identical inputs always produce the same output.
    """
    base = clamp_position(requested, bounds, settings)
    occupied: List[Position] = [n.position for n in existing_nodes]
    footprint = settings.footprint

    if not overlaps(base, occupied, footprint):
        return base

    candidate = base
    for attempt in range(1, settings.max_attempts + 1):
        if attempt <= settings.grid_attempts:
            candidate = grid_candidate(attempt, base, bounds, settings)
        else:
            candidate = spiral_candidate(
                attempt - settings.grid_attempts - 1, base, bounds, settings
            )

        if not overlaps(candidate, occupied, footprint):
            logger.debug(
                f"Placed node at ({candidate.x:.0f}, {candidate.y:.0f}) "
                f"after {attempt} attempt(s)"
            )
            return candidate

    logger.warning(
        f"No free slot near ({base.x:.0f}, {base.y:.0f}) after "
        f"{settings.max_attempts} attempts; placing with overlap"
    )
    return candidate
