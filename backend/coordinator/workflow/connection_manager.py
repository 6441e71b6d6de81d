"""
Connection Manager: the drag-to-connect state machine.

The machine has two states, ``Idle`` and ``Dragging``, and four
events. Transitions are pure:

    transition(state, event, snap_distance) -> (state, effects)

so the whole interaction can be exercised without any rendering
layer. ``ConnectionManager`` wraps the pure machine with the bits the
canvas needs at runtime: the current state, hover tracking, the
create-callback plumbing and render hints for handles.

Lifecycle::

    Idle --StartConnection(output handle)--> Dragging
    Dragging --UpdateConnection--> Dragging      (pointer + snap target)
    Dragging --CompleteConnection--> Idle        (+ CreateConnection effect
                                                  when a snap target exists)
    Dragging --CancelConnection--> Idle
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from logging import getLogger
from typing import Callable, List, Optional, Sequence, Tuple, Union

from coordinator.workflow.geometry import distance, drag_path
from coordinator.workflow.handles import Handle
from coordinator.workflow.workflow_model import Position

logger = getLogger(__name__)

DEFAULT_SNAP_DISTANCE = 30.0


# ============================================================================
# States
# ============================================================================


@dataclass(frozen=True)
class DragConnection:
    """Ephemeral state of an in-progress drag."""
    source_handle: Handle
    pointer_position: Position
    snap_target: Optional[Handle] = None
    snap_distance: Optional[float] = None


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Dragging:
    drag: DragConnection


ConnectionState = Union[Idle, Dragging]

IDLE = Idle()


# ============================================================================
# Events
# ============================================================================


@dataclass(frozen=True)
class StartConnection:
    handle: Handle
    pointer: Position


@dataclass(frozen=True)
class UpdateConnection:
    pointer: Position
    handles: Sequence[Handle]


@dataclass(frozen=True)
class CompleteConnection:
    pass


@dataclass(frozen=True)
class CancelConnection:
    pass


ConnectionEvent = Union[
    StartConnection, UpdateConnection, CompleteConnection, CancelConnection
]


# ============================================================================
# Effects
# ============================================================================


@dataclass(frozen=True)
class CreateConnection:
    """Ask the owner of the workflow to connect two handles."""
    source: Handle
    target: Handle


@dataclass(frozen=True)
class StartRejected:
    """A drag was attempted from a handle that can't originate edges."""
    handle: Handle


@dataclass(frozen=True)
class DragEnded:
    """The drag finished; ``snapped`` tells whether a target was held."""
    snapped: bool


ConnectionEffect = Union[CreateConnection, StartRejected, DragEnded]


# ============================================================================
# Pure transitions
# ============================================================================


def is_eligible_target(source: Handle, candidate: Handle) -> bool:
    """Only input handles on a different node can receive an edge."""
    return candidate.node_id != source.node_id and candidate.is_input


def find_snap_target(
    source: Handle,
    pointer: Position,
    handles: Sequence[Handle],
    snap_distance: float,
) -> Tuple[Optional[Handle], Optional[float]]:
    """Nearest eligible handle within ``snap_distance`` of the pointer.

    Single pass over ``handles``; on equal distances the earlier handle
    wins so the result is stable for a stable handle order.
    """
    best: Optional[Handle] = None
    best_distance: Optional[float] = None
    for candidate in handles:
        if not is_eligible_target(source, candidate):
            continue
        d = distance(candidate.position, pointer)
        if best_distance is None or d < best_distance:
            best, best_distance = candidate, d

    if best is None or best_distance > snap_distance:
        return None, None
    return best, best_distance


def transition(
    state: ConnectionState,
    event: ConnectionEvent,
    snap_distance: float = DEFAULT_SNAP_DISTANCE,
) -> Tuple[ConnectionState, List[ConnectionEffect]]:
    """Apply one event. Events that don't apply to the state are no-ops."""
    if isinstance(event, StartConnection):
        if isinstance(state, Dragging):
            return state, []
        if not event.handle.is_output:
            return state, [StartRejected(event.handle)]
        drag = DragConnection(
            source_handle=event.handle,
            pointer_position=event.pointer,
        )
        return Dragging(drag), []

    if isinstance(event, UpdateConnection):
        if not isinstance(state, Dragging):
            return state, []
        target, target_distance = find_snap_target(
            state.drag.source_handle, event.pointer, event.handles, snap_distance,
        )
        drag = replace(
            state.drag,
            pointer_position=event.pointer,
            snap_target=target,
            snap_distance=target_distance,
        )
        return Dragging(drag), []

    if isinstance(event, CompleteConnection):
        if not isinstance(state, Dragging):
            return state, []
        drag = state.drag
        effects: List[ConnectionEffect] = []
        if drag.snap_target is not None:
            effects.append(CreateConnection(drag.source_handle, drag.snap_target))
        effects.append(DragEnded(snapped=drag.snap_target is not None))
        return IDLE, effects

    if isinstance(event, CancelConnection):
        if not isinstance(state, Dragging):
            return state, []
        return IDLE, [DragEnded(snapped=False)]

    raise TypeError(f"Unknown connection event: {event!r}")


# ============================================================================
# Outcomes & render hints
# ============================================================================


class ConnectOutcome(str, Enum):
    """Result of completing a drag."""
    CREATED = "created"
    NO_TARGET = "no_target"
    SELF_LOOP = "self_loop"
    DUPLICATE = "duplicate"
    UNKNOWN_NODE = "unknown_node"
    NOT_DRAGGING = "not_dragging"


class HandleVisualState(str, Enum):
    SNAPPING = "snapping"
    VALID_TARGET = "valid_target"
    INVALID_TARGET = "invalid_target"
    HOVERED = "hovered"
    IDLE = "idle"


CreateCallback = Callable[[Handle, Handle], ConnectOutcome]


# ============================================================================
# Runtime wrapper
# ============================================================================


class ConnectionManager:
    """Holds the current drag state and feeds events through ``transition``.

    Usage::

        manager.start_connection(output_handle, pointer)
        manager.update_connection(pointer, handles)   # every pointer move
        outcome = manager.complete_connection(controller.create_connection)
    """

    def __init__(self, snap_distance: float = DEFAULT_SNAP_DISTANCE) -> None:
        self._snap_distance = snap_distance
        self._state: ConnectionState = IDLE
        self._hovered_handle_id: Optional[str] = None

    # ── State ──

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def snap_distance(self) -> float:
        return self._snap_distance

    @property
    def is_dragging(self) -> bool:
        return isinstance(self._state, Dragging)

    @property
    def drag(self) -> Optional[DragConnection]:
        if isinstance(self._state, Dragging):
            return self._state.drag
        return None

    @property
    def snap_target(self) -> Optional[Handle]:
        drag = self.drag
        return drag.snap_target if drag else None

    @property
    def hovered_handle_id(self) -> Optional[str]:
        return self._hovered_handle_id

    def dispatch(self, event: ConnectionEvent) -> List[ConnectionEffect]:
        self._state, effects = transition(self._state, event, self._snap_distance)
        return effects

    # ── Actions ──

    def start_connection(self, handle: Handle, pointer: Position) -> bool:
        """Begin dragging from ``handle``. Returns False if the drag was refused."""
        effects = self.dispatch(StartConnection(handle, pointer))
        if any(isinstance(e, StartRejected) for e in effects):
            logger.debug(f"Refused drag from input handle {handle.id}")
            return False
        if self.is_dragging and self.drag.source_handle == handle:
            logger.debug(f"Drag started from {handle.id}")
            return True
        return False

    def update_connection(
        self, pointer: Position, handles: Sequence[Handle],
    ) -> Optional[Handle]:
        """Move the pointer and recompute the snap target."""
        self.dispatch(UpdateConnection(pointer, tuple(handles)))
        return self.snap_target

    def complete_connection(self, create: CreateCallback) -> ConnectOutcome:
        """Finish the drag, connecting to the snap target if one is held.

        Always returns to Idle. ``create`` is responsible for refusing
        self-loops and duplicate pairs; its verdict is passed through.
        """
        if not self.is_dragging:
            return ConnectOutcome.NOT_DRAGGING

        effects = self.dispatch(CompleteConnection())
        self._hovered_handle_id = None

        outcome = ConnectOutcome.NO_TARGET
        for effect in effects:
            if isinstance(effect, CreateConnection):
                outcome = create(effect.source, effect.target)
                logger.debug(
                    f"Drag {effect.source.id} -> {effect.target.id}: {outcome.value}"
                )
        return outcome

    def cancel_connection(self) -> bool:
        """Abandon the drag. Returns False when nothing was in progress."""
        was_dragging = self.is_dragging
        self.dispatch(CancelConnection())
        self._hovered_handle_id = None
        if was_dragging:
            logger.debug("Drag cancelled")
        return was_dragging

    def handle_key_down(self, key: str) -> bool:
        """Escape cancels an in-progress drag."""
        if key == "Escape" and self.is_dragging:
            return self.cancel_connection()
        return False

    # ── Hover (independent of the drag state) ──

    def set_hovered_handle(self, handle_id: Optional[str]) -> None:
        self._hovered_handle_id = handle_id

    # ── Render hints ──

    def preview_path(self) -> Optional[str]:
        drag = self.drag
        return drag_path(drag) if drag else None

    def handle_visual_state(self, handle: Handle) -> HandleVisualState:
        drag = self.drag
        if drag is not None:
            if drag.snap_target is not None and drag.snap_target.id == handle.id:
                return HandleVisualState.SNAPPING
            if is_eligible_target(drag.source_handle, handle):
                return HandleVisualState.VALID_TARGET
            return HandleVisualState.INVALID_TARGET
        if self._hovered_handle_id == handle.id:
            return HandleVisualState.HOVERED
        return HandleVisualState.IDLE

    def handle_tooltip(self, handle: Handle) -> str:
        drag = self.drag
        if drag is not None:
            if is_eligible_target(drag.source_handle, handle):
                return "Drop to connect"
            return "Invalid target"
        return "Connection input" if handle.is_input else "Drag to connect"
