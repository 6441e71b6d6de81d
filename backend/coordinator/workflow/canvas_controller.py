"""
Canvas Controller: the single writer of the workflow aggregate.

Every mutation of a ``Workflow`` goes through this class:

    - palette drops → node creation (via the Placement Engine)
    - node / connection CRUD and config patches
    - drag-to-connect glue around the ``ConnectionManager``
    - execution lifecycle (draft → active → paused)
    - keyboard shortcuts

Geometry, placement, shortcut resolution and the execution
collaborator only ever read the workflow.
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, Dict, List, Mapping, Optional, Set, Union

from coordinator.config.canvas_config import CanvasConfig, get_canvas_config
from coordinator.logging.activity_log import WorkflowActivityLog, get_activity_log
from coordinator.workflow.connection_manager import ConnectionManager, ConnectOutcome
from coordinator.workflow.errors import (
    CanvasError,
    ConnectionNotFoundError,
    NoWorkflowSelectedError,
    NodeNotFoundError,
    UnknownNodeTypeError,
    WorkflowExecutionError,
    WorkflowStateError,
)
from coordinator.workflow.geometry import connection_path
from coordinator.workflow.handles import Handle, NodeFootprint, all_handles, node_handles
from coordinator.workflow.palette import NodePalette, default_palette
from coordinator.workflow.placement import CanvasBounds, PlacementSettings, place
from coordinator.workflow.shortcuts import (
    KeyEvent,
    Shortcut,
    ShortcutContext,
    resolve_shortcut,
)
from coordinator.workflow.workflow_executor import ExecutionResult, WorkflowCoordinator
from coordinator.workflow.workflow_model import (
    CONFIG_AGENT_ID,
    CONFIG_LAST_RESPONSE,
    CONFIG_STATUS,
    NODE_STATUS_RUNNING,
    NODE_STATUS_STOPPED,
    NodeData,
    NodeType,
    Position,
    Workflow,
    WorkflowConnection,
    WorkflowNode,
    WorkflowStatus,
)
from coordinator.workflow.workflow_store import WorkflowRepository

logger = getLogger(__name__)


class CanvasController:
    """Owns the open workflows and the selected one.

    Usage::

        canvas = CanvasController(coordinator)
        canvas.create_workflow("Research crew")
        trigger = canvas.add_node("trigger", Position(x=100, y=100))
        agent = canvas.add_node("agent", Position(x=100, y=300))

        canvas.begin_connection_drag(output_handle, pointer)
        canvas.drag_connection(pointer)          # on every pointer move
        canvas.end_connection_drag()             # on mouse-up

        await canvas.execute_workflow()
    """

    def __init__(
        self,
        coordinator: WorkflowCoordinator,
        palette: Optional[NodePalette] = None,
        config: Optional[CanvasConfig] = None,
        repository: Optional[WorkflowRepository] = None,
    ) -> None:
        self._config = config or get_canvas_config()
        self._palette = palette or default_palette()
        self._coordinator = coordinator
        self._repository = repository

        self._footprint = NodeFootprint(self._config.node_width, self._config.node_height)
        self._placement = PlacementSettings.from_config(self._config)
        self._bounds = CanvasBounds(self._config.canvas_width, self._config.canvas_height)
        self._connections = ConnectionManager(self._config.snap_distance)

        self._workflows: List[Workflow] = []
        self._selected_id: Optional[str] = None
        self._config_panel_node_id: Optional[str] = None
        self._interaction_panel_open = False
        self._last_error: Optional[str] = None
        # Workflow ids with a coordinator call still pending
        self._running: Set[str] = set()

    # ========================================================================
    # Read-only views
    # ========================================================================

    @property
    def workflows(self) -> List[Workflow]:
        return list(self._workflows)

    @property
    def selected_workflow(self) -> Optional[Workflow]:
        return self._find_workflow(self._selected_id) if self._selected_id else None

    @property
    def connection_manager(self) -> ConnectionManager:
        return self._connections

    @property
    def palette(self) -> NodePalette:
        return self._palette

    @property
    def footprint(self) -> NodeFootprint:
        return self._footprint

    @property
    def bounds(self) -> CanvasBounds:
        return self._bounds

    @property
    def last_error(self) -> Optional[str]:
        """Error text of the last failed execution, for display."""
        return self._last_error

    @property
    def config_panel_node_id(self) -> Optional[str]:
        return self._config_panel_node_id

    @property
    def interaction_panel_open(self) -> bool:
        return self._interaction_panel_open

    def activity_log(self) -> WorkflowActivityLog:
        workflow = self._require_workflow("activity_log")
        return get_activity_log(workflow.id)

    def handles(self) -> List[Handle]:
        """All live handles of the selected workflow, recomputed."""
        workflow = self.selected_workflow
        if workflow is None:
            return []
        return all_handles(workflow.nodes, self._footprint)

    def handles_for(self, node_id: str) -> List[Handle]:
        workflow = self._require_workflow("handles_for")
        return node_handles(self._require_node(workflow, node_id), self._footprint)

    def connection_paths(self) -> Dict[str, str]:
        """Freshly derived path for every connection of the selected workflow."""
        workflow = self.selected_workflow
        if workflow is None:
            return {}
        return {
            c.id: connection_path(workflow, c, self._footprint)
            for c in workflow.connections
        }

    # ========================================================================
    # Workflows
    # ========================================================================

    def create_workflow(
        self,
        name: str = "New Workflow",
        description: Optional[str] = "A new multi-agent workflow",
    ) -> Workflow:
        """Create an empty draft workflow and select it."""
        workflow = Workflow(name=name, description=description)
        self._workflows.append(workflow)
        self._select(workflow.id)
        get_activity_log(workflow.id).creation(f"Workflow '{name}' created")
        return workflow

    def select_workflow(self, workflow_id: str) -> Workflow:
        workflow = self._find_workflow(workflow_id)
        if workflow is None:
            raise CanvasError(f"Workflow not found: {workflow_id}")
        self._select(workflow.id)
        return workflow

    def set_canvas_bounds(self, width: float, height: float) -> None:
        """Track the visible canvas size used to clamp new nodes."""
        self._bounds = CanvasBounds(width, height)

    # ========================================================================
    # Nodes
    # ========================================================================

    def add_node(
        self,
        node_type: Union[NodeType, str],
        drop_position: Position,
    ) -> WorkflowNode:
        """Create a node of ``node_type`` near ``drop_position``.

        Raises:
            NoWorkflowSelectedError: If no workflow is selected.
            UnknownNodeTypeError: If the palette doesn't know the type.
        """
        workflow = self._require_workflow("add_node")
        descriptor = self._palette.get(node_type)
        if descriptor is None:
            raise UnknownNodeTypeError(str(getattr(node_type, "value", node_type)))

        position = place(drop_position, workflow.nodes, self._bounds, self._placement)
        node = WorkflowNode(
            type=descriptor.type,
            position=position,
            data=NodeData(
                label=descriptor.label,
                description=f"{descriptor.label} node",
                config={},
            ),
        )
        workflow.nodes.append(node)
        workflow.touch()

        get_activity_log(workflow.id).creation(
            f"{descriptor.label} node {node.id} added at "
            f"({position.x:.0f}, {position.y:.0f})"
        )
        return node

    def move_node(self, node_id: str, position: Position) -> WorkflowNode:
        """Reposition a node and re-derive the paths attached to it."""
        workflow = self._require_workflow("move_node")
        node = self._require_node(workflow, node_id)
        node.position = position
        for conn in workflow.get_connections_for(node_id):
            conn.path = connection_path(workflow, conn, self._footprint)
        workflow.touch()
        return node

    def remove_node(self, node_id: str) -> WorkflowNode:
        """Delete a node together with every connection touching it."""
        workflow = self._require_workflow("remove_node")
        node = self._require_node(workflow, node_id)

        workflow.nodes = [n for n in workflow.nodes if n.id != node_id]
        workflow.connections = [
            c for c in workflow.connections
            if c.source_id != node_id and c.target_id != node_id
        ]
        if self._config_panel_node_id == node_id:
            self._config_panel_node_id = None
        workflow.touch()
        logger.info(f"[{workflow.id}] Node {node_id} removed")
        return node

    def update_node_config(self, node_id: str, patch: Mapping[str, Any]) -> WorkflowNode:
        """Shallow-merge ``patch`` into the node's config.

        Later keys overwrite earlier ones and nested values are
        replaced whole, so callers send the complete value of any key
        they touch.
        """
        workflow = self._require_workflow("update_node_config")
        node = self._require_node(workflow, node_id)
        node.data.config = {**node.data.config, **dict(patch)}
        workflow.touch()
        return node

    # ========================================================================
    # Connections
    # ========================================================================

    def create_connection(self, source: Handle, target: Handle) -> ConnectOutcome:
        """Connect two handles; the ``complete_connection`` callback.

        Self-loops, duplicate (source, target) pairs and unknown
        endpoints are silent no-ops: nothing is raised, the outcome
        says why.
        """
        workflow = self._require_workflow("create_connection")
        source_id, target_id = source.node_id, target.node_id

        if source_id == target_id:
            return ConnectOutcome.SELF_LOOP
        if workflow.get_node(source_id) is None or workflow.get_node(target_id) is None:
            return ConnectOutcome.UNKNOWN_NODE
        if workflow.has_connection(source_id, target_id):
            return ConnectOutcome.DUPLICATE

        connection = WorkflowConnection(
            id=f"conn_{source_id}_{target_id}",
            source_id=source_id,
            target_id=target_id,
            source_handle_id=source.id,
            target_handle_id=target.id,
        )
        connection.path = connection_path(workflow, connection, self._footprint)
        workflow.connections.append(connection)
        workflow.touch()

        get_activity_log(workflow.id).creation(f"Connected {source_id} -> {target_id}")
        return ConnectOutcome.CREATED

    def remove_connection(self, connection_id: str) -> WorkflowConnection:
        workflow = self._require_workflow("remove_connection")
        connection = workflow.get_connection(connection_id)
        if connection is None:
            raise ConnectionNotFoundError(connection_id)
        workflow.connections = [c for c in workflow.connections if c.id != connection_id]
        workflow.touch()
        return connection

    # ── Drag-to-connect glue ──

    def begin_connection_drag(self, handle: Handle, pointer: Position) -> bool:
        self._require_workflow("begin_connection_drag")
        return self._connections.start_connection(handle, pointer)

    def drag_connection(self, pointer: Position) -> Optional[Handle]:
        """Pointer moved during a drag; returns the current snap target."""
        return self._connections.update_connection(pointer, self.handles())

    def end_connection_drag(self) -> ConnectOutcome:
        """Mouse-up: connect to the snap target, or cancel without one."""
        if not self._connections.is_dragging:
            return ConnectOutcome.NOT_DRAGGING
        if self._connections.snap_target is None:
            self._connections.cancel_connection()
            return ConnectOutcome.NO_TARGET
        return self._connections.complete_connection(self.create_connection)

    def hover_handle(self, handle_id: Optional[str]) -> None:
        self._connections.set_hovered_handle(handle_id)

    # ========================================================================
    # Panels
    # ========================================================================

    def open_config_panel(self, node_id: str) -> bool:
        """Node click. Ignored while a connection is being dragged."""
        workflow = self._require_workflow("open_config_panel")
        self._require_node(workflow, node_id)
        if self._connections.is_dragging:
            return False
        self._config_panel_node_id = node_id
        return True

    def close_config_panel(self) -> None:
        self._config_panel_node_id = None

    def open_interaction_panel(self) -> None:
        self._interaction_panel_open = True

    def close_interaction_panel(self) -> None:
        self._interaction_panel_open = False

    # ========================================================================
    # Execution lifecycle
    # ========================================================================

    async def execute_workflow(self) -> ExecutionResult:
        """Run the selected workflow through the execution collaborator.

        The workflow goes ``active`` for the duration of the run. Only
        one coordinator call per workflow may be pending: a run that was
        stopped still blocks a new one until its call returns. Each
        agent result is merged into its node's config.

        Raises:
            WorkflowStateError: If already active, still finishing a
                stopped run, or the workflow is empty.
            WorkflowExecutionError: If the run failed; the workflow is
                ``paused`` by then and no node config was touched.
        """
        workflow = self._require_workflow("execute_workflow")
        if workflow.status is WorkflowStatus.ACTIVE:
            raise WorkflowStateError(f"Workflow '{workflow.name}' is already running")
        if workflow.id in self._running:
            raise WorkflowStateError(
                f"Workflow '{workflow.name}' is still finishing a stopped run"
            )
        if not workflow.nodes:
            raise WorkflowStateError(f"Workflow '{workflow.name}' has no nodes to execute")

        activity = get_activity_log(workflow.id)
        self._set_status(workflow, WorkflowStatus.ACTIVE)
        self._last_error = None
        activity.coordination(f"Executing workflow with {len(workflow.nodes)} nodes")

        self._running.add(workflow.id)
        try:
            result = await self._coordinator.execute_coordinator_workflow(
                workflow.model_copy(deep=True)
            )
        except Exception as e:
            message = str(e) or type(e).__name__
            self._fail_execution(workflow, message)
            raise WorkflowExecutionError(workflow.id, message, cause=e) from e
        finally:
            self._running.discard(workflow.id)

        if not result.success:
            message = result.error or "Workflow execution failed"
            self._fail_execution(workflow, message)
            raise WorkflowExecutionError(workflow.id, message)

        if workflow.status is not WorkflowStatus.ACTIVE:
            # Stopped while the run was in flight; keep the stop.
            logger.info(
                f"[{workflow.id}] Run finished after stop; results not applied"
            )
            return result

        for item in result.results:
            node = workflow.get_node(item.node_id)
            if node is None:
                logger.warning(
                    f"[{workflow.id}] Result for unknown node {item.node_id} ignored"
                )
                continue
            node.data.config = {
                **node.data.config,
                CONFIG_AGENT_ID: item.agent_id,
                CONFIG_STATUS: NODE_STATUS_RUNNING,
                CONFIG_LAST_RESPONSE: item.response,
            }
            activity.task(f"{node.data.label} ({node.id}) answered via {item.agent_id}")

        workflow.touch()
        activity.coordination(
            f"Workflow executed: {len(result.results)} agent result(s)"
        )
        return result

    def stop_workflow(self) -> Workflow:
        """``active → paused``; every node is marked ``stopped``."""
        workflow = self._require_workflow("stop_workflow")
        if workflow.status is not WorkflowStatus.ACTIVE:
            raise WorkflowStateError(
                f"Workflow '{workflow.name}' is {workflow.status.value}, not active"
            )

        self._set_status(workflow, WorkflowStatus.PAUSED)
        for node in workflow.nodes:
            node.data.config = {**node.data.config, CONFIG_STATUS: NODE_STATUS_STOPPED}
        workflow.touch()
        get_activity_log(workflow.id).coordination("Workflow stopped")
        return workflow

    async def toggle_execution(self) -> Shortcut:
        """Execute when idle, stop when running. Returns what was done."""
        workflow = self._require_workflow("toggle_execution")
        if workflow.status is WorkflowStatus.ACTIVE:
            self.stop_workflow()
            return Shortcut.STOP_WORKFLOW
        await self.execute_workflow()
        return Shortcut.EXECUTE_WORKFLOW

    # ========================================================================
    # Keyboard
    # ========================================================================

    def shortcut_context(self) -> ShortcutContext:
        workflow = self.selected_workflow
        return ShortcutContext(
            has_selected_workflow=workflow is not None,
            is_dragging=self._connections.is_dragging,
            config_panel_open=self._config_panel_node_id is not None,
            interaction_panel_open=self._interaction_panel_open,
            node_count=len(workflow.nodes) if workflow else 0,
            is_active=bool(workflow and workflow.status is WorkflowStatus.ACTIVE),
        )

    async def handle_key(self, event: KeyEvent) -> Optional[Shortcut]:
        """Apply the shortcut bound to ``event``, if any.

        Execution errors propagate so the caller can show them.
        """
        shortcut = resolve_shortcut(
            event, self.shortcut_context(), self._config.platform_modifier,
        )
        if shortcut is None:
            return None

        if shortcut is Shortcut.NEW_WORKFLOW:
            self.create_workflow()
        elif shortcut is Shortcut.CANCEL_CONNECTION:
            self._connections.cancel_connection()
        elif shortcut is Shortcut.CLOSE_CONFIG_PANEL:
            self.close_config_panel()
        elif shortcut is Shortcut.CLOSE_INTERACTION_PANEL:
            self.close_interaction_panel()
        elif shortcut is Shortcut.EXECUTE_WORKFLOW:
            await self.execute_workflow()
        elif shortcut is Shortcut.STOP_WORKFLOW:
            self.stop_workflow()
        return shortcut

    # ========================================================================
    # Persistence
    # ========================================================================

    def save_workflow(self) -> Workflow:
        workflow = self._require_workflow("save_workflow")
        self._require_repository().save(workflow)
        return workflow

    def load_workflows(self) -> List[Workflow]:
        """Replace open workflows with the repository's, keeping unsaved ones."""
        loaded = self._require_repository().list_all()
        loaded_ids = {w.id for w in loaded}
        self._workflows = [w for w in self._workflows if w.id not in loaded_ids] + loaded
        if self._selected_id and self._find_workflow(self._selected_id) is None:
            self._select(None)
        return loaded

    # ========================================================================
    # Internal helpers
    # ========================================================================

    def _find_workflow(self, workflow_id: Optional[str]) -> Optional[Workflow]:
        for w in self._workflows:
            if w.id == workflow_id:
                return w
        return None

    def _select(self, workflow_id: Optional[str]) -> None:
        if workflow_id != self._selected_id:
            self._connections.cancel_connection()
            self._config_panel_node_id = None
            self._interaction_panel_open = False
            self._last_error = None
        self._selected_id = workflow_id

    def _require_workflow(self, operation: str) -> Workflow:
        workflow = self.selected_workflow
        if workflow is None:
            raise NoWorkflowSelectedError(operation)
        return workflow

    @staticmethod
    def _require_node(workflow: Workflow, node_id: str) -> WorkflowNode:
        node = workflow.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def _require_repository(self) -> WorkflowRepository:
        if self._repository is None:
            raise CanvasError("No workflow repository configured")
        return self._repository

    def _set_status(self, workflow: Workflow, status: WorkflowStatus) -> None:
        logger.info(
            f"[{workflow.id}] Status {workflow.status.value} → {status.value}"
        )
        workflow.status = status
        workflow.touch()

    def _fail_execution(self, workflow: Workflow, message: str) -> None:
        self._set_status(workflow, WorkflowStatus.PAUSED)
        self._last_error = message
        get_activity_log(workflow.id).error(f"Workflow execution failed: {message}")
