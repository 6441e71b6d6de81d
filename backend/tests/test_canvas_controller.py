"""Tests for the Canvas Controller: node/connection CRUD, lifecycle, keys."""

import asyncio

import pytest

from coordinator.config.canvas_config import CanvasConfig
from coordinator.logging.activity_log import ActivityType
from coordinator.workflow.canvas_controller import CanvasController
from coordinator.workflow.connection_manager import ConnectOutcome
from coordinator.workflow.errors import (
    CanvasError,
    ConnectionNotFoundError,
    NoWorkflowSelectedError,
    NodeNotFoundError,
    UnknownNodeTypeError,
    WorkflowExecutionError,
    WorkflowStateError,
)
from coordinator.workflow.handles import HandleSide
from coordinator.workflow.shortcuts import KeyEvent, Shortcut
from coordinator.workflow.workflow_executor import ExecutionResult, NodeExecutionResult
from coordinator.workflow.workflow_model import NodeType, Position, WorkflowStatus

from tests.conftest import handle_on


def _assert_invariants(workflow):
    node_ids = {n.id for n in workflow.nodes}
    pairs = [(c.source_id, c.target_id) for c in workflow.connections]
    for source_id, target_id in pairs:
        assert source_id in node_ids and target_id in node_ids
        assert source_id != target_id
    assert len(pairs) == len(set(pairs))
    assert workflow.validate_graph() == []


@pytest.fixture
def two_nodes(controller):
    first = controller.add_node("trigger", Position(x=100, y=100))
    second = controller.add_node("agent", Position(x=100, y=400))
    return first, second


def _connect(controller, source, target, footprint):
    out = handle_on(source, HandleSide.BOTTOM, footprint)
    inp = handle_on(target, HandleSide.TOP, footprint)
    controller.begin_connection_drag(out, out.position)
    controller.drag_connection(inp.position.offset(4, 4))
    return controller.end_connection_drag()


class TestWorkflows:

    def test_create_selects_new_draft(self, coordinator, canvas_config):
        canvas = CanvasController(coordinator, config=canvas_config)
        assert canvas.selected_workflow is None
        wf = canvas.create_workflow("Crew")
        assert canvas.selected_workflow is wf
        assert wf.status is WorkflowStatus.DRAFT
        assert canvas.activity_log().entries(ActivityType.CREATION)

    def test_select_unknown_workflow(self, controller):
        with pytest.raises(CanvasError):
            controller.select_workflow("missing")

    def test_switching_workflows_cancels_drag(self, controller, two_nodes, footprint):
        first = controller.selected_workflow
        out = handle_on(two_nodes[0], HandleSide.BOTTOM, footprint)
        controller.begin_connection_drag(out, out.position)
        controller.create_workflow("Other")
        assert not controller.connection_manager.is_dragging
        controller.select_workflow(first.id)
        assert controller.selected_workflow is first

    def test_operations_need_a_selection(self, coordinator, canvas_config):
        canvas = CanvasController(coordinator, config=canvas_config)
        with pytest.raises(NoWorkflowSelectedError):
            canvas.add_node("agent", Position(x=0, y=0))


class TestAddNode:

    def test_scenario_a_first_node_at_clamped_point(self, controller):
        node = controller.add_node("trigger", Position(x=100, y=100))
        wf = controller.selected_workflow
        assert node.position == Position(x=100, y=100)
        assert len(wf.nodes) == 1
        assert node.type is NodeType.TRIGGER
        assert node.data.label == "Trigger"
        assert node.data.description == "Trigger node"
        assert node.data.config == {}

    def test_scenario_b_overlap_moves_by_grid_step(self, controller):
        controller.add_node("trigger", Position(x=100, y=100))
        node = controller.add_node("agent", Position(x=100, y=100))
        assert node.position == Position(x=300, y=100)

    def test_drop_is_clamped_into_canvas(self, controller):
        node = controller.add_node("action", Position(x=-50, y=5000))
        assert node.position == Position(x=100, y=732)

    def test_canvas_bounds_can_change(self, controller):
        controller.set_canvas_bounds(600, 400)
        node = controller.add_node("action", Position(x=5000, y=5000))
        assert node.position == Position(x=500, y=332)

    def test_unknown_type(self, controller):
        with pytest.raises(UnknownNodeTypeError):
            controller.add_node("webhook", Position(x=0, y=0))

    def test_add_stamps_updated_at(self, controller):
        wf = controller.selected_workflow
        wf.updated_at = "2000-01-01T00:00:00+00:00"
        controller.add_node(NodeType.CONDITION, Position(x=400, y=400))
        assert wf.updated_at != "2000-01-01T00:00:00+00:00"


class TestConnections:

    def test_scenario_c_drag_creates_one_connection(self, controller, two_nodes, footprint):
        trigger, agent = two_nodes
        outcome = _connect(controller, trigger, agent, footprint)

        wf = controller.selected_workflow
        assert outcome is ConnectOutcome.CREATED
        assert len(wf.connections) == 1
        conn = wf.connections[0]
        assert (conn.source_id, conn.target_id) == (trigger.id, agent.id)
        assert conn.source_handle_id == f"{trigger.id}-bottom"
        assert conn.target_handle_id == f"{agent.id}-top"
        assert conn.path.startswith("M 180 196 C")
        assert not controller.connection_manager.is_dragging
        _assert_invariants(wf)

    def test_duplicate_pair_is_silent_noop(self, controller, two_nodes, footprint):
        trigger, agent = two_nodes
        _connect(controller, trigger, agent, footprint)
        assert _connect(controller, trigger, agent, footprint) is ConnectOutcome.DUPLICATE
        assert len(controller.selected_workflow.connections) == 1

    def test_reverse_pair_is_allowed(self, controller, two_nodes, footprint):
        trigger, agent = two_nodes
        _connect(controller, trigger, agent, footprint)
        assert _connect(controller, agent, trigger, footprint) is ConnectOutcome.CREATED
        _assert_invariants(controller.selected_workflow)

    def test_self_loop_is_silent_noop(self, controller, two_nodes, footprint):
        trigger, _ = two_nodes
        out = handle_on(trigger, HandleSide.BOTTOM, footprint)
        inp = handle_on(trigger, HandleSide.TOP, footprint)
        assert controller.create_connection(out, inp) is ConnectOutcome.SELF_LOOP
        assert controller.selected_workflow.connections == []

    def test_mouse_up_without_target_cancels(self, controller, two_nodes, footprint):
        out = handle_on(two_nodes[0], HandleSide.BOTTOM, footprint)
        controller.begin_connection_drag(out, out.position)
        controller.drag_connection(Position(x=900, y=700))
        assert controller.end_connection_drag() is ConnectOutcome.NO_TARGET
        assert not controller.connection_manager.is_dragging
        assert controller.selected_workflow.connections == []

    def test_remove_connection(self, controller, two_nodes, footprint):
        _connect(controller, *two_nodes, footprint)
        conn_id = controller.selected_workflow.connections[0].id
        controller.remove_connection(conn_id)
        assert controller.selected_workflow.connections == []
        with pytest.raises(ConnectionNotFoundError):
            controller.remove_connection(conn_id)

    def test_move_node_rederives_paths(self, controller, two_nodes, footprint):
        trigger, agent = two_nodes
        _connect(controller, trigger, agent, footprint)
        before = controller.selected_workflow.connections[0].path
        controller.move_node(agent.id, Position(x=600, y=500))
        after = controller.selected_workflow.connections[0].path
        assert after != before
        assert after == controller.connection_paths()[controller.selected_workflow.connections[0].id]

    def test_remove_node_drops_attached_connections(self, controller, two_nodes, footprint):
        trigger, agent = two_nodes
        third = controller.add_node("action", Position(x=700, y=100))
        _connect(controller, trigger, agent, footprint)
        _connect(controller, agent, third, footprint)
        controller.open_config_panel(agent.id)

        controller.remove_node(agent.id)

        wf = controller.selected_workflow
        assert [n.id for n in wf.nodes] == [trigger.id, third.id]
        assert wf.connections == []
        assert controller.config_panel_node_id is None
        _assert_invariants(wf)


class TestNodeConfig:

    def test_shallow_merge(self, controller, two_nodes):
        _, agent = two_nodes
        controller.update_node_config(agent.id, {"instructions": "Plan", "tools": {"web": True}})
        controller.update_node_config(agent.id, {"tools": {"code": True}})
        assert agent.data.config == {"instructions": "Plan", "tools": {"code": True}}

    def test_unknown_node(self, controller):
        with pytest.raises(NodeNotFoundError):
            controller.update_node_config("ghost", {"a": 1})


class TestPanels:

    def test_node_click_ignored_while_dragging(self, controller, two_nodes, footprint):
        trigger, agent = two_nodes
        out = handle_on(trigger, HandleSide.BOTTOM, footprint)
        controller.begin_connection_drag(out, out.position)
        assert not controller.open_config_panel(agent.id)
        controller.connection_manager.cancel_connection()
        assert controller.open_config_panel(agent.id)
        assert controller.config_panel_node_id == agent.id


class TestExecution:

    @pytest.mark.asyncio
    async def test_success_merges_results(self, controller, coordinator, two_nodes):
        trigger, agent = two_nodes
        controller.update_node_config(agent.id, {"instructions": "Research"})
        coordinator.execute_coordinator_workflow.return_value = ExecutionResult(
            success=True,
            results=[NodeExecutionResult(node_id=agent.id, agent_id="agent-7", response="Done")],
        )

        await controller.execute_workflow()

        wf = controller.selected_workflow
        assert wf.status is WorkflowStatus.ACTIVE
        assert agent.data.config == {
            "instructions": "Research",
            "agentId": "agent-7",
            "status": "running",
            "lastResponse": "Done",
        }
        assert trigger.data.config == {}
        assert agent.status_label() == "Running"
        coordinator.execute_coordinator_workflow.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_scenario_e_unsuccessful_run_pauses(self, controller, coordinator, two_nodes):
        coordinator.execute_coordinator_workflow.return_value = ExecutionResult(
            success=False, error="agents unavailable",
        )
        with pytest.raises(WorkflowExecutionError, match="agents unavailable"):
            await controller.execute_workflow()

        wf = controller.selected_workflow
        assert wf.status is WorkflowStatus.PAUSED
        assert all(n.data.config == {} for n in wf.nodes)
        assert controller.last_error == "agents unavailable"
        assert controller.activity_log().entries(ActivityType.ERROR)

    @pytest.mark.asyncio
    async def test_collaborator_exception_pauses_and_surfaces(self, controller, coordinator, two_nodes):
        coordinator.execute_coordinator_workflow.side_effect = RuntimeError("network down")
        with pytest.raises(WorkflowExecutionError) as exc_info:
            await controller.execute_workflow()
        assert isinstance(exc_info.value.cause, RuntimeError)
        assert controller.selected_workflow.status is WorkflowStatus.PAUSED
        assert controller.last_error == "network down"

    @pytest.mark.asyncio
    async def test_cannot_execute_empty_workflow(self, controller):
        with pytest.raises(WorkflowStateError):
            await controller.execute_workflow()
        assert controller.selected_workflow.status is WorkflowStatus.DRAFT

    @pytest.mark.asyncio
    async def test_cannot_execute_while_active(self, controller, coordinator, two_nodes):
        await controller.execute_workflow()
        with pytest.raises(WorkflowStateError):
            await controller.execute_workflow()
        assert coordinator.execute_coordinator_workflow.await_count == 1

    @pytest.mark.asyncio
    async def test_collaborator_gets_a_copy(self, controller, coordinator, two_nodes):
        await controller.execute_workflow()
        passed = coordinator.execute_coordinator_workflow.await_args.args[0]
        assert passed is not controller.selected_workflow
        assert [n.id for n in passed.nodes] == [n.id for n in two_nodes]

    @pytest.mark.asyncio
    async def test_stop_marks_every_node(self, controller, two_nodes):
        await controller.execute_workflow()
        controller.stop_workflow()
        wf = controller.selected_workflow
        assert wf.status is WorkflowStatus.PAUSED
        assert all(n.data.config["status"] == "stopped" for n in wf.nodes)

    def test_stop_requires_active(self, controller, two_nodes):
        with pytest.raises(WorkflowStateError):
            controller.stop_workflow()

    @pytest.mark.asyncio
    async def test_paused_workflow_can_run_again(self, controller, coordinator, two_nodes):
        await controller.execute_workflow()
        controller.stop_workflow()
        await controller.execute_workflow()
        assert controller.selected_workflow.status is WorkflowStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_toggle(self, controller, two_nodes):
        assert await controller.toggle_execution() is Shortcut.EXECUTE_WORKFLOW
        assert await controller.toggle_execution() is Shortcut.STOP_WORKFLOW
        assert controller.selected_workflow.status is WorkflowStatus.PAUSED

class TestInFlightRun:
    """A stopped run keeps blocking new runs until its coordinator call returns."""

    @staticmethod
    def _block(coordinator, agent_id, fail=False):
        started, release = asyncio.Event(), asyncio.Event()

        async def _slow_run(workflow):
            started.set()
            await release.wait()
            if fail:
                raise RuntimeError("late failure")
            return ExecutionResult(
                success=True,
                results=[NodeExecutionResult(node_id=agent_id, agent_id="stale", response="from run 1")],
            )

        coordinator.execute_coordinator_workflow.side_effect = _slow_run
        return started, release

    @pytest.mark.asyncio
    async def test_stop_during_run_drops_results(self, controller, coordinator, two_nodes):
        _, agent = two_nodes
        started, release = self._block(coordinator, agent.id)

        run = asyncio.create_task(controller.execute_workflow())
        await started.wait()
        controller.stop_workflow()
        release.set()
        result = await run

        assert result.success
        assert controller.selected_workflow.status is WorkflowStatus.PAUSED
        assert agent.data.config == {"status": "stopped"}

    @pytest.mark.asyncio
    async def test_re_execute_refused_while_stopped_run_pending(self, controller, coordinator, two_nodes):
        _, agent = two_nodes
        started, release = self._block(coordinator, agent.id)

        run = asyncio.create_task(controller.execute_workflow())
        await started.wait()
        controller.stop_workflow()

        with pytest.raises(WorkflowStateError, match="still finishing"):
            await controller.execute_workflow()
        assert controller.selected_workflow.status is WorkflowStatus.PAUSED

        release.set()
        await run

        assert coordinator.execute_coordinator_workflow.await_count == 1
        assert agent.data.config == {"status": "stopped"}

    @pytest.mark.asyncio
    async def test_can_run_again_once_pending_run_returns(self, controller, coordinator, two_nodes):
        _, agent = two_nodes
        started, release = self._block(coordinator, agent.id)

        run = asyncio.create_task(controller.execute_workflow())
        await started.wait()
        controller.stop_workflow()
        release.set()
        await run

        coordinator.execute_coordinator_workflow.side_effect = None
        coordinator.execute_coordinator_workflow.return_value = ExecutionResult(success=True)
        await controller.execute_workflow()

        assert controller.selected_workflow.status is WorkflowStatus.ACTIVE
        assert coordinator.execute_coordinator_workflow.await_count == 2

    @pytest.mark.asyncio
    async def test_failed_run_releases_the_workflow(self, controller, coordinator, two_nodes):
        _, agent = two_nodes
        started, release = self._block(coordinator, agent.id, fail=True)

        run = asyncio.create_task(controller.execute_workflow())
        await started.wait()
        release.set()
        with pytest.raises(WorkflowExecutionError, match="late failure"):
            await run

        coordinator.execute_coordinator_workflow.side_effect = None
        coordinator.execute_coordinator_workflow.return_value = ExecutionResult(success=True)
        await controller.execute_workflow()
        assert controller.selected_workflow.status is WorkflowStatus.ACTIVE



class TestKeyboard:

    @pytest.mark.asyncio
    async def test_escape_priority(self, controller, two_nodes, footprint):
        trigger, agent = two_nodes
        controller.open_interaction_panel()
        controller.open_config_panel(agent.id)
        out = handle_on(trigger, HandleSide.BOTTOM, footprint)
        controller.begin_connection_drag(out, out.position)

        assert await controller.handle_key(KeyEvent("Escape")) is Shortcut.CANCEL_CONNECTION
        assert controller.config_panel_node_id == agent.id
        assert await controller.handle_key(KeyEvent("Escape")) is Shortcut.CLOSE_CONFIG_PANEL
        assert controller.interaction_panel_open
        assert await controller.handle_key(KeyEvent("Escape")) is Shortcut.CLOSE_INTERACTION_PANEL
        assert not controller.interaction_panel_open
        assert await controller.handle_key(KeyEvent("Escape")) is None

    @pytest.mark.asyncio
    async def test_space_toggles_execution(self, controller, two_nodes):
        assert await controller.handle_key(KeyEvent(" ")) is Shortcut.EXECUTE_WORKFLOW
        assert controller.selected_workflow.status is WorkflowStatus.ACTIVE
        assert await controller.handle_key(KeyEvent(" ")) is Shortcut.STOP_WORKFLOW
        assert controller.selected_workflow.status is WorkflowStatus.PAUSED

    @pytest.mark.asyncio
    async def test_space_needs_nodes(self, controller, coordinator):
        assert await controller.handle_key(KeyEvent(" ")) is None
        coordinator.execute_coordinator_workflow.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_n_creates_workflow(self, controller):
        assert await controller.handle_key(KeyEvent("n")) is Shortcut.NEW_WORKFLOW
        assert len(controller.workflows) == 2

    @pytest.mark.asyncio
    async def test_reserved_modifiers_are_left_alone(self, controller):
        assert await controller.handle_key(KeyEvent("n", alt=True)) is None
        assert len(controller.workflows) == 1

    @pytest.mark.asyncio
    async def test_platform_chord_without_selection(self, coordinator):
        canvas = CanvasController(coordinator, config=CanvasConfig(platform_modifier="meta"))
        assert await canvas.handle_key(KeyEvent("n")) is None
        assert await canvas.handle_key(KeyEvent("n", ctrl=True)) is None
        assert await canvas.handle_key(KeyEvent("n", meta=True)) is Shortcut.NEW_WORKFLOW
        assert canvas.selected_workflow is not None
