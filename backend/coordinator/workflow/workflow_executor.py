"""
Workflow Executor: run a canvas Workflow as a LangGraph StateGraph.

Defines the two collaborator seams the canvas talks to:

    WorkflowCoordinator  executes a whole workflow and reports
                         per-node agent results
    AgentMessenger       sends one message to one agent

``LangGraphCoordinator`` is the default coordinator. It compiles the
node/connection topology into a LangGraph graph where every agent node
asks its bound agent (via the messenger) and every other node passes
its upstream output through.
"""

from __future__ import annotations

import time
from logging import getLogger
from typing import Annotated, Any, Dict, List, Optional, Protocol, Set, TypedDict

from langgraph.errors import GraphRecursionError
from langgraph.graph import END, START, StateGraph
from langgraph.graph.state import CompiledStateGraph
from pydantic import BaseModel, Field

from coordinator.config.canvas_config import CanvasConfig, get_canvas_config
from coordinator.workflow.workflow_model import (
    CONFIG_AGENT_ID,
    NodeType,
    Workflow,
    WorkflowNode,
)

logger = getLogger(__name__)


# ============================================================================
# Collaborator contracts
# ============================================================================


class NodeExecutionResult(BaseModel):
    """What one agent node produced during a run."""

    node_id: str
    agent_id: str
    response: str


class ExecutionResult(BaseModel):
    success: bool
    results: List[NodeExecutionResult] = Field(default_factory=list)
    error: Optional[str] = None


class AgentReply(BaseModel):
    response: str


class AgentMessenger(Protocol):
    async def send_message_to_agent(self, agent_id: str, message: str) -> AgentReply:
        ...


class WorkflowCoordinator(Protocol):
    async def execute_coordinator_workflow(self, workflow: Workflow) -> ExecutionResult:
        ...


# ============================================================================
# Graph state
# ============================================================================


def _merge_outputs(left: Dict[str, str], right: Dict[str, str]) -> Dict[str, str]:
    merged = dict(left or {})
    merged.update(right or {})
    return merged


def _append_results(
    left: List[Dict[str, str]], right: List[Dict[str, str]],
) -> List[Dict[str, str]]:
    return list(left or []) + list(right or [])


class CoordinatorState(TypedDict):
    goal: str
    outputs: Annotated[Dict[str, str], _merge_outputs]
    results: Annotated[List[Dict[str, str]], _append_results]


# ============================================================================
# LangGraph coordinator
# ============================================================================


class LangGraphCoordinator:
    """Compile a Workflow → LangGraph CompiledStateGraph and run it.

    Wiring:
        1. Every canvas node becomes a graph node.
        2. Every connection becomes a direct edge.
        3. Nodes without incoming connections hang off ``START``; a
           component with no such node (a pure cycle) enters at its
           first node in insertion order.
        4. Nodes without outgoing connections lead to ``END``.

    Cycles are legal on the canvas; a cycle with no way out stops at
    the recursion limit and is reported as a failed run.

    Usage::

        coordinator = LangGraphCoordinator.from_config(messenger, config)
        result = await coordinator.execute_coordinator_workflow(workflow)
    """

    def __init__(
        self,
        messenger: AgentMessenger,
        recursion_limit: Optional[int] = None,
        goal: str = "",
    ) -> None:
        self._messenger = messenger
        if recursion_limit is None:
            recursion_limit = get_canvas_config().execution_recursion_limit
        self._recursion_limit = recursion_limit
        self._goal = goal

    @classmethod
    def from_config(
        cls,
        messenger: AgentMessenger,
        config: Optional[CanvasConfig] = None,
        goal: str = "",
    ) -> "LangGraphCoordinator":
        """Build a coordinator whose step budget comes from ``config``."""
        config = config or get_canvas_config()
        return cls(messenger, recursion_limit=config.execution_recursion_limit, goal=goal)

    @property
    def recursion_limit(self) -> int:
        return self._recursion_limit

    # ========================================================================
    # Compilation
    # ========================================================================

    def compile(self, workflow: Workflow) -> CompiledStateGraph:
        """Build the graph for ``workflow``.

        Raises:
            ValueError: If the workflow is empty or breaks graph invariants.
        """
        if not workflow.nodes:
            raise ValueError(f"Workflow '{workflow.name}' has no nodes")
        errors = workflow.validate_graph()
        if errors:
            raise ValueError(
                "Workflow validation failed:\n" + "\n".join(f"  • {e}" for e in errors)
            )

        builder = StateGraph(CoordinatorState)

        for node in workflow.nodes:
            upstream = [c.source_id for c in workflow.get_connections_to(node.id)]
            builder.add_node(node.id, self._make_node_function(node, upstream))

        for conn in workflow.connections:
            builder.add_edge(conn.source_id, conn.target_id)

        for node_id in self._entry_nodes(workflow):
            builder.add_edge(START, node_id)

        for node in workflow.nodes:
            if not workflow.get_connections_from(node.id):
                builder.add_edge(node.id, END)

        graph = builder.compile()
        logger.info(
            f"[{workflow.id}] Workflow '{workflow.name}' compiled: "
            f"{len(workflow.nodes)} nodes, {len(workflow.connections)} connections"
        )
        return graph

    @staticmethod
    def _entry_nodes(workflow: Workflow) -> List[str]:
        """Roots, plus one entry per component that no root reaches."""
        successors: Dict[str, List[str]] = {n.id: [] for n in workflow.nodes}
        for conn in workflow.connections:
            successors[conn.source_id].append(conn.target_id)

        entries = [n.id for n in workflow.nodes if not workflow.get_connections_to(n.id)]
        reached: Set[str] = set()

        def _visit(start: str) -> None:
            stack = [start]
            while stack:
                current = stack.pop()
                if current in reached:
                    continue
                reached.add(current)
                stack.extend(successors[current])

        for entry in entries:
            _visit(entry)
        for node in workflow.nodes:
            if node.id not in reached:
                entries.append(node.id)
                _visit(node.id)
        return entries

    # ========================================================================
    # Execution
    # ========================================================================

    async def execute_coordinator_workflow(self, workflow: Workflow) -> ExecutionResult:
        """Compile and run ``workflow``. Failures are reported, not raised."""
        try:
            graph = self.compile(workflow)
        except ValueError as e:
            logger.warning(f"[{workflow.id}] Cannot execute: {e}")
            return ExecutionResult(success=False, error=str(e))

        initial_state: CoordinatorState = {
            "goal": self._goal or workflow.description or workflow.name,
            "outputs": {},
            "results": [],
        }

        logger.info(f"[{workflow.id}] Running workflow '{workflow.name}' …")
        start = time.time()
        try:
            final_state = await graph.ainvoke(
                initial_state, config={"recursion_limit": self._recursion_limit},
            )
        except GraphRecursionError:
            message = (
                f"Workflow '{workflow.name}' did not finish within "
                f"{self._recursion_limit} steps"
            )
            logger.warning(f"[{workflow.id}] {message}")
            return ExecutionResult(success=False, error=message)
        except Exception as e:
            logger.error(f"[{workflow.id}] Workflow run failed: {e}")
            return ExecutionResult(success=False, error=str(e))

        duration_ms = int((time.time() - start) * 1000)
        results = [NodeExecutionResult(**r) for r in final_state.get("results", [])]
        logger.info(
            f"[{workflow.id}] Workflow finished in {duration_ms}ms "
            f"with {len(results)} agent result(s)"
        )
        return ExecutionResult(success=True, results=results)

    # ========================================================================
    # Internal helpers
    # ========================================================================

    def _make_node_function(self, node: WorkflowNode, upstream: List[str]):
        """Create a LangGraph-compatible async node function."""
        messenger = self._messenger
        node_id = node.id
        node_label = node.data.label
        is_agent = node.type is NodeType.AGENT
        config = dict(node.data.config)
        agent_id = config.get(CONFIG_AGENT_ID) or f"agent_{node_id}"
        instructions = config.get("instructions") or node.data.description or node_label

        async def _node_fn(state: CoordinatorState) -> Dict[str, Any]:
            outputs = state.get("outputs", {})
            inputs = [outputs[src] for src in upstream if src in outputs]

            if not is_agent:
                passthrough = "\n".join(inputs) if inputs else state.get("goal", "")
                return {"outputs": {node_id: passthrough}}

            message = _compose_message(instructions, state.get("goal", ""), inputs)
            start = time.time()
            try:
                reply = await messenger.send_message_to_agent(agent_id, message)
            except Exception as e:
                duration_ms = int((time.time() - start) * 1000)
                logger.error(
                    f"Node '{node_label}' ({node_id}) agent {agent_id} "
                    f"failed after {duration_ms}ms: {e}"
                )
                raise

            return {
                "outputs": {node_id: reply.response},
                "results": [{
                    "node_id": node_id,
                    "agent_id": agent_id,
                    "response": reply.response,
                }],
            }

        _node_fn.__name__ = f"node_{node_id}_{node.type.value}"
        _node_fn.__qualname__ = _node_fn.__name__
        return _node_fn


def _compose_message(instructions: str, goal: str, inputs: List[str]) -> str:
    parts = [instructions]
    if goal and goal != instructions:
        parts.append(f"Goal: {goal}")
    if inputs:
        parts.append("Upstream results:\n" + "\n---\n".join(inputs))
    return "\n\n".join(parts)
