# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow Graph Walker

Wave-based DAG execution engine for native flows.
"""

import asyncio
from typing import Any, Dict, List, Optional, Set

from flow_orchestrator.core.config import Config, get_config
from flow_orchestrator.core.logging import get_service_logger, log_event
from flow_orchestrator.expressions import evaluate_condition
from .context import ExecutionContext, new_execution_id
from .events import EventCallback, FlowEventEmitter
from .exceptions import FlowExecutionError
from .models import (
    FlowDefinition,
    FlowEdge,
    FlowNode,
    FlowStatus,
    NodeStatus,
    NodeType,
    NormalizedExecutionResult,
    RetryConfig,
    Variant,
)
from .node_executor import NodeExecutor
from .recorder import ExecutionRecorder
from .validation import find_start_nodes, reachable_from, validate_flow

logger = get_service_logger("walker")

EXECUTION_MODE = "langgraph"

TRUE_LABELS = {"true", "yes"}
FALSE_LABELS = {"false", "no"}

SKIP_UPSTREAM_FAILED = "upstream_failed"
SKIP_BRANCH_NOT_TAKEN = "branch_not_taken"
SKIP_UPSTREAM_SKIPPED = "upstream_skipped"
SKIP_UNREACHABLE = "unreachable"


class FlowGraphWalker:
    """
    Wave-based flow executor.

    Executes nodes in waves based on dependency satisfaction. Each wave
    runs concurrently, bounded by the flow's max_concurrency.
    """

    def __init__(self, node_executor: NodeExecutor, config: Optional[Config] = None):
        self.node_executor = node_executor
        self.config = config or get_config()

    async def run(
        self,
        flow: FlowDefinition,
        input: Any,
        variant: Optional[Variant] = None,
        on_event: Optional[EventCallback] = None,
        execution_id: Optional[str] = None,
    ) -> NormalizedExecutionResult:
        """
        Execute flow against `input`.

        Raises FlowValidationError before any node runs if the flow is invalid.
        Node failures are reported in the result, never raised.
        """
        order = validate_flow(flow, self.node_executor.function_registry.names())

        execution_id = execution_id or new_execution_id()
        context = ExecutionContext(
            execution_id,
            flow.id,
            input,
            timeout_ms=flow.config.timeout_ms or self.config.default_timeout_ms,
            variant=variant,
            default_retry=self._default_retry(flow),
        )
        recorder = ExecutionRecorder(execution_id, variant)
        events = FlowEventEmitter(execution_id, on_event, variant)

        starts = find_start_nodes(flow)
        reachable = reachable_from(flow, starts)
        dependencies = self._build_dependency_map(flow, reachable)
        semaphore = asyncio.Semaphore(flow.config.max_concurrency or self.config.default_max_concurrency)

        log_event(
            logger, "Flow execution started",
            execution_id=execution_id, flow_id=flow.id,
            variant=variant.value if variant else None, node_count=len(flow.nodes),
        )

        recorder.start()
        try:
            # Execute in waves
            while any(not context.is_resolved(nid) for nid in order):
                ready = self._get_ready_nodes(flow, order, dependencies, context)

                if not ready:
                    incomplete = [nid for nid in order if not context.is_resolved(nid)]
                    raise FlowExecutionError(
                        f"DAG execution deadlock: No ready nodes but {len(incomplete)} nodes incomplete. "
                        f"Incomplete nodes: {incomplete}"
                    )

                active: List[FlowNode] = []
                for node in ready:
                    skip_reason = self._skip_reason(node, starts, dependencies, context)
                    if skip_reason:
                        await self._skip(node, skip_reason, context, recorder, events)
                    else:
                        active.append(node)

                if active:
                    await self._execute_wave(active, flow, starts, dependencies, context, recorder, events, semaphore)

            for node in flow.nodes:
                if node.id not in reachable:
                    await self._skip(node, SKIP_UNREACHABLE, context, recorder, events)
        finally:
            recorder.stop()
            context.finalize()

        status = self._flow_status(flow, context)
        output = self._collect_output(flow, context)

        result = NormalizedExecutionResult(
            execution_id=execution_id,
            workflow_id=flow.id,
            total_time_ms=recorder.total_time_ms,
            status=status,
            node_metrics=recorder.metrics,
            output=output,
            metadata={
                "execution_mode": EXECUTION_MODE,
                "flow_version": flow.version,
                "node_count": len(flow.nodes),
                "retry_count": recorder.retry_count,
                "success_count": recorder.success_count,
                "error_count": recorder.error_count,
                "skipped_count": recorder.skipped_count,
            },
        )

        log_event(
            logger, "Flow execution finished",
            execution_id=execution_id, flow_id=flow.id, status=status.value,
            total_time_ms=round(result.total_time_ms, 2),
            success_count=recorder.success_count, error_count=recorder.error_count,
            skipped_count=recorder.skipped_count,
        )

        if status == FlowStatus.SUCCESS:
            await events.flow_complete(flow.id, status.value, result.total_time_ms, output)
        else:
            failed = [nid for nid in context.completion_order if context.status_of(nid) == NodeStatus.ERROR]
            await events.flow_error(flow.id, f"Node(s) failed: {failed}", result.total_time_ms)

        return result

    def _default_retry(self, flow: FlowDefinition) -> Optional[RetryConfig]:
        """Flow-level max_retries becomes the retry policy for nodes without their own"""
        max_retries = flow.config.max_retries
        if max_retries is None:
            max_retries = self.config.default_max_retries
        if not max_retries:
            return None
        return RetryConfig(max_attempts=max_retries + 1, backoff_ms=self.config.default_retry_backoff_ms)

    def _build_dependency_map(self, flow: FlowDefinition, reachable: Set[str]) -> Dict[str, List[FlowEdge]]:
        """Map node_id -> incoming edges from reachable parents"""
        dependencies: Dict[str, List[FlowEdge]] = {nid: [] for nid in reachable}
        for edge in flow.edges:
            if edge.from_ in reachable and edge.to in reachable:
                dependencies[edge.to].append(edge)
        return dependencies

    def _get_ready_nodes(
        self,
        flow: FlowDefinition,
        order: List[str],
        dependencies: Dict[str, List[FlowEdge]],
        context: ExecutionContext,
    ) -> List[FlowNode]:
        """Get nodes ready to execute (all dependencies resolved)"""
        ready = []
        for node_id in order:
            if context.is_resolved(node_id):
                continue
            if all(context.is_resolved(edge.from_) for edge in dependencies[node_id]):
                ready.append(flow.get_node(node_id))
        return ready

    def _active_edges(self, node_id: str, dependencies: Dict[str, List[FlowEdge]], context: ExecutionContext) -> List[FlowEdge]:
        return [
            edge for edge in dependencies[node_id]
            if context.status_of(edge.from_) == NodeStatus.SUCCESS and self._edge_taken(edge, context)
        ]

    def _skip_reason(
        self,
        node: FlowNode,
        starts: List[str],
        dependencies: Dict[str, List[FlowEdge]],
        context: ExecutionContext,
    ) -> Optional[str]:
        if node.id in starts:
            return None
        if self._active_edges(node.id, dependencies, context):
            return None

        parent_statuses = {context.status_of(edge.from_) for edge in dependencies[node.id]}
        if NodeStatus.ERROR in parent_statuses:
            return SKIP_UPSTREAM_FAILED
        if NodeStatus.SUCCESS in parent_statuses:
            return SKIP_BRANCH_NOT_TAKEN
        return SKIP_UPSTREAM_SKIPPED

    def _edge_taken(self, edge: FlowEdge, context: ExecutionContext) -> bool:
        """
        Decide whether a succeeded parent activates this edge.

        An edge condition is evaluated against the parent's output. Edges out
        of conditional nodes without a condition follow true/false labels;
        unlabelled edges are always followed.
        """
        parent = context.get_result(edge.from_)
        is_conditional = parent.node_type == NodeType.CONDITIONAL

        if edge.condition:
            variables: Dict[str, Any] = dict(parent.output) if isinstance(parent.output, dict) else {}
            variables["output"] = parent.output
            variables["input"] = parent.request
            variables["result"] = parent.branch if is_conditional else parent.output
            try:
                return evaluate_condition(edge.condition, variables)
            except ValueError as e:
                logger.warning(f"Edge {edge.from_} -> {edge.to} condition failed, not taken: {e}")
                return False

        if is_conditional and edge.label:
            label = edge.label.strip().lower()
            if label in TRUE_LABELS:
                return parent.branch is True
            if label in FALSE_LABELS:
                return parent.branch is False

        return True

    def _build_input(
        self,
        node: FlowNode,
        starts: List[str],
        dependencies: Dict[str, List[FlowEdge]],
        context: ExecutionContext,
    ) -> Any:
        """
        Start nodes get the flow input. Other nodes get their active parents'
        outputs merged in (priority, completion order); later writes win.
        """
        if node.id in starts:
            return context.flow_input

        edges = sorted(
            self._active_edges(node.id, dependencies, context),
            key=lambda e: (e.priority, context.completion_rank(e.from_)),
        )
        outputs = [(edge.from_, context.get_result(edge.from_).output) for edge in edges]
        return merge_outputs(outputs)

    async def _skip(
        self,
        node: FlowNode,
        reason: str,
        context: ExecutionContext,
        recorder: ExecutionRecorder,
        events: FlowEventEmitter,
    ) -> None:
        context.mark_skipped(node.id, reason)
        recorder.record_skip(node, reason)
        log_event(
            logger, "Node skipped", level="DEBUG",
            execution_id=context.execution_id, node_id=node.id, reason=reason,
        )
        await events.node_skipped(node.id, reason)

    async def _execute_wave(
        self,
        nodes: List[FlowNode],
        flow: FlowDefinition,
        starts: List[str],
        dependencies: Dict[str, List[FlowEdge]],
        context: ExecutionContext,
        recorder: ExecutionRecorder,
        events: FlowEventEmitter,
        semaphore: asyncio.Semaphore,
    ) -> None:
        """Execute a wave of nodes in parallel"""
        # Inputs are built before any node of the wave completes
        inputs = {node.id: self._build_input(node, starts, dependencies, context) for node in nodes}

        tasks = [
            self._execute_node(node, inputs[node.id], context, recorder, events, semaphore)
            for node in nodes
        ]

        # Wait for all nodes in wave to complete, capturing exceptions
        results = await asyncio.gather(*tasks, return_exceptions=True)

        # Node failures are data; anything raised here is an engine bug
        for result in results:
            if isinstance(result, Exception):
                raise result

    async def _execute_node(
        self,
        node: FlowNode,
        node_input: Any,
        context: ExecutionContext,
        recorder: ExecutionRecorder,
        events: FlowEventEmitter,
        semaphore: asyncio.Semaphore,
    ) -> None:
        """Execute a single node"""
        async with semaphore:
            await events.node_start(node.id, node.type.value, node.name)
            result = await self.node_executor.execute(node, node_input, context)

        context.mark_completed(node.id, result)
        recorder.record_result(node, result)

        if result.status == NodeStatus.SUCCESS:
            log_event(
                logger, "Node completed", level="DEBUG",
                execution_id=context.execution_id, node_id=node.id,
                duration_ms=round(result.duration_ms, 2), retry_count=result.retry_count,
            )
            await events.node_complete(result)
        else:
            log_event(
                logger, "Node failed", level="WARNING",
                execution_id=context.execution_id, node_id=node.id,
                error=result.error, error_code=result.error_code, retry_count=result.retry_count,
            )
            await events.node_error(result)

    def _end_nodes(self, flow: FlowDefinition) -> Set[str]:
        if flow.end_nodes:
            return set(flow.end_nodes)
        sources = {edge.from_ for edge in flow.edges}
        return {node.id for node in flow.nodes if node.id not in sources}

    def _flow_status(self, flow: FlowDefinition, context: ExecutionContext) -> FlowStatus:
        """Failed if any failed node is, or leads to, an end node"""
        failed = [nid for nid in context.completion_order if context.status_of(nid) == NodeStatus.ERROR]
        if not failed:
            return FlowStatus.SUCCESS

        end_nodes = self._end_nodes(flow)
        for node_id in failed:
            if reachable_from(flow, [node_id]) & end_nodes:
                return FlowStatus.FAILED
        return FlowStatus.SUCCESS

    def _collect_output(self, flow: FlowDefinition, context: ExecutionContext) -> Any:
        """
        Merge outputs of successful designated end nodes, or, without
        designated end nodes, of successful nodes with no executed successor.
        """
        succeeded = [nid for nid in context.completion_order if context.status_of(nid) == NodeStatus.SUCCESS]

        if flow.end_nodes:
            terminal = [nid for nid in succeeded if nid in flow.end_nodes]
        else:
            executed = {NodeStatus.SUCCESS, NodeStatus.ERROR}
            terminal = [
                nid for nid in succeeded
                if not any(context.status_of(edge.to) in executed for edge in flow.outgoing(nid))
            ]

        if not terminal:
            return None
        return merge_outputs([(nid, context.get_result(nid).output) for nid in terminal])


def merge_outputs(outputs: List[tuple]) -> Any:
    """
    Merge (node_id, output) pairs in order; later writes win.

    A single output passes through unchanged. Dict outputs are merged
    key by key; any other output is stored under its node id.
    """
    if not outputs:
        return {}
    if len(outputs) == 1:
        return outputs[0][1]

    merged: Dict[str, Any] = {}
    for node_id, output in outputs:
        if isinstance(output, dict):
            merged.update(output)
        else:
            merged[node_id] = output
    return merged
