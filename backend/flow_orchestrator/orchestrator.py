# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Execution Orchestrator

Single entry point for running flows: picks the engine per flow selector
(native graph, legacy, or hybrid), runs champion and challenge
concurrently, and hands both results to the ComparisonEngine.
"""

import asyncio
import time
from typing import Any, Optional, Tuple

from flow_orchestrator.comparison.engine import ComparisonEngine
from flow_orchestrator.comparison.models import (
    ChampionChallengeExecution,
    ComparisonExecutionRequest,
    ComparisonExecutionResult,
    ExecutionMode,
    FlowSelector,
)
from flow_orchestrator.core.config import Config, get_config
from flow_orchestrator.core.errors import sanitize_error_for_user
from flow_orchestrator.core.logging import get_service_logger, log_event
from flow_orchestrator.flow.context import new_execution_id
from flow_orchestrator.flow.events import EventCallback
from flow_orchestrator.flow.exceptions import ComparisonModeError, EngineUnavailableError
from flow_orchestrator.flow.models import FlowDefinition, FlowStatus, NormalizedExecutionResult, Variant
from flow_orchestrator.flow.validation import validate_flow
from flow_orchestrator.flow.walker import FlowGraphWalker
from flow_orchestrator.flow_store import FlowStore
from flow_orchestrator.legacy import LegacyEngineClient

logger = get_service_logger("orchestrator")


class ExecutionOrchestrator:
    """
    Facade over the native walker, the legacy engine and the comparison engine.

    Validation and flow lookup errors are raised before anything runs.
    Engine failures on either side become failed results, never exceptions.
    """

    def __init__(
        self,
        flow_store: FlowStore,
        walker: FlowGraphWalker,
        comparison_engine: Optional[ComparisonEngine] = None,
        legacy_client: Optional[LegacyEngineClient] = None,
        config: Optional[Config] = None,
    ):
        self.flow_store = flow_store
        self.walker = walker
        self.comparison_engine = comparison_engine or ComparisonEngine()
        self.legacy_client = legacy_client
        self.config = config or get_config()

    async def close(self) -> None:
        await self.walker.node_executor.close()
        if self.legacy_client:
            await self.legacy_client.close()

    # ========================================================================
    # Public API
    # ========================================================================

    async def execute_comparison(self, request: ComparisonExecutionRequest) -> ComparisonExecutionResult:
        """Run champion and challenge concurrently and compare them"""
        flows = tuple(
            self.resolve_flow(selector) if selector.mode == ExecutionMode.LANGGRAPH else None
            for selector in (request.champion_flow, request.challenge_flow)
        )
        return await self._run_comparison(request, flows)

    async def stream_comparison(
        self,
        request: ComparisonExecutionRequest,
        on_champion_event: EventCallback,
        on_challenge_event: EventCallback,
    ) -> ComparisonExecutionResult:
        """
        Like execute_comparison, streaming node events of each side to its
        own callback. Both flows must run on the native engine.
        """
        flows = self.check_streamable(request)
        return await self._run_comparison(request, flows, on_champion_event, on_challenge_event)

    def check_streamable(self, request: ComparisonExecutionRequest) -> Tuple[FlowDefinition, FlowDefinition]:
        """
        Raises ComparisonModeError unless both flows use the native engine,
        then resolves and validates both flows.

        Returns:
            (champion, challenge) flow definitions
        """
        for label, selector in (("champion", request.champion_flow), ("challenge", request.challenge_flow)):
            if selector.mode != ExecutionMode.LANGGRAPH:
                raise ComparisonModeError(
                    f"Streaming requires langgraph mode for both flows; {label} flow uses {selector.mode.value}"
                )

        return self.resolve_flow(request.champion_flow), self.resolve_flow(request.challenge_flow)

    async def execute_single(
        self,
        flow_id: str,
        input: Any,
        mode: ExecutionMode = ExecutionMode.LANGGRAPH,
        version: Optional[str] = None,
        on_event: Optional[EventCallback] = None,
    ) -> NormalizedExecutionResult:
        """Run one flow outside a comparison"""
        if mode == ExecutionMode.BPMN:
            selector = FlowSelector(mode=mode, bpmn_workflow_id=flow_id)
        else:
            selector = FlowSelector(mode=mode, langgraph_flow_id=flow_id, langgraph_version=version)

        flow = self.resolve_flow(selector) if mode == ExecutionMode.LANGGRAPH else None
        return await self._run_variant(selector, input, None, on_event, flow)

    def resolve_flow(self, selector: FlowSelector) -> FlowDefinition:
        """Look up and validate the native flow of a selector"""
        flow = self.flow_store.get(selector.langgraph_flow_id, selector.langgraph_version)
        validate_flow(flow, self.walker.node_executor.function_registry.names())
        return flow

    # ========================================================================
    # Comparison
    # ========================================================================

    async def _run_comparison(
        self,
        request: ComparisonExecutionRequest,
        flows: Tuple[Optional[FlowDefinition], Optional[FlowDefinition]],
        on_champion_event: Optional[EventCallback] = None,
        on_challenge_event: Optional[EventCallback] = None,
    ) -> ComparisonExecutionResult:
        execution = ChampionChallengeExecution(
            id=new_execution_id(),
            name=request.name,
            description=request.description,
            champion_workflow_id=request.champion_flow.workflow_id,
            challenge_workflow_id=request.challenge_flow.workflow_id,
            request_payload=request.request_payload,
        )

        log_event(
            logger, "Comparison started",
            execution_id=execution.id,
            champion=f"{request.champion_flow.mode.value}:{request.champion_flow.workflow_id}",
            challenge=f"{request.challenge_flow.mode.value}:{request.challenge_flow.workflow_id}",
        )

        # Variants always run concurrently, never one after the other
        champion, challenge = await asyncio.gather(
            self._run_variant(
                request.champion_flow, request.request_payload, Variant.CHAMPION, on_champion_event, flows[0]
            ),
            self._run_variant(
                request.challenge_flow, request.request_payload, Variant.CHALLENGE, on_challenge_event, flows[1]
            ),
        )

        execution.finish(champion, challenge)
        comparisons = self.comparison_engine.compare(champion, challenge, execution.id)
        summary = self.comparison_engine.summarize(execution.id, comparisons)

        log_event(
            logger, "Comparison finished",
            execution_id=execution.id,
            status=execution.status.value,
            champion_time_ms=round(champion.total_time_ms, 2),
            challenge_time_ms=round(challenge.total_time_ms, 2),
            overall_winner=summary.overall_winner.value,
        )

        return ComparisonExecutionResult(
            execution=execution,
            champion_result=champion,
            challenge_result=challenge,
            comparisons=comparisons,
            summary=summary,
        )

    async def _run_variant(
        self,
        selector: FlowSelector,
        input: Any,
        variant: Optional[Variant],
        on_event: Optional[EventCallback] = None,
        flow: Optional[FlowDefinition] = None,
    ) -> NormalizedExecutionResult:
        """Run one side; engine exceptions become a failed result"""
        started = time.monotonic()
        try:
            return await self._execute_selector(selector, input, variant, on_event, flow)
        except Exception as e:
            elapsed_ms = (time.monotonic() - started) * 1000
            log_event(
                logger, "Variant execution failed", level="ERROR",
                variant=variant.value if variant else None,
                workflow_id=selector.workflow_id, mode=selector.mode.value,
                error=sanitize_error_for_user(e),
            )
            return self._failed_result(selector, variant, e, elapsed_ms)

    async def _execute_selector(
        self,
        selector: FlowSelector,
        input: Any,
        variant: Optional[Variant],
        on_event: Optional[EventCallback] = None,
        flow: Optional[FlowDefinition] = None,
    ) -> NormalizedExecutionResult:
        if selector.mode == ExecutionMode.LANGGRAPH:
            return await self._execute_native(selector, input, variant, on_event, flow)
        if selector.mode == ExecutionMode.BPMN:
            return await self._execute_legacy(selector.bpmn_workflow_id, input, variant)
        if selector.mode == ExecutionMode.HYBRID:
            return await self._execute_hybrid(selector, input, variant)
        raise ComparisonModeError(f"Unknown execution mode: {selector.mode}")

    async def _execute_native(
        self,
        selector: FlowSelector,
        input: Any,
        variant: Optional[Variant],
        on_event: Optional[EventCallback] = None,
        flow: Optional[FlowDefinition] = None,
    ) -> NormalizedExecutionResult:
        """Run `flow` if given (already validated), else look it up by selector"""
        if flow is None:
            flow = self.flow_store.get(selector.langgraph_flow_id, selector.langgraph_version)
        return await self.walker.run(flow, input, variant=variant, on_event=on_event)

    async def _execute_legacy(
        self,
        workflow_id: str,
        input: Any,
        variant: Optional[Variant],
    ) -> NormalizedExecutionResult:
        if self.legacy_client is None:
            raise EngineUnavailableError("legacy", "no legacy engine configured")
        return await self.legacy_client.execute(workflow_id, input, variant)

    # ========================================================================
    # Hybrid
    # ========================================================================

    async def _execute_hybrid(
        self,
        selector: FlowSelector,
        input: Any,
        variant: Optional[Variant],
    ) -> NormalizedExecutionResult:
        """
        Run both engines and settle both. The native result is authoritative
        when both succeed; one success is returned with a warning; two
        failures raise EngineUnavailableError.
        """
        legacy_workflow_id = selector.bpmn_workflow_id or selector.langgraph_flow_id

        if not selector.langgraph_flow_id:
            logger.warning(f"Hybrid flow {legacy_workflow_id} has no native flow id, using legacy engine only")
            return self._tag_hybrid(await self._execute_legacy(legacy_workflow_id, input, variant), "bpmn")

        native, legacy = await asyncio.gather(
            self._execute_native(selector, input, variant),
            self._execute_legacy(legacy_workflow_id, input, variant),
            return_exceptions=True,
        )

        native_ok = not isinstance(native, BaseException)
        legacy_ok = not isinstance(legacy, BaseException)

        if native_ok and legacy_ok:
            diagnostics = self._hybrid_diagnostics(native, legacy)
            return self._tag_hybrid(native, "langgraph", diagnostics)

        if native_ok:
            logger.warning(f"Hybrid {selector.workflow_id}: legacy engine failed, using native result: {legacy}")
            return self._tag_hybrid(native, "langgraph", {"legacy_error": sanitize_error_for_user(legacy)})

        if legacy_ok:
            logger.warning(f"Hybrid {selector.workflow_id}: native engine failed, using legacy result: {native}")
            return self._tag_hybrid(legacy, "bpmn", {"native_error": sanitize_error_for_user(native)})

        raise EngineUnavailableError(
            "hybrid",
            f"both engines failed (native: {sanitize_error_for_user(native)}; "
            f"legacy: {sanitize_error_for_user(legacy)})",
        )

    def _hybrid_diagnostics(
        self,
        native: NormalizedExecutionResult,
        legacy: NormalizedExecutionResult,
    ) -> dict:
        time_diff = abs(native.total_time_ms - legacy.total_time_ms)
        time_diff_pct = (time_diff / legacy.total_time_ms * 100) if legacy.total_time_ms else 0.0
        node_diff = abs(len(native.node_metrics) - len(legacy.node_metrics))

        diagnostics = {
            "native_time_ms": round(native.total_time_ms, 2),
            "legacy_time_ms": round(legacy.total_time_ms, 2),
            "time_diff_ms": round(time_diff, 2),
            "time_diff_pct": round(time_diff_pct, 2),
            "node_count_diff": node_diff,
            "status_match": native.status == legacy.status,
        }

        log_event(logger, "Hybrid engine comparison", **diagnostics)

        if time_diff_pct > self.config.hybrid_time_diff_warn_pct:
            logger.warning(
                f"Hybrid engines differ by {time_diff_pct:.1f}% in execution time "
                f"(threshold {self.config.hybrid_time_diff_warn_pct}%)"
            )
        if node_diff:
            logger.warning(f"Hybrid engines executed different node counts (diff: {node_diff})")

        return diagnostics

    def _tag_hybrid(
        self,
        result: NormalizedExecutionResult,
        authoritative: str,
        diagnostics: Optional[dict] = None,
    ) -> NormalizedExecutionResult:
        metadata = {
            **result.metadata,
            "execution_mode": ExecutionMode.HYBRID.value,
            "authoritative_engine": authoritative,
        }
        if diagnostics:
            metadata["hybrid_diagnostics"] = diagnostics
        return result.model_copy(update={"metadata": metadata})

    def _failed_result(
        self,
        selector: FlowSelector,
        variant: Optional[Variant],
        error: Exception,
        elapsed_ms: float,
    ) -> NormalizedExecutionResult:
        return NormalizedExecutionResult(
            execution_id=new_execution_id(),
            workflow_id=selector.workflow_id or "",
            total_time_ms=elapsed_ms,
            status=FlowStatus.FAILED,
            node_metrics=[],
            output=None,
            metadata={
                "execution_mode": selector.mode.value,
                "variant": variant.value if variant else None,
                "error": sanitize_error_for_user(error),
                "error_type": type(error).__name__,
            },
        )
