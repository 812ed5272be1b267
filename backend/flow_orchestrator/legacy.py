# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Legacy Engine Bridge

Runs a workflow on the external (BPMN) execution engine and normalizes
its per-node timing/status into NormalizedExecutionResult.
"""

import asyncio
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from flow_orchestrator.core.logging import get_service_logger
from flow_orchestrator.flow.exceptions import EngineUnavailableError
from flow_orchestrator.flow.models import (
    FlowStatus,
    NodeMetric,
    NodeStatus,
    NormalizedExecutionResult,
    Variant,
)

logger = get_service_logger("legacy_engine")

EXECUTION_MODE = "bpmn"
ENGINE_NAME = "legacy"

_RUNNING = {"running", "pending", "active"}
_SUCCEEDED = {"completed", "success", "succeeded"}


def _parse_time(value: Any) -> datetime:
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now(timezone.utc)


def _node_status(value: Any) -> NodeStatus:
    status = str(value or "").lower()
    if status in _SUCCEEDED:
        return NodeStatus.SUCCESS
    if status == NodeStatus.SKIPPED.value:
        return NodeStatus.SKIPPED
    return NodeStatus.ERROR


def normalize_legacy_result(
    response: Dict[str, Any],
    variant: Optional[Variant] = None,
    elapsed_ms: Optional[float] = None,
) -> NormalizedExecutionResult:
    """
    Coerce a legacy execution payload into the common result shape.

    Expected (camelCase accepted):
        {execution_id, workflow_id, status, output, flow_version,
         metrics: {total_time_ms},
         node_results: [{node_id, node_name, node_type, status,
                         execution_time_ms, input, output, error, started_at}]}

    Total time falls back to the client-measured elapsed time, then to the
    sum of node times.
    """
    execution_id = response.get("execution_id") or response.get("executionId") or response.get("id") or uuid.uuid4().hex
    workflow_id = response.get("workflow_id") or response.get("workflowId") or ""
    node_results = response.get("node_results") or response.get("nodeResults") or []

    metrics = []
    for index, node in enumerate(node_results, start=1):
        node_id = node.get("node_id") or node.get("nodeId") or f"node_{index}"
        error = node.get("error")
        if isinstance(error, dict):
            error = error.get("message")
        extra = node.get("metadata") or {}

        metrics.append(NodeMetric(
            id=f"{execution_id}-{node_id}",
            execution_id=execution_id,
            variant=variant,
            node_id=node_id,
            node_name=node.get("node_name") or node.get("nodeName") or node_id,
            node_type=node.get("node_type") or node.get("nodeType") or "task",
            request_data=node.get("input"),
            response_data=node.get("output"),
            execution_time_ms=float(node.get("execution_time_ms") or node.get("executionTimeMs") or 0),
            status=_node_status(node.get("status")),
            error_message=error,
            started_at=_parse_time(node.get("started_at") or node.get("startedAt")),
            sequence=index,
            metadata=dict(extra),
        ))

    reported = (response.get("metrics") or {}).get("total_time_ms")
    if reported is not None:
        total_time_ms = float(reported)
    elif elapsed_ms is not None:
        total_time_ms = elapsed_ms
    else:
        total_time_ms = sum(m.execution_time_ms for m in metrics)

    status = FlowStatus.SUCCESS if str(response.get("status", "")).lower() in _SUCCEEDED else FlowStatus.FAILED

    return NormalizedExecutionResult(
        execution_id=execution_id,
        workflow_id=workflow_id,
        total_time_ms=total_time_ms,
        status=status,
        node_metrics=metrics,
        output=response.get("output"),
        metadata={
            "execution_mode": EXECUTION_MODE,
            "flow_version": response.get("flow_version") or response.get("version"),
            "node_count": len(metrics),
            "retry_count": (response.get("metrics") or {}).get("retry_count", 0),
            "success_count": sum(1 for m in metrics if m.status == NodeStatus.SUCCESS),
            "error_count": sum(1 for m in metrics if m.status == NodeStatus.ERROR),
            "skipped_count": sum(1 for m in metrics if m.status == NodeStatus.SKIPPED),
        },
    )


class LegacyEngineClient:
    """HTTP client for the legacy execution engine"""

    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        poll_interval: float = 1.0,
        poll_timeout: float = 300.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._owns_client = http_client is None
        self.client = http_client or httpx.AsyncClient(timeout=timeout)
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def execute(
        self,
        workflow_id: str,
        input: Any,
        variant: Optional[Variant] = None,
    ) -> NormalizedExecutionResult:
        """
        Start a legacy execution and wait for it to finish.

        Raises EngineUnavailableError if the engine cannot be reached,
        answers with an error status, or does not finish in time.
        """
        started = time.monotonic()
        try:
            response = await self.client.post(
                f"{self.base_url}/workflows/{workflow_id}/execute",
                json={"inputData": input, "variant": variant.value if variant else None},
            )
            response.raise_for_status()
            payload = response.json()

            deadline = started + self.poll_timeout
            while str(payload.get("status", "")).lower() in _RUNNING:
                if time.monotonic() >= deadline:
                    raise EngineUnavailableError(
                        ENGINE_NAME, f"execution did not finish within {self.poll_timeout}s"
                    )
                await asyncio.sleep(self.poll_interval)
                execution_id = payload.get("execution_id") or payload.get("executionId") or payload.get("id")
                poll = await self.client.get(f"{self.base_url}/executions/{execution_id}")
                poll.raise_for_status()
                payload = poll.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"Legacy engine returned {e.response.status_code} for workflow {workflow_id}")
            raise EngineUnavailableError(ENGINE_NAME, f"HTTP {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error(f"Legacy engine request failed for workflow {workflow_id}: {e}")
            raise EngineUnavailableError(ENGINE_NAME, str(e)) from e

        payload.setdefault("workflow_id", workflow_id)
        elapsed_ms = (time.monotonic() - started) * 1000
        return normalize_legacy_result(payload, variant, elapsed_ms)
