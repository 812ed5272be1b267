# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Execution Recorder

Append-only NodeMetric accumulation for one execution.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from .models import FlowNode, NodeMetric, NodeResult, NodeStatus, Variant


class ExecutionRecorder:
    """
    Collects one NodeMetric per node of an execution.

    Metrics are keyed by node id; `sequence` is assigned in completion
    order. Total time is the wall-clock span between start() and stop(),
    not the sum of node times, since branches may overlap.
    """

    def __init__(self, execution_id: str, variant: Optional[Variant] = None):
        self.execution_id = execution_id
        self.variant = variant
        self._metrics: Dict[str, NodeMetric] = {}
        self._sequence = 0
        self._started: Optional[float] = None
        self._stopped: Optional[float] = None

    def start(self) -> None:
        self._started = time.monotonic()
        self._stopped = None

    def stop(self) -> None:
        self._stopped = time.monotonic()

    def record(self, metric: NodeMetric) -> NodeMetric:
        """Append a metric; assigns the next sequence number."""
        if metric.node_id in self._metrics:
            raise ValueError(
                f"Metric for node '{metric.node_id}' already recorded in execution {self.execution_id}"
            )
        self._sequence += 1
        metric = metric.model_copy(update={"sequence": self._sequence})
        self._metrics[metric.node_id] = metric
        return metric

    def record_result(self, node: FlowNode, result: NodeResult) -> NodeMetric:
        """Seal a NodeResult into a metric, keeping per-attempt records."""
        return self.record(NodeMetric(
            id=uuid.uuid4().hex,
            execution_id=self.execution_id,
            variant=self.variant,
            node_id=node.id,
            node_name=node.name,
            node_type=node.type.value,
            request_data=result.request,
            response_data=result.output,
            execution_time_ms=result.duration_ms,
            status=result.status,
            error_message=result.error,
            started_at=result.started_at,
            completed_at=result.completed_at,
            metadata={
                "attempts": [a.model_dump(mode="json") for a in result.attempts],
                "retry_count": result.retry_count,
                "error_code": result.error_code,
            },
        ))

    def record_skip(self, node: FlowNode, reason: str) -> NodeMetric:
        """Skip marker: no request, no timing."""
        now = datetime.now(timezone.utc)
        return self.record(NodeMetric(
            id=uuid.uuid4().hex,
            execution_id=self.execution_id,
            variant=self.variant,
            node_id=node.id,
            node_name=node.name,
            node_type=node.type.value,
            execution_time_ms=0.0,
            status=NodeStatus.SKIPPED,
            started_at=now,
            completed_at=now,
            metadata={"skip_reason": reason},
        ))

    @property
    def metrics(self) -> List[NodeMetric]:
        return sorted(self._metrics.values(), key=lambda m: m.sequence)

    @property
    def total_time_ms(self) -> float:
        if self._started is None:
            return 0.0
        end = self._stopped if self._stopped is not None else time.monotonic()
        return (end - self._started) * 1000

    def _count(self, status: NodeStatus) -> int:
        return sum(1 for m in self._metrics.values() if m.status == status)

    @property
    def success_count(self) -> int:
        return self._count(NodeStatus.SUCCESS)

    @property
    def error_count(self) -> int:
        return self._count(NodeStatus.ERROR)

    @property
    def skipped_count(self) -> int:
        return self._count(NodeStatus.SKIPPED)

    @property
    def retry_count(self) -> int:
        """Attempts beyond the first, summed across nodes"""
        return sum(m.metadata.get("retry_count", 0) for m in self._metrics.values())
