# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow Execution Context

Tracks execution state for one walk of a flow graph.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from .models import NodeResult, NodeStatus, RetryConfig, Variant


def new_execution_id() -> str:
    return f"exec_{datetime.now(timezone.utc).strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"


class ExecutionContext:
    """
    Execution context for a flow run.

    Tracks:
    - Node results and resolved statuses (success / error / skipped)
    - Completion order, used for merge ordering
    - Per-run limits (timeout, default retry policy)
    """

    def __init__(
        self,
        execution_id: str,
        flow_id: str,
        flow_input: Any,
        timeout_ms: int,
        variant: Optional[Variant] = None,
        default_retry: Optional[RetryConfig] = None,
    ):
        self.execution_id = execution_id
        self.flow_id = flow_id
        self.flow_input = flow_input
        self.timeout_ms = timeout_ms
        self.variant = variant
        self.default_retry = default_retry
        self.started_at = datetime.now(timezone.utc)
        self.completed_at: Optional[datetime] = None

        self.node_results: Dict[str, NodeResult] = {}
        self.statuses: Dict[str, NodeStatus] = {}
        self.skip_reasons: Dict[str, str] = {}
        self.completion_order: List[str] = []

    def mark_completed(self, node_id: str, result: NodeResult) -> None:
        """Record a node that ran (successfully or not)"""
        self.node_results[node_id] = result
        self.statuses[node_id] = result.status
        self.completion_order.append(node_id)

    def mark_skipped(self, node_id: str, reason: str) -> None:
        self.statuses[node_id] = NodeStatus.SKIPPED
        self.skip_reasons[node_id] = reason

    def is_resolved(self, node_id: str) -> bool:
        return node_id in self.statuses

    def status_of(self, node_id: str) -> Optional[NodeStatus]:
        return self.statuses.get(node_id)

    def get_result(self, node_id: str) -> Optional[NodeResult]:
        return self.node_results.get(node_id)

    def completion_rank(self, node_id: str) -> int:
        return self.completion_order.index(node_id)

    def finalize(self) -> None:
        """Mark execution as complete"""
        self.completed_at = datetime.now(timezone.utc)
