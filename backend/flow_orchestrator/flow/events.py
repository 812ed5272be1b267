# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow Stream Events

Emits execution events to a caller-supplied callback.
Fails gracefully if the callback raises.
"""

import inspect
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from flow_orchestrator.core.logging import get_service_logger
from .models import NodeResult, StreamEvent, StreamEventType, Variant

logger = get_service_logger("flow_events")

EventCallback = Callable[[StreamEvent], Union[None, Awaitable[None]]]


class FlowEventEmitter:
    """
    Emits StreamEvents for one execution.

    The callback may be sync or async. Callback errors are logged and
    never fail the run.
    """

    def __init__(
        self,
        execution_id: str,
        callback: Optional[EventCallback] = None,
        variant: Optional[Variant] = None,
    ):
        self.execution_id = execution_id
        self.callback = callback
        self.variant = variant

    @property
    def enabled(self) -> bool:
        return self.callback is not None

    async def emit(self, event_type: StreamEventType, data: Dict[str, Any]) -> None:
        if not self.enabled:
            return

        if self.variant is not None:
            data = {**data, "variant": self.variant.value}

        event = StreamEvent(
            type=event_type,
            execution_id=self.execution_id,
            timestamp=datetime.now(timezone.utc).isoformat(),
            data=data,
        )

        try:
            outcome = self.callback(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Event callback failed for {event_type.value}: {e}")
            # Continue execution even if the subscriber fails

    async def node_start(self, node_id: str, node_type: str, node_name: str) -> None:
        await self.emit(StreamEventType.NODE_START, {
            "node_id": node_id,
            "node_type": node_type,
            "node_name": node_name,
        })

    async def node_complete(self, result: NodeResult) -> None:
        await self.emit(StreamEventType.NODE_COMPLETE, {
            "node_id": result.node_id,
            "node_type": result.node_type.value,
            "status": result.status.value,
            "output": result.output,
            "duration_ms": result.duration_ms,
            "retry_count": result.retry_count,
        })

    async def node_skipped(self, node_id: str, reason: str) -> None:
        await self.emit(StreamEventType.NODE_COMPLETE, {
            "node_id": node_id,
            "status": "skipped",
            "reason": reason,
        })

    async def node_error(self, result: NodeResult) -> None:
        await self.emit(StreamEventType.NODE_ERROR, {
            "node_id": result.node_id,
            "node_type": result.node_type.value,
            "error": result.error,
            "error_code": result.error_code,
            "duration_ms": result.duration_ms,
            "retry_count": result.retry_count,
        })

    async def flow_complete(self, flow_id: str, status: str, total_time_ms: float, output: Any) -> None:
        await self.emit(StreamEventType.FLOW_COMPLETE, {
            "flow_id": flow_id,
            "status": status,
            "total_time_ms": total_time_ms,
            "output": output,
        })

    async def flow_error(self, flow_id: str, error: str, total_time_ms: float) -> None:
        await self.emit(StreamEventType.FLOW_ERROR, {
            "flow_id": flow_id,
            "status": "failed",
            "error": error,
            "total_time_ms": total_time_ms,
        })
