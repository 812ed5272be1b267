# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Champion vs Challenge API Routes

Run two flow variants against the same payload and compare them.
"""

import asyncio
import json
from typing import Any, Dict

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from flow_orchestrator.comparison.analytics import build_analytics
from flow_orchestrator.comparison.models import ComparisonExecutionRequest
from flow_orchestrator.core.dependencies import get_orchestrator
from flow_orchestrator.core.errors import sanitize_error_for_user
from flow_orchestrator.core.logging import get_api_logger
from flow_orchestrator.flow.models import StreamEvent
from flow_orchestrator.orchestrator import ExecutionOrchestrator
from .errors import to_http_exception

router = APIRouter(prefix="/v1/champion-challenge", tags=["champion-challenge"])
logger = get_api_logger()


def _sse(event: str, data: Dict[str, Any]) -> str:
    return f"event: {event}\ndata: {json.dumps(data, default=str)}\n\n"


@router.post("/executions")
async def execute_comparison(
    request: ComparisonExecutionRequest,
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """Execute champion and challenge concurrently and return the comparison"""
    try:
        result = await orchestrator.execute_comparison(request)
    except Exception as e:
        raise to_http_exception(e)

    response = result.model_dump(mode="json")
    response["analytics"] = build_analytics(
        result.summary, result.champion_result, result.challenge_result
    ).model_dump(mode="json")
    return response


@router.post("/stream")
async def stream_comparison(
    request: ComparisonExecutionRequest,
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator)
) -> StreamingResponse:
    """
    Server-sent events for both variants. Node events carry
    data.variant; the last event is comparison_complete or comparison_error.
    """
    # Precondition errors surface as HTTP errors before the stream opens
    try:
        orchestrator.check_streamable(request)
    except Exception as e:
        raise to_http_exception(e)

    queue: asyncio.Queue = asyncio.Queue()

    async def run() -> None:
        try:
            result = await orchestrator.stream_comparison(request, queue.put, queue.put)
            await queue.put(("comparison_complete", result.model_dump(mode="json")))
        except Exception as e:
            logger.error(f"Streaming comparison failed: {e}")
            await queue.put(("comparison_error", {"error": sanitize_error_for_user(e)}))
        finally:
            await queue.put(None)

    async def event_stream():
        task = asyncio.create_task(run())
        try:
            while True:
                item = await queue.get()
                if item is None:
                    break
                if isinstance(item, StreamEvent):
                    yield _sse(item.type.value, item.model_dump(mode="json"))
                else:
                    yield _sse(*item)
        finally:
            if not task.done():
                task.cancel()

    return StreamingResponse(event_stream(), media_type="text/event-stream")
