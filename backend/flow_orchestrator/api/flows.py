# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow API Routes

Single-flow execution and validation.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from flow_orchestrator.comparison.models import ExecutionMode
from flow_orchestrator.core.dependencies import get_orchestrator
from flow_orchestrator.flow.exceptions import FlowValidationError
from flow_orchestrator.flow.models import FlowDefinition, NormalizedExecutionResult
from flow_orchestrator.flow.validation import validate_flow
from flow_orchestrator.orchestrator import ExecutionOrchestrator
from .errors import to_http_exception

router = APIRouter(prefix="/v1/flows", tags=["flows"])


class FlowExecuteRequest(BaseModel):
    input: Any = Field(default_factory=dict)
    mode: ExecutionMode = ExecutionMode.LANGGRAPH
    version: Optional[str] = None


@router.get("")
async def list_flows(
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator)
) -> List[Dict[str, Any]]:
    """List registered flows (latest versions)"""
    return [
        {"id": f.id, "name": f.name, "version": f.version, "node_count": len(f.nodes)}
        for f in orchestrator.flow_store.list()
    ]


@router.post("/validate")
async def validate_flow_definition(
    flow_data: Dict[str, Any],
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator)
) -> Dict[str, Any]:
    """
    Validate a flow definition without running it.

    Returns {"valid": true, "execution_order": [...]} or
    {"valid": false, "error": ..., "field": ...}.
    """
    try:
        flow = FlowDefinition.model_validate(flow_data)
    except PydanticValidationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid flow definition: {e.errors()[0]['msg']}")

    try:
        order = validate_flow(flow, orchestrator.walker.node_executor.function_registry.names())
    except FlowValidationError as e:
        return {"valid": False, "error": e.message, "field": e.field}

    return {"valid": True, "execution_order": order}


@router.post("/{flow_id}/execute", response_model=NormalizedExecutionResult)
async def execute_flow(
    flow_id: str,
    request: FlowExecuteRequest,
    orchestrator: ExecutionOrchestrator = Depends(get_orchestrator)
) -> NormalizedExecutionResult:
    """Execute a single flow outside a comparison"""
    try:
        return await orchestrator.execute_single(
            flow_id,
            request.input,
            mode=request.mode,
            version=request.version,
        )
    except Exception as e:
        raise to_http_exception(e)
