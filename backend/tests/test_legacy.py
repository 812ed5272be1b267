# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for the legacy engine bridge
"""

import json

import httpx
import pytest

from flow_orchestrator.flow.exceptions import EngineUnavailableError
from flow_orchestrator.flow.models import FlowStatus, NodeStatus, Variant
from flow_orchestrator.legacy import LegacyEngineClient, normalize_legacy_result


def test_normalize_camel_case_payload():
    result = normalize_legacy_result(
        {
            "executionId": "bpmn-7",
            "workflowId": "Process_1",
            "status": "COMPLETED",
            "output": {"approved": True},
            "nodeResults": [
                {"nodeId": "score", "nodeName": "Score", "nodeType": "serviceTask",
                 "status": "completed", "executionTimeMs": 40, "startedAt": "2025-01-01T10:00:00Z"},
                {"nodeId": "notify", "status": "failed", "executionTimeMs": 5,
                 "error": {"message": "smtp down"}},
                {"nodeId": "archive", "status": "skipped"},
            ],
        },
        Variant.CHAMPION,
    )

    assert result.execution_id == "bpmn-7"
    assert result.workflow_id == "Process_1"
    assert result.status == FlowStatus.SUCCESS
    assert result.output == {"approved": True}
    assert [m.status for m in result.node_metrics] == [NodeStatus.SUCCESS, NodeStatus.ERROR, NodeStatus.SKIPPED]
    assert [m.sequence for m in result.node_metrics] == [1, 2, 3]
    assert result.node_metrics[0].node_type == "serviceTask"
    assert result.node_metrics[0].started_at.year == 2025
    assert result.node_metrics[1].error_message == "smtp down"
    assert result.node_metrics[2].node_name == "archive"
    assert all(m.variant == Variant.CHAMPION for m in result.node_metrics)
    assert result.metadata["execution_mode"] == "bpmn"
    assert result.metadata["error_count"] == 1


def test_total_time_fallbacks():
    nodes = [{"node_id": "a", "status": "completed", "execution_time_ms": 30},
             {"node_id": "b", "status": "completed", "execution_time_ms": 20}]

    reported = normalize_legacy_result({"status": "completed", "metrics": {"total_time_ms": 90}, "node_results": nodes})
    measured = normalize_legacy_result({"status": "completed", "node_results": nodes}, elapsed_ms=75.0)
    summed = normalize_legacy_result({"status": "completed", "node_results": nodes})

    assert reported.total_time_ms == 90
    assert measured.total_time_ms == 75.0
    assert summed.total_time_ms == 50


def test_unknown_status_is_failure():
    assert normalize_legacy_result({"status": "terminated"}).status == FlowStatus.FAILED


@pytest.mark.asyncio
async def test_execute_polls_until_finished():
    polls = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            body = json.loads(request.content)
            assert request.url.path == "/api/workflows/Process_1/execute"
            assert body == {"inputData": {"amount": 5}, "variant": "challenge"}
            return httpx.Response(202, json={"execution_id": "bpmn-1", "status": "running"})

        polls.append(request.url.path)
        if len(polls) < 2:
            return httpx.Response(200, json={"execution_id": "bpmn-1", "status": "running"})
        return httpx.Response(200, json={
            "execution_id": "bpmn-1",
            "status": "completed",
            "node_results": [{"node_id": "task", "status": "completed", "execution_time_ms": 12}],
        })

    client = LegacyEngineClient(
        "http://legacy.test/api/",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        poll_interval=0.01,
    )

    result = await client.execute("Process_1", {"amount": 5}, Variant.CHALLENGE)

    assert polls == ["/api/executions/bpmn-1", "/api/executions/bpmn-1"]
    assert result.status == FlowStatus.SUCCESS
    assert result.workflow_id == "Process_1"
    assert result.total_time_ms > 0
    assert result.node_metrics[0].variant == Variant.CHALLENGE


@pytest.mark.asyncio
async def test_http_error_becomes_engine_unavailable():
    client = LegacyEngineClient(
        "http://legacy.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500, text="boom"))),
    )

    with pytest.raises(EngineUnavailableError) as exc_info:
        await client.execute("Process_1", {})
    assert exc_info.value.engine == "legacy"
    assert "HTTP 500" in str(exc_info.value)


@pytest.mark.asyncio
async def test_connection_error_becomes_engine_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = LegacyEngineClient("http://legacy.test", http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))

    with pytest.raises(EngineUnavailableError, match="connection refused"):
        await client.execute("Process_1", {})


@pytest.mark.asyncio
async def test_poll_timeout():
    client = LegacyEngineClient(
        "http://legacy.test",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(
            lambda r: httpx.Response(200, json={"execution_id": "bpmn-1", "status": "pending"})
        )),
        poll_interval=0.01,
        poll_timeout=0.05,
    )

    with pytest.raises(EngineUnavailableError, match="did not finish"):
        await client.execute("Process_1", {})
