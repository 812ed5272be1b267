# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for NodeExecutor (dispatch, retry, backoff, timeout)
"""

import json
import time

import httpx
import pytest

from flow_orchestrator.flow.context import ExecutionContext
from flow_orchestrator.flow.exceptions import ContentPolicyViolation
from flow_orchestrator.flow.models import FlowNode, NodeStatus, RetryConfig
from flow_orchestrator.flow.node_executor import NodeExecutor
from flow_orchestrator.flow.registry import FunctionRegistry
from tests.helpers import FakeLLMProvider


def make_context(timeout_ms: int = 5000, flow_input=None, default_retry=None) -> ExecutionContext:
    return ExecutionContext("exec_test", "flow", flow_input or {}, timeout_ms, default_retry=default_retry)


def node(**kwargs) -> FlowNode:
    return FlowNode.model_validate(kwargs)


def fast_retry(max_attempts: int = 3) -> dict:
    return {"maxAttempts": max_attempts, "backoffMs": 10, "backoffMultiplier": 2}


@pytest.mark.asyncio
async def test_function_node_success(node_executor):
    result = await node_executor.execute(
        node(id="f", type="function", config={"function_name": "double"}),
        {"value": 21},
        make_context(),
    )
    assert result.status == NodeStatus.SUCCESS
    assert result.output == {"value": 42}
    assert result.retry_count == 0
    assert len(result.attempts) == 1


@pytest.mark.asyncio
async def test_function_node_exhausts_retries(node_executor):
    result = await node_executor.execute(
        node(id="f", type="function", config={"function_name": "always_fails"}, retryConfig=fast_retry(3)),
        {},
        make_context(),
    )
    assert result.status == NodeStatus.ERROR
    assert "boom" in result.error
    assert len(result.attempts) == 3
    assert all(a.error for a in result.attempts)
    assert result.retry_count == 2


@pytest.mark.asyncio
async def test_flow_default_retry_applies_to_retryable_nodes(node_executor):
    result = await node_executor.execute(
        node(id="f", type="function", config={"function_name": "always_fails"}),
        {},
        make_context(default_retry=RetryConfig(max_attempts=2, backoff_ms=5)),
    )
    assert len(result.attempts) == 2


@pytest.mark.asyncio
async def test_transform_node_is_never_retried(node_executor):
    result = await node_executor.execute(
        node(id="t", type="transform", config={"transform_script": "missing + 1"}, retryConfig=fast_retry(3)),
        {},
        make_context(),
    )
    assert result.status == NodeStatus.ERROR
    assert result.error_code == "EXPRESSION_ERROR"
    assert len(result.attempts) == 1


@pytest.mark.asyncio
async def test_transform_node_sees_payload_and_flow_input(node_executor):
    result = await node_executor.execute(
        node(id="t", type="transform", config={"transform_script": "{'total': price * qty, 'user': flow_input.user}"}),
        {"price": 2, "qty": 3},
        make_context(flow_input={"user": "ada"}),
    )
    assert result.output == {"total": 6, "user": "ada"}


@pytest.mark.asyncio
async def test_conditional_node_passes_input_through(node_executor):
    payload = {"score": 0.3}
    result = await node_executor.execute(
        node(id="c", type="conditional", config={"expression": "score > 0.5"}),
        payload,
        make_context(),
    )
    assert result.status == NodeStatus.SUCCESS
    assert result.branch is False
    assert result.output == payload


@pytest.mark.asyncio
async def test_llm_prompt_is_rendered_from_input(node_executor, llm_provider):
    result = await node_executor.execute(
        node(id="l", type="llm", config={"prompt": "Summarize ${doc.title}", "model": "test-model"}),
        {"doc": {"title": "Quarterly report"}},
        make_context(),
    )
    assert result.status == NodeStatus.SUCCESS
    assert llm_provider.calls[0]["prompt"] == "Summarize Quarterly report"
    assert llm_provider.calls[0]["model"] == "test-model"
    assert result.output["text"] == "echo: Summarize Quarterly report"


@pytest.mark.asyncio
async def test_llm_content_policy_rejection_not_retried(registry, http_client):
    provider = FakeLLMProvider(error=ContentPolicyViolation("refused"))
    executor = NodeExecutor(function_registry=registry, http_client=http_client, llm_provider=provider)

    result = await executor.execute(
        node(id="l", type="llm", config={"prompt": "hi"}, retryConfig=fast_retry(3)),
        {},
        make_context(),
    )
    assert result.status == NodeStatus.ERROR
    assert result.error_code == "CONTENT_POLICY"
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_llm_without_provider_fails(registry, http_client):
    executor = NodeExecutor(function_registry=registry, http_client=http_client)
    result = await executor.execute(node(id="l", type="llm", config={"prompt": "hi"}), {}, make_context())
    assert result.status == NodeStatus.ERROR
    assert "No LLM provider" in result.error


@pytest.mark.asyncio
async def test_timeout_bounds_all_retries(registry, http_client):
    provider = FakeLLMProvider(delay=1.0)
    executor = NodeExecutor(function_registry=registry, http_client=http_client, llm_provider=provider)

    result = await executor.execute(
        node(id="slow", type="llm", config={"prompt": "hi"}, retryConfig=fast_retry(5)),
        {},
        make_context(timeout_ms=100),
    )
    assert result.status == NodeStatus.ERROR
    assert result.error_code == "TIMEOUT"
    assert "timeout" in result.error
    assert len(provider.calls) == 1
    assert result.attempts[-1].error == result.error
    assert result.duration_ms < 1000


@pytest.mark.asyncio
async def test_mapping_error_inherits_node_retry_policy(node_executor):
    bad_mapping = [{"sourceField": "x", "targetField": "y", "type": "transform", "transform": "value +"}]

    retryable = await node_executor.execute(
        node(id="f", type="function", config={"function_name": "identity"},
             inputMapping=bad_mapping, retryConfig=fast_retry(2)),
        {"x": 1},
        make_context(),
    )
    assert retryable.error_code == "MAPPING_ERROR"
    assert len(retryable.attempts) == 2

    pure = await node_executor.execute(
        node(id="t", type="transform", config={"transform_script": "y"},
             inputMapping=bad_mapping, retryConfig=fast_retry(2)),
        {"x": 1},
        make_context(),
    )
    assert pure.error_code == "MAPPING_ERROR"
    assert len(pure.attempts) == 1


@pytest.mark.asyncio
async def test_input_and_output_mappings(node_executor):
    result = await node_executor.execute(
        node(
            id="f",
            type="function",
            config={"function_name": "double"},
            inputMapping={"value": "order.qty"},
            outputMapping={"doubled": "value"},
        ),
        {"order": {"qty": 4}},
        make_context(),
    )
    assert result.request == {"value": 4}
    assert result.output == {"doubled": 8}


@pytest.mark.asyncio
async def test_api_node_renders_request_and_retries_on_5xx(registry):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if len(seen) == 1:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(200, json={"approved": True})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    executor = NodeExecutor(function_registry=registry, http_client=client)

    result = await executor.execute(
        node(
            id="api",
            type="api",
            config={
                "endpoint": "https://scoring.test/customers/${customer.id}",
                "method": "POST",
                "headers": {"X-Request": "${request_id}"},
                "body_template": '{"amount": ${amount}}',
            },
            retryConfig=fast_retry(3),
        ),
        {"customer": {"id": "c-9"}, "request_id": "r-1", "amount": 250},
        make_context(),
    )

    assert result.status == NodeStatus.SUCCESS
    assert result.output == {"approved": True}
    assert result.retry_count == 1
    assert str(seen[-1].url) == "https://scoring.test/customers/c-9"
    assert seen[-1].headers["X-Request"] == "r-1"
    assert json.loads(seen[-1].content) == {"amount": 250}


@pytest.mark.asyncio
async def test_api_node_final_http_error_code(registry):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(404, text="nope")))
    executor = NodeExecutor(function_registry=registry, http_client=client)

    result = await executor.execute(
        node(id="api", type="api", config={"endpoint": "https://svc.test/x", "method": "GET"}),
        {"q": "a", "nested": {"skip": True}},
        make_context(),
    )
    assert result.status == NodeStatus.ERROR
    assert result.error_code == "HTTP_404"
    assert result.request["method"] == "GET"


@pytest.mark.asyncio
async def test_api_get_sends_scalar_params(registry):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, text="plain body")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    executor = NodeExecutor(function_registry=registry, http_client=client)

    result = await executor.execute(
        node(id="api", type="api", config={"endpoint": "https://svc.test/search", "method": "GET"}),
        {"q": "abc", "nested": {"skip": True}},
        make_context(),
    )
    assert result.output == {"body": "plain body"}
    assert seen[0].url.params["q"] == "abc"
    assert "nested" not in seen[0].url.params


@pytest.mark.asyncio
async def test_blocking_function_is_bounded_by_timeout(http_client):
    registry = FunctionRegistry()
    registry.register("sleepy", lambda payload: time.sleep(0.5) or {"done": True})
    executor = NodeExecutor(function_registry=registry, http_client=http_client)

    result = await executor.execute(
        node(id="f", type="function", config={"functionName": "sleepy"}),
        {},
        make_context(timeout_ms=50),
    )
    assert result.status == NodeStatus.ERROR
    assert result.error_code == "TIMEOUT"
    assert result.output is None
    assert result.duration_ms < 400


@pytest.mark.asyncio
async def test_camel_case_api_config_renders_body(registry):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"ok": True})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    executor = NodeExecutor(function_registry=registry, http_client=client)

    result = await executor.execute(
        node(id="api", type="api", config={
            "endpoint": "https://svc.test/score",
            "bodyTemplate": '{"amount": ${amount}}',
        }),
        {"amount": 99, "extra": "not sent"},
        make_context(),
    )
    assert result.status == NodeStatus.SUCCESS
    assert json.loads(seen[0].content) == {"amount": 99}
