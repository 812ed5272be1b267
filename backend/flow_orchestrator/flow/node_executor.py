# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Node Executor

Executes a single flow node - dispatches by node type and owns the
retry / backoff / timeout policy. Failures are returned as data
(NodeResult.status == error), never raised past the node boundary.
"""

import asyncio
import json
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import httpx

from flow_orchestrator.core.logging import get_service_logger
from flow_orchestrator.expressions import evaluate, evaluate_condition
from . import field_mapper
from .context import ExecutionContext
from .exceptions import (
    ContentPolicyViolation,
    MappingResolutionError,
    NodeExecutionException,
    NodeTimeoutException,
)
from .models import AttemptRecord, FlowNode, NodeResult, NodeStatus, NodeType, RetryConfig
from .registry import FunctionRegistry

logger = get_service_logger("node_executor")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class NodeExecutor:
    """
    Executes one node against an input payload.

    Collaborators are injected:
        function_registry - implementations for `function` nodes
        http_client       - httpx.AsyncClient for `api` nodes
        llm_provider      - LLMProvider for `llm` nodes
    """

    def __init__(
        self,
        function_registry: Optional[FunctionRegistry] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        llm_provider=None,
        default_llm_model: str = "claude-sonnet-4-5",
        default_max_tokens: int = 1024,
        http_timeout: float = 30.0,
    ):
        self.function_registry = function_registry or FunctionRegistry()
        self.llm_provider = llm_provider
        self.default_llm_model = default_llm_model
        self.default_max_tokens = default_max_tokens
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=http_timeout)

    async def close(self) -> None:
        """Close HTTP client if we created it"""
        if self._owns_client:
            await self.http_client.aclose()

    async def execute(self, node: FlowNode, input_payload: Any, context: ExecutionContext) -> NodeResult:
        """
        Execute a node with retries, bounded by the flow timeout.

        The timeout covers every attempt and every backoff wait.
        """
        started_at = _now()
        t0 = time.monotonic()
        attempts: List[AttemptRecord] = []
        state: Dict[str, Any] = {"request": input_payload, "attempt_started": None}

        output = None
        branch = None
        error: Optional[NodeExecutionException] = None

        try:
            output, branch = await asyncio.wait_for(
                self._run_with_retries(node, input_payload, context, attempts, state),
                timeout=context.timeout_ms / 1000.0
            )
        except asyncio.TimeoutError:
            error = NodeTimeoutException(node.id, node.type.value, context.timeout_ms)
            in_flight = state["attempt_started"]
            if in_flight is not None:
                attempts.append(AttemptRecord(
                    attempt=len(attempts) + 1,
                    started_at=in_flight[0],
                    duration_ms=(time.monotonic() - in_flight[1]) * 1000,
                    error=error.reason,
                ))
            logger.warning(f"Node '{node.id}' timed out after {context.timeout_ms}ms")
        except NodeExecutionException as e:
            error = e

        completed_at = _now()
        duration_ms = (time.monotonic() - t0) * 1000

        if error is not None:
            logger.error(f"Node '{node.id}' failed after {len(attempts)} attempt(s): {error.reason}")
            return NodeResult(
                node_id=node.id,
                node_type=node.type,
                status=NodeStatus.ERROR,
                request=state["request"],
                error=error.reason,
                error_code=error.code,
                attempts=attempts,
                started_at=started_at,
                completed_at=completed_at,
                duration_ms=duration_ms,
            )

        return NodeResult(
            node_id=node.id,
            node_type=node.type,
            status=NodeStatus.SUCCESS,
            request=state["request"],
            output=output,
            branch=branch,
            attempts=attempts,
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=duration_ms,
        )

    def _retry_policy(self, node: FlowNode, context: ExecutionContext) -> Optional[RetryConfig]:
        if not node.is_retryable:
            return None
        return node.retry_config or context.default_retry

    async def _run_with_retries(
        self,
        node: FlowNode,
        input_payload: Any,
        context: ExecutionContext,
        attempts: List[AttemptRecord],
        state: Dict[str, Any],
    ) -> Tuple[Any, Optional[bool]]:
        policy = self._retry_policy(node, context)
        max_attempts = policy.max_attempts if policy else 1

        for attempt in range(max_attempts):
            attempt_started = _now()
            t = time.monotonic()
            state["attempt_started"] = (attempt_started, t)
            try:
                result = await self._dispatch(node, input_payload, context, state)
            except Exception as e:
                err = self._as_node_error(node, e)
                attempts.append(AttemptRecord(
                    attempt=attempt + 1,
                    started_at=attempt_started,
                    duration_ms=(time.monotonic() - t) * 1000,
                    error=err.reason,
                ))
                state["attempt_started"] = None

                if not err.retryable or attempt == max_attempts - 1:
                    raise err from e

                delay_ms = policy.delay_ms(attempt)
                logger.info(
                    f"Retrying node '{node.id}' in {delay_ms:.0f}ms "
                    f"(attempt {attempt + 2}/{max_attempts}): {err.reason}"
                )
                await asyncio.sleep(delay_ms / 1000.0)
                continue

            attempts.append(AttemptRecord(
                attempt=attempt + 1,
                started_at=attempt_started,
                duration_ms=(time.monotonic() - t) * 1000,
            ))
            state["attempt_started"] = None
            return result

        # max_attempts >= 1 so the loop always returns or raises
        raise NodeExecutionException(node.id, node.type.value, "No attempts made", retryable=False)

    def _as_node_error(self, node: FlowNode, error: Exception) -> NodeExecutionException:
        """Classify any failure raised by a node attempt"""
        if isinstance(error, NodeExecutionException):
            return error
        if isinstance(error, ContentPolicyViolation):
            return NodeExecutionException(
                node.id, node.type.value, str(error), retryable=False, code="CONTENT_POLICY"
            )
        if isinstance(error, MappingResolutionError):
            return NodeExecutionException(
                node.id, node.type.value, str(error), retryable=node.is_retryable, code="MAPPING_ERROR"
            )
        if isinstance(error, httpx.HTTPError):
            return NodeExecutionException(
                node.id, node.type.value, f"{type(error).__name__}: {error}", code="NETWORK_ERROR"
            )
        return NodeExecutionException(
            node.id, node.type.value, f"{type(error).__name__}: {error}", retryable=node.is_retryable
        )

    async def _dispatch(
        self,
        node: FlowNode,
        payload: Any,
        context: ExecutionContext,
        state: Dict[str, Any],
    ) -> Tuple[Any, Optional[bool]]:
        """Dispatch by node type; returns (output, branch)"""
        request = self._build_request(node, payload)
        state["request"] = request

        branch = None
        if node.type == NodeType.API:
            output = await self._execute_api(node, request, state)
        elif node.type == NodeType.LLM:
            output = await self._execute_llm(node, request, state)
        elif node.type == NodeType.FUNCTION:
            output = await self._execute_function(node, request)
        elif node.type == NodeType.TRANSFORM:
            output = self._execute_transform(node, request, context)
        elif node.type == NodeType.CONDITIONAL:
            branch = self._execute_conditional(node, request, context)
            output = request
        else:
            raise NodeExecutionException(
                node.id, str(node.type), f"Unsupported node type: {node.type}", retryable=False
            )

        if node.output_mapping is not None:
            output = field_mapper.resolve(node.output_mapping, output)

        return output, branch

    def _build_request(self, node: FlowNode, payload: Any) -> Any:
        if node.input_mapping is None:
            return payload
        return field_mapper.resolve(node.input_mapping, payload)

    async def _execute_api(self, node: FlowNode, request: Any, state: Dict[str, Any]) -> Any:
        cfg = node.config
        method = cfg.method.upper()
        url = field_mapper.render_template(cfg.endpoint, request)
        headers = {
            key: str(field_mapper.render_template(value, request))
            for key, value in cfg.headers.items()
        }

        body = request
        if cfg.body_template:
            rendered = field_mapper.render_template(cfg.body_template, request)
            if isinstance(rendered, str):
                try:
                    body = json.loads(rendered)
                except ValueError:
                    body = rendered
            else:
                body = rendered

        state["request"] = {"method": method, "url": url, "headers": headers, "body": body}

        if method in ("GET", "DELETE", "HEAD"):
            params = None
            if isinstance(body, dict):
                params = {k: v for k, v in body.items() if not isinstance(v, (dict, list))}
            response = await self.http_client.request(method, url, headers=headers, params=params)
        elif isinstance(body, str):
            response = await self.http_client.request(method, url, headers=headers, content=body)
        else:
            response = await self.http_client.request(method, url, headers=headers, json=body)

        if not 200 <= response.status_code < 300:
            raise NodeExecutionException(
                node.id,
                node.type.value,
                f"HTTP {response.status_code}: {response.text[:200]}",
                context={"status_code": response.status_code},
                code=f"HTTP_{response.status_code}",
            )

        try:
            return response.json()
        except ValueError:
            return {"body": response.text}

    async def _execute_llm(self, node: FlowNode, request: Any, state: Dict[str, Any]) -> Any:
        if self.llm_provider is None:
            raise NodeExecutionException(
                node.id, node.type.value, "No LLM provider configured", retryable=False
            )

        cfg = node.config
        model = cfg.model or self.default_llm_model
        prompt = str(field_mapper.render_template(cfg.prompt, request))
        system_prompt = None
        if cfg.system_prompt:
            system_prompt = str(field_mapper.render_template(cfg.system_prompt, request))

        state["request"] = {"model": model, "prompt": prompt, "temperature": cfg.temperature}

        return await self.llm_provider.generate(
            model=model,
            prompt=prompt,
            system_prompt=system_prompt,
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens or self.default_max_tokens,
        )

    async def _execute_function(self, node: FlowNode, request: Any) -> Any:
        name = node.config.function_name
        func = self.function_registry.get(name)
        if func is None:
            raise NodeExecutionException(
                node.id, node.type.value, f"Function not registered: {name}", retryable=False
            )
        # Off the event loop; the wait_for in execute() bounds it
        return await asyncio.to_thread(func, request)

    def _expression_context(self, request: Any, context: ExecutionContext) -> Dict[str, Any]:
        variables: Dict[str, Any] = dict(request) if isinstance(request, dict) else {}
        variables["input"] = request
        variables["flow_input"] = context.flow_input
        return variables

    def _execute_transform(self, node: FlowNode, request: Any, context: ExecutionContext) -> Any:
        try:
            return evaluate(node.config.transform_script, self._expression_context(request, context))
        except ValueError as e:
            raise NodeExecutionException(
                node.id, node.type.value, str(e), retryable=False, code="EXPRESSION_ERROR"
            ) from e

    def _execute_conditional(self, node: FlowNode, request: Any, context: ExecutionContext) -> bool:
        try:
            return evaluate_condition(node.config.expression, self._expression_context(request, context))
        except ValueError as e:
            raise NodeExecutionException(
                node.id, node.type.value, str(e), retryable=False, code="EXPRESSION_ERROR"
            ) from e
