# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test doubles and flow-building helpers
"""

import asyncio
from typing import Any, Dict, List, Optional

import httpx

from flow_orchestrator.flow.models import FlowDefinition


class FakeLLMProvider:
    """
    LLMProvider double. Sleeps `delay` seconds per call (a real suspension
    point) and answers with the rendered prompt.
    """

    def __init__(self, delay: float = 0.0, error: Optional[Exception] = None):
        self.delay = delay
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def generate(self, *, model, prompt, system_prompt=None, temperature=None, max_tokens=1024):
        self.calls.append({"model": model, "prompt": prompt, "system_prompt": system_prompt})
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return {"text": f"echo: {prompt}", "model": model, "usage": {"input_tokens": 1, "output_tokens": 1}}


def default_http_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"ok": True, "path": request.url.path})


def make_flow(nodes: List[Dict[str, Any]], edges: List[Dict[str, Any]] = None, **kwargs) -> FlowDefinition:
    """Build a FlowDefinition from plain dicts"""
    data = {"id": kwargs.pop("id", "test-flow"), "name": kwargs.pop("name", "Test Flow")}
    data.update(kwargs)
    data["nodes"] = nodes
    data["edges"] = edges or []
    return FlowDefinition.model_validate(data)


def llm_node(node_id: str, **kwargs) -> Dict[str, Any]:
    node = {"id": node_id, "type": "llm", "config": {"prompt": f"run {node_id}"}}
    node.update(kwargs)
    return node


def chain(*node_ids: str) -> List[Dict[str, Any]]:
    return [{"from": a, "to": b} for a, b in zip(node_ids, node_ids[1:])]
