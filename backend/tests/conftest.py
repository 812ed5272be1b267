# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Shared fixtures for flow orchestrator tests
"""

import os
import sys

import httpx
import pytest

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from flow_orchestrator.core.config import Config
from flow_orchestrator.flow.node_executor import NodeExecutor
from flow_orchestrator.flow.registry import FunctionRegistry
from flow_orchestrator.flow.walker import FlowGraphWalker
from tests.helpers import FakeLLMProvider, default_http_handler


@pytest.fixture
def config():
    """Engine config with short timeouts and text logs"""
    return Config(default_timeout_ms=5000, default_retry_backoff_ms=10, log_format="text")


@pytest.fixture
def registry():
    """Function registry with a few pure functions"""
    registry = FunctionRegistry()

    @registry.register("double")
    def double(payload):
        return {"value": payload["value"] * 2}

    @registry.register("always_fails")
    def always_fails(payload):
        raise RuntimeError("boom")

    registry.register("identity", lambda payload: payload)
    return registry


@pytest.fixture
def llm_provider():
    return FakeLLMProvider()


@pytest.fixture
def http_client():
    return httpx.AsyncClient(transport=httpx.MockTransport(default_http_handler))


@pytest.fixture
def node_executor(registry, http_client, llm_provider):
    return NodeExecutor(function_registry=registry, http_client=http_client, llm_provider=llm_provider)


@pytest.fixture
def walker(node_executor, config):
    return FlowGraphWalker(node_executor, config)
