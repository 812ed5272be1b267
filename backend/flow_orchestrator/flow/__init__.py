# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Native flow graph engine.

- models: Flow definitions and execution records
- validation: DAG validation
- field_mapper: Field mappings and ${path} templates
- node_executor: Per-node dispatch, retry and timeout
- walker: Wave-based graph execution
- recorder: NodeMetric accumulation
"""

from .exceptions import FlowValidationError, NodeExecutionException
from .models import FlowDefinition, FlowNode, FlowEdge, NodeMetric, NormalizedExecutionResult
from .node_executor import NodeExecutor
from .registry import FunctionRegistry
from .walker import FlowGraphWalker

__all__ = [
    "FlowDefinition",
    "FlowNode",
    "FlowEdge",
    "NodeMetric",
    "NormalizedExecutionResult",
    "NodeExecutor",
    "FunctionRegistry",
    "FlowGraphWalker",
    "FlowValidationError",
    "NodeExecutionException",
]
