# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow Engine Exceptions

Custom exceptions for the native flow graph engine and the orchestrator.
"""


class FlowException(Exception):
    """Base exception for the flow engine"""
    pass


class FlowValidationError(FlowException):
    """Flow validation failed"""
    def __init__(self, message: str, field: str = None):
        self.message = message
        self.field = field
        super().__init__(message)


class FlowExecutionError(FlowException):
    """Flow execution failed"""
    pass


class NodeExecutionException(FlowExecutionError):
    """Node execution failed"""
    def __init__(
        self,
        node_id: str,
        node_type: str,
        message: str,
        context: dict = None,
        retryable: bool = True,
        code: str = "NODE_ERROR",
    ):
        self.node_id = node_id
        self.node_type = node_type
        self.reason = message
        self.context = context or {}
        self.retryable = retryable
        self.code = code
        super().__init__(f"Node '{node_id}' ({node_type}) failed: {message}")


class NodeTimeoutException(NodeExecutionException):
    """Node execution exceeded the flow timeout"""
    def __init__(self, node_id: str, node_type: str, timeout_ms: int):
        super().__init__(
            node_id,
            node_type,
            f"Execution exceeded timeout ({timeout_ms}ms)",
            retryable=False,
            code="TIMEOUT",
        )
        self.timeout_ms = timeout_ms


class MappingResolutionError(FlowExecutionError):
    """A field-mapping transform could not be evaluated"""
    def __init__(self, mapping_id: str, target_field: str, message: str):
        self.mapping_id = mapping_id
        self.target_field = target_field
        super().__init__(f"Mapping '{mapping_id}' -> '{target_field}' failed: {message}")


class ContentPolicyViolation(FlowExecutionError):
    """LLM provider refused the request; never retried"""
    pass


class EngineUnavailableError(FlowExecutionError):
    """An execution engine could not produce a result"""
    def __init__(self, engine: str, message: str):
        self.engine = engine
        super().__init__(f"{engine} engine unavailable: {message}")


class ComparisonModeError(FlowException):
    """Requested comparison is not supported for the selected execution modes"""
    pass
