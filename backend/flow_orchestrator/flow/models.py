# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow Models

Pydantic models for flow definitions (nodes, edges, mappings) and for the
execution records the native graph engine produces.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Dict, Any, Optional, Union

from pydantic import BaseModel, Field, ConfigDict, AliasChoices, field_validator, model_validator


def _short_id() -> str:
    return uuid.uuid4().hex[:8]


# ============================================================================
# Enums
# ============================================================================

class NodeType(str, Enum):
    """
    Supported flow node types.

    External calls (suspend, retryable):
        API - Outbound HTTP request
        LLM - Generative model call
    Local:
        FUNCTION - Registered Python callable (retryable)
        CONDITIONAL - Boolean predicate choosing outgoing edges
        TRANSFORM - Expression producing a new payload
    """
    API = "api"
    LLM = "llm"
    FUNCTION = "function"
    CONDITIONAL = "conditional"
    TRANSFORM = "transform"


RETRYABLE_NODE_TYPES = frozenset({NodeType.API, NodeType.LLM, NodeType.FUNCTION})


class MappingType(str, Enum):
    DIRECT = "direct"
    TRANSFORM = "transform"
    STATIC = "static"


class NodeStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    SKIPPED = "skipped"


class FlowStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class Variant(str, Enum):
    CHAMPION = "champion"
    CHALLENGE = "challenge"


class StreamEventType(str, Enum):
    NODE_START = "node_start"
    NODE_COMPLETE = "node_complete"
    NODE_ERROR = "node_error"
    FLOW_COMPLETE = "flow_complete"
    FLOW_ERROR = "flow_error"


# ============================================================================
# Definition models
# ============================================================================

class FieldMapping(BaseModel):
    """
    Copy, compute or inject one field of a request object.

    Example:
        {"sourceField": "customer.id", "targetField": "body.customerId", "type": "direct"}
        {"targetField": "headers.X-Channel", "type": "static", "staticValue": "web"}
        {"sourceField": "amount", "targetField": "cents", "type": "transform",
         "transform": "value * 100"}
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=_short_id)
    source_field: str = Field(default="", alias="sourceField")
    target_field: str = Field(default="", alias="targetField")
    type: MappingType = MappingType.DIRECT
    transform: Optional[str] = None
    static_value: Any = Field(default=None, alias="staticValue")

    def is_inert(self) -> bool:
        """A mapping with no target, or nothing to read, is ignored."""
        if not self.target_field:
            return True
        if self.type == MappingType.STATIC:
            return "static_value" not in self.model_fields_set
        if self.type == MappingType.TRANSFORM:
            return not (self.transform or self.source_field)
        return not self.source_field


class RetryConfig(BaseModel):
    """Exponential backoff: wait backoff_ms * backoff_multiplier ** attempt."""
    max_attempts: int = Field(default=3, ge=1, validation_alias=AliasChoices("max_attempts", "maxAttempts"))
    backoff_ms: int = Field(default=1000, ge=0, validation_alias=AliasChoices("backoff_ms", "backoffMs"))
    backoff_multiplier: float = Field(
        default=2.0,
        ge=1.0,
        validation_alias=AliasChoices("backoff_multiplier", "backoffMultiplier"),
    )

    def delay_ms(self, attempt: int) -> float:
        """Backoff before retry number `attempt` (0-based)."""
        return self.backoff_ms * (self.backoff_multiplier ** attempt)


class NodeConfig(BaseModel):
    """Type-specific node configuration. Unknown keys are kept."""
    model_config = ConfigDict(extra="allow")

    # api
    endpoint: Optional[str] = None
    method: str = "POST"
    headers: Dict[str, str] = Field(default_factory=dict)
    body_template: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("body_template", "bodyTemplate"),
    )

    # function
    function_name: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("function_name", "functionName"),
    )

    # llm
    model: Optional[str] = None
    prompt: Optional[str] = None
    system_prompt: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("system_prompt", "systemPrompt"),
    )
    temperature: Optional[float] = None
    max_tokens: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("max_tokens", "maxTokens"),
    )

    # transform
    transform_script: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("transform_script", "transformScript"),
    )

    # conditional
    expression: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("expression", "predicate", "condition"),
    )


MappingSpec = Union[List[FieldMapping], Dict[str, str]]


def _coerce_mappings(value: Any) -> Any:
    # {target: source_path} shorthand becomes direct mappings
    if isinstance(value, dict):
        return [
            {"sourceField": source, "targetField": target, "type": MappingType.DIRECT.value}
            for target, source in value.items()
        ]
    return value


class FlowNode(BaseModel):
    """Single unit of work in a flow"""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    type: NodeType
    name: str = ""
    config: NodeConfig = Field(default_factory=NodeConfig)
    input_mapping: Optional[List[FieldMapping]] = Field(
        default=None,
        validation_alias=AliasChoices("input_mapping", "inputMapping"),
    )
    output_mapping: Optional[List[FieldMapping]] = Field(
        default=None,
        validation_alias=AliasChoices("output_mapping", "outputMapping"),
    )
    retry_config: Optional[RetryConfig] = Field(
        default=None,
        validation_alias=AliasChoices("retry_config", "retryConfig"),
    )

    @field_validator("input_mapping", "output_mapping", mode="before")
    @classmethod
    def _mapping_shorthand(cls, value: Any) -> Any:
        return _coerce_mappings(value)

    @model_validator(mode="after")
    def _default_name(self) -> "FlowNode":
        if not self.name:
            self.name = self.id
        return self

    @property
    def is_retryable(self) -> bool:
        return self.type in RETRYABLE_NODE_TYPES


class FlowEdge(BaseModel):
    """Directed edge; `priority` orders the merge of predecessor outputs."""
    model_config = ConfigDict(populate_by_name=True)  # Allow both 'from' and 'from_'

    id: str = Field(default_factory=_short_id)
    from_: str = Field(alias="from")
    to: str
    condition: Optional[str] = None
    label: Optional[str] = None
    priority: int = 0


class FlowConfig(BaseModel):
    """Per-flow execution settings; unset values fall back to engine Config."""
    timeout_ms: Optional[int] = Field(
        default=None,
        gt=0,
        validation_alias=AliasChoices("timeout_ms", "timeoutMs", "timeout"),
    )
    max_retries: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("max_retries", "maxRetries", "retries"),
    )
    streaming: bool = False
    checkpoint: bool = False
    max_concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        validation_alias=AliasChoices("max_concurrency", "maxConcurrency"),
    )


class FlowDefinition(BaseModel):
    """Flow definition - nodes, edges and execution config. Frozen once loaded."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(validation_alias=AliasChoices("id", "flow_id", "flowId"))
    name: str
    description: Optional[str] = None
    version: Optional[str] = None
    nodes: List[FlowNode]
    edges: List[FlowEdge] = Field(default_factory=list)
    state_schema: Optional[Dict[str, Any]] = Field(
        default=None,
        validation_alias=AliasChoices("state_schema", "stateSchema"),
    )
    config: FlowConfig = Field(default_factory=FlowConfig)
    start_nodes: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("start_nodes", "startNodes"),
    )
    end_nodes: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("end_nodes", "endNodes"),
    )

    def get_node(self, node_id: str) -> FlowNode:
        return next(n for n in self.nodes if n.id == node_id)

    def incoming(self, node_id: str) -> List[FlowEdge]:
        return [e for e in self.edges if e.to == node_id]

    def outgoing(self, node_id: str) -> List[FlowEdge]:
        return [e for e in self.edges if e.from_ == node_id]


# ============================================================================
# Execution records
# ============================================================================

class AttemptRecord(BaseModel):
    """One try of a node; kept so retried failures stay visible."""
    attempt: int
    started_at: datetime
    duration_ms: float
    error: Optional[str] = None


class NodeResult(BaseModel):
    """Outcome of NodeExecutor.execute for one node."""
    node_id: str
    node_type: NodeType
    status: NodeStatus
    request: Any = None
    output: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    branch: Optional[bool] = None  # conditional nodes only
    attempts: List[AttemptRecord] = Field(default_factory=list)
    started_at: datetime
    completed_at: datetime
    duration_ms: float

    @property
    def retry_count(self) -> int:
        return max(len(self.attempts) - 1, 0)


class NodeMetric(BaseModel):
    """Recorded outcome of one node within one execution."""
    id: str
    execution_id: str
    variant: Optional[Variant] = None
    node_id: str
    node_name: str
    node_type: str
    request_data: Any = None
    response_data: Any = None
    execution_time_ms: float = 0.0
    status: NodeStatus
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    sequence: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class NormalizedExecutionResult(BaseModel):
    """Common result shape for native and legacy executions"""
    execution_id: str
    workflow_id: str
    total_time_ms: float
    status: FlowStatus
    node_metrics: List[NodeMetric] = Field(default_factory=list)
    output: Any = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def success_count(self) -> int:
        return sum(1 for m in self.node_metrics if m.status == NodeStatus.SUCCESS)

    @property
    def error_count(self) -> int:
        return sum(1 for m in self.node_metrics if m.status == NodeStatus.ERROR)


class StreamEvent(BaseModel):
    """Incremental event emitted while a native flow runs"""
    type: StreamEventType
    execution_id: str
    timestamp: str
    data: Dict[str, Any] = Field(default_factory=dict)
