# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Champion vs Challenge Models

Comparison requests, execution records and per-metric comparisons.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ConfigDict, AliasChoices, model_validator

from flow_orchestrator.flow.models import FlowStatus, NodeMetric, NormalizedExecutionResult


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MetricCategory(str, Enum):
    """QUALITY metrics are higher-wins; every other category is lower-wins."""
    PERFORMANCE = "PERFORMANCE"
    QUALITY = "QUALITY"
    RELIABILITY = "RELIABILITY"
    RESOURCE = "RESOURCE"

    @property
    def higher_is_better(self) -> bool:
        return self == MetricCategory.QUALITY


class Winner(str, Enum):
    CHAMPION = "CHAMPION"
    CHALLENGE = "CHALLENGE"
    TIE = "TIE"


class ExecutionRunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutionMode(str, Enum):
    """
    LANGGRAPH - native flow graph engine
    BPMN - legacy external engine
    HYBRID - both engines, native result authoritative
    """
    LANGGRAPH = "langgraph"
    BPMN = "bpmn"
    HYBRID = "hybrid"


class MetricComparison(BaseModel):
    """One metric compared across both variants. Never mutated once built."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    execution_id: str
    metric_name: str
    metric_category: MetricCategory
    champion_value: float
    challenge_value: float
    difference: float
    difference_percentage: float
    winner: Winner
    unit: str


class VariantMetrics(BaseModel):
    champion: List[NodeMetric] = Field(default_factory=list)
    challenge: List[NodeMetric] = Field(default_factory=list)


class ChampionChallengeExecution(BaseModel):
    """Lifecycle record of one comparison run: running -> completed | failed"""
    id: str
    name: str
    description: Optional[str] = None
    champion_workflow_id: str
    challenge_workflow_id: str
    request_payload: Any = None
    status: ExecutionRunStatus = ExecutionRunStatus.RUNNING
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=_utcnow)
    metrics: VariantMetrics = Field(default_factory=VariantMetrics)

    def finish(self, champion: NormalizedExecutionResult, challenge: NormalizedExecutionResult) -> None:
        """Single running -> completed|failed transition"""
        if self.status != ExecutionRunStatus.RUNNING:
            raise ValueError(f"Execution {self.id} already finished with status {self.status.value}")
        self.status = (
            ExecutionRunStatus.FAILED
            if FlowStatus.FAILED in (champion.status, challenge.status)
            else ExecutionRunStatus.COMPLETED
        )
        self.completed_at = _utcnow()
        self.metrics = VariantMetrics(champion=champion.node_metrics, challenge=challenge.node_metrics)


class ComparisonSummary(BaseModel):
    execution_id: str
    comparisons: List[MetricComparison]
    champion_wins: int
    challenge_wins: int
    ties: int
    overall_winner: Winner


class FlowSelector(BaseModel):
    """Which engine runs a variant, and which flow it runs"""
    model_config = ConfigDict(populate_by_name=True)

    mode: ExecutionMode = ExecutionMode.LANGGRAPH
    bpmn_workflow_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("bpmn_workflow_id", "bpmnWorkflowId"),
    )
    langgraph_flow_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("langgraph_flow_id", "langgraphFlowId"),
    )
    langgraph_version: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("langgraph_version", "langgraphVersion"),
    )

    @model_validator(mode="after")
    def _check_ids(self) -> "FlowSelector":
        if self.mode == ExecutionMode.LANGGRAPH and not self.langgraph_flow_id:
            raise ValueError("langgraph mode requires langgraph_flow_id")
        if self.mode == ExecutionMode.BPMN and not self.bpmn_workflow_id:
            raise ValueError("bpmn mode requires bpmn_workflow_id")
        if self.mode == ExecutionMode.HYBRID and not (self.langgraph_flow_id or self.bpmn_workflow_id):
            raise ValueError("hybrid mode requires langgraph_flow_id or bpmn_workflow_id")
        return self

    @property
    def workflow_id(self) -> str:
        return self.langgraph_flow_id or self.bpmn_workflow_id


class ComparisonExecutionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    description: Optional[str] = None
    champion_flow: FlowSelector = Field(validation_alias=AliasChoices("champion_flow", "championFlow"))
    challenge_flow: FlowSelector = Field(validation_alias=AliasChoices("challenge_flow", "challengeFlow"))
    request_payload: Any = Field(
        default_factory=dict,
        validation_alias=AliasChoices("request_payload", "requestPayload"),
    )


class ComparisonExecutionResult(BaseModel):
    execution: ChampionChallengeExecution
    champion_result: NormalizedExecutionResult
    challenge_result: NormalizedExecutionResult
    comparisons: List[MetricComparison] = Field(default_factory=list)
    summary: Optional[ComparisonSummary] = None

    @property
    def overall_winner(self) -> Optional[Winner]:
        return self.summary.overall_winner if self.summary else None


class AnalyticsCard(BaseModel):
    metric_name: str
    unit: str
    champion_value: float
    challenge_value: float
    improvement_percentage: float
    winner: Winner


class NodeTimeRow(BaseModel):
    sequence: int
    champion_node: Optional[str] = None
    champion_time_ms: Optional[float] = None
    challenge_node: Optional[str] = None
    challenge_time_ms: Optional[float] = None


class AnalyticsReport(BaseModel):
    execution_id: str
    cards: List[AnalyticsCard]
    node_times: List[NodeTimeRow]
    cumulative_time_ms: Dict[str, List[float]]
    status_counts: Dict[str, Dict[str, int]]
    overall_winner: Winner
