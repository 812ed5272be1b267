# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Comparison analytics for dashboards.
"""

from typing import Dict, List

from flow_orchestrator.flow.models import NodeMetric, NodeStatus, NormalizedExecutionResult
from .models import AnalyticsCard, AnalyticsReport, ComparisonSummary, NodeTimeRow


def improvement_percentage(comparison) -> float:
    """Positive when the challenge improves on the champion"""
    if comparison.champion_value == 0:
        return 0.0
    pct = comparison.difference_percentage
    return pct if comparison.metric_category.higher_is_better else -pct


def _executed(result: NormalizedExecutionResult) -> List[NodeMetric]:
    return [m for m in sorted(result.node_metrics, key=lambda m: m.sequence) if m.status != NodeStatus.SKIPPED]


def _cumulative(metrics: List[NodeMetric]) -> List[float]:
    running = 0.0
    series = []
    for metric in metrics:
        running += metric.execution_time_ms
        series.append(round(running, 3))
    return series


def _status_counts(result: NormalizedExecutionResult) -> Dict[str, int]:
    counts = {status.value: 0 for status in NodeStatus}
    for metric in result.node_metrics:
        counts[metric.status.value] += 1
    return counts


def build_analytics(
    summary: ComparisonSummary,
    champion: NormalizedExecutionResult,
    challenge: NormalizedExecutionResult,
) -> AnalyticsReport:
    """
    Summary cards, per-node time aligned by sequence, cumulative time and
    status counts for both variants.
    """
    cards = [
        AnalyticsCard(
            metric_name=c.metric_name,
            unit=c.unit,
            champion_value=c.champion_value,
            challenge_value=c.challenge_value,
            improvement_percentage=improvement_percentage(c),
            winner=c.winner,
        )
        for c in summary.comparisons
    ]

    champion_nodes = _executed(champion)
    challenge_nodes = _executed(challenge)

    node_times = []
    for index in range(max(len(champion_nodes), len(challenge_nodes))):
        row = NodeTimeRow(sequence=index + 1)
        if index < len(champion_nodes):
            row.champion_node = champion_nodes[index].node_name
            row.champion_time_ms = champion_nodes[index].execution_time_ms
        if index < len(challenge_nodes):
            row.challenge_node = challenge_nodes[index].node_name
            row.challenge_time_ms = challenge_nodes[index].execution_time_ms
        node_times.append(row)

    return AnalyticsReport(
        execution_id=summary.execution_id,
        cards=cards,
        node_times=node_times,
        cumulative_time_ms={
            "champion": _cumulative(champion_nodes),
            "challenge": _cumulative(challenge_nodes),
        },
        status_counts={
            "champion": _status_counts(champion),
            "challenge": _status_counts(challenge),
        },
        overall_winner=summary.overall_winner,
    )
