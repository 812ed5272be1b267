# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Comparison Engine

Computes per-metric winners between two completed executions.
Pure functions over NormalizedExecutionResult; inputs are never mutated.
"""

from typing import List, Optional

from flow_orchestrator.flow.models import NormalizedExecutionResult
from .models import ComparisonSummary, MetricCategory, MetricComparison, Winner

TOTAL_EXECUTION_TIME = "Total Execution Time"
AVERAGE_NODE_TIME = "Average Node Time"
SUCCESS_RATE = "Success Rate"
ERROR_COUNT = "Error Count"
AVERAGE_MEMORY_USAGE = "Average Memory Usage"
AVERAGE_CPU_USAGE = "Average CPU Usage"


def difference_percentage(champion_value: float, challenge_value: float) -> float:
    """(challenge - champion) / champion * 100; 0 when champion is 0"""
    if champion_value == 0:
        return 0.0
    return (challenge_value - champion_value) / champion_value * 100


def pick_winner(category: MetricCategory, champion_value: float, challenge_value: float) -> Winner:
    """QUALITY: higher wins. Everything else: lower wins. Exact equality ties."""
    if champion_value == challenge_value:
        return Winner.TIE
    champion_better = champion_value > challenge_value
    if not category.higher_is_better:
        champion_better = not champion_better
    return Winner.CHAMPION if champion_better else Winner.CHALLENGE


def success_rate(result: NormalizedExecutionResult) -> float:
    if not result.node_metrics:
        return 0.0
    return result.success_count / len(result.node_metrics) * 100


def average_node_time(result: NormalizedExecutionResult) -> float:
    return result.total_time_ms / max(len(result.node_metrics), 1)


def _average_metadata(result: NormalizedExecutionResult, key: str) -> Optional[float]:
    values = [
        float(m.metadata[key]) for m in result.node_metrics
        if isinstance(m.metadata.get(key), (int, float))
    ]
    if not values:
        return None
    return sum(values) / len(values)


class ComparisonEngine:
    """Champion vs Challenge metric comparison"""

    def build(
        self,
        execution_id: str,
        metric_name: str,
        category: MetricCategory,
        champion_value: float,
        challenge_value: float,
        unit: str,
    ) -> MetricComparison:
        champion_value = float(champion_value)
        challenge_value = float(challenge_value)
        return MetricComparison(
            execution_id=execution_id,
            metric_name=metric_name,
            metric_category=category,
            champion_value=champion_value,
            challenge_value=challenge_value,
            difference=challenge_value - champion_value,
            difference_percentage=difference_percentage(champion_value, challenge_value),
            winner=pick_winner(category, champion_value, challenge_value),
            unit=unit,
        )

    def compare(
        self,
        champion: NormalizedExecutionResult,
        challenge: NormalizedExecutionResult,
        execution_id: str,
    ) -> List[MetricComparison]:
        """
        Always: total time, average node time, success rate, error count.
        Memory / CPU only when either side reports that node metadata.
        """
        comparisons = [
            self.build(execution_id, TOTAL_EXECUTION_TIME, MetricCategory.PERFORMANCE,
                       champion.total_time_ms, challenge.total_time_ms, "ms"),
            self.build(execution_id, AVERAGE_NODE_TIME, MetricCategory.PERFORMANCE,
                       average_node_time(champion), average_node_time(challenge), "ms"),
            self.build(execution_id, SUCCESS_RATE, MetricCategory.QUALITY,
                       success_rate(champion), success_rate(challenge), "%"),
            self.build(execution_id, ERROR_COUNT, MetricCategory.RELIABILITY,
                       champion.error_count, challenge.error_count, "count"),
        ]

        for metric_name, key, unit in (
            (AVERAGE_MEMORY_USAGE, "memory_used", "MB"),
            (AVERAGE_CPU_USAGE, "cpu_usage", "%"),
        ):
            champion_value = _average_metadata(champion, key)
            challenge_value = _average_metadata(challenge, key)
            if champion_value is None and challenge_value is None:
                continue
            comparisons.append(self.build(
                execution_id, metric_name, MetricCategory.RESOURCE,
                champion_value or 0.0, challenge_value or 0.0, unit,
            ))

        return comparisons

    def overall_winner(self, comparisons: List[MetricComparison]) -> Winner:
        """Majority of metric wins; a draw falls back to total execution time"""
        champion_wins = sum(1 for c in comparisons if c.winner == Winner.CHAMPION)
        challenge_wins = sum(1 for c in comparisons if c.winner == Winner.CHALLENGE)

        if champion_wins > challenge_wins:
            return Winner.CHAMPION
        if challenge_wins > champion_wins:
            return Winner.CHALLENGE

        total_time = next((c for c in comparisons if c.metric_name == TOTAL_EXECUTION_TIME), None)
        return total_time.winner if total_time else Winner.TIE

    def summarize(self, execution_id: str, comparisons: List[MetricComparison]) -> ComparisonSummary:
        return ComparisonSummary(
            execution_id=execution_id,
            comparisons=comparisons,
            champion_wins=sum(1 for c in comparisons if c.winner == Winner.CHAMPION),
            challenge_wins=sum(1 for c in comparisons if c.winner == Winner.CHALLENGE),
            ties=sum(1 for c in comparisons if c.winner == Winner.TIE),
            overall_winner=self.overall_winner(comparisons),
        )
