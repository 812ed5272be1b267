# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Champion vs Challenge comparison.
"""

from .analytics import build_analytics
from .engine import ComparisonEngine
from .models import ExecutionMode, FlowSelector, MetricCategory, MetricComparison, Winner

__all__ = [
    "build_analytics",
    "ComparisonEngine",
    "ExecutionMode",
    "FlowSelector",
    "MetricCategory",
    "MetricComparison",
    "Winner",
]
