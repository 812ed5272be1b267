# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Core utilities and shared modules for the flow orchestrator.

This package contains:
- config: Configuration management
- errors: Custom exceptions
- logging: Structured logging
"""

from flow_orchestrator.core.config import get_config, Config
from flow_orchestrator.core.errors import OrchestratorError, NotFoundError, ValidationError
from flow_orchestrator.core.logging import get_logger

__all__ = [
    "get_config",
    "Config",
    "OrchestratorError",
    "NotFoundError",
    "ValidationError",
    "get_logger",
]
