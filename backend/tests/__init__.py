# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test Suite for the Flow Orchestrator

Structure:
- test_walker / test_node_executor: native engine
- test_orchestrator / test_api: comparison flow and HTTP routes
"""
