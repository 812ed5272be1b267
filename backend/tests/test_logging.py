# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for structured logging
"""

import json
import logging

from flow_orchestrator.core.logging import JSONFormatter, get_logger, log_event


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("flow_orchestrator.test", logging.INFO, __file__, 1, "Node completed", None, None)
    record.node_id = "score"
    record.duration_ms = 12.5

    data = json.loads(JSONFormatter().format(record))

    assert data["message"] == "Node completed"
    assert data["level"] == "INFO"
    assert data["node_id"] == "score"
    assert data["duration_ms"] == 12.5


def test_log_event_passes_fields_as_extra(caplog):
    logger = get_logger("flow_orchestrator.test_events", log_format="text")
    logger.propagate = True

    with caplog.at_level(logging.WARNING, logger="flow_orchestrator.test_events"):
        log_event(logger, "Node failed", level="WARNING", node_id="score", error_code="TIMEOUT")

    record = caplog.records[-1]
    assert record.getMessage() == "Node failed"
    assert record.node_id == "score"
    assert record.error_code == "TIMEOUT"
