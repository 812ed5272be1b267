# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for FlowStore
"""

import json
from pathlib import Path

import pytest
import yaml

from flow_orchestrator.core.errors import NotFoundError, ValidationError
from flow_orchestrator.flow_store import FlowStore
from tests.helpers import llm_node

FLOWS_DIR = Path(__file__).resolve().parents[2] / "flows"


def definition(flow_id: str, version: str = None) -> dict:
    data = {"id": flow_id, "name": flow_id.title(), "nodes": [llm_node("a")], "edges": []}
    if version:
        data["version"] = version
    return data


def test_latest_version_wins():
    store = FlowStore()
    store.register(definition("pricing", "1"))
    store.register(definition("pricing", "2"))

    assert store.get("pricing").version == "2"
    assert store.get("pricing", "1").version == "1"
    assert "pricing" in store
    assert len(store.list()) == 1


def test_unknown_flow_and_version():
    store = FlowStore()
    store.register(definition("pricing", "1"))

    with pytest.raises(NotFoundError, match="missing"):
        store.get("missing")
    with pytest.raises(NotFoundError) as exc_info:
        store.get("pricing", "9")
    assert exc_info.value.identifier == "pricing@9"
    assert exc_info.value.to_dict() == {
        "error": "NotFoundError",
        "message": "Flow not found: pricing@9",
        "status_code": 404,
        "details": {},
    }


def test_invalid_definition_rejected():
    with pytest.raises(ValidationError):
        FlowStore().register({"id": "x", "nodes": []})


def test_load_directory_skips_bad_files(tmp_path):
    (tmp_path / "one.json").write_text(json.dumps(definition("one")))
    (tmp_path / "two.yaml").write_text(yaml.safe_dump(definition("two")))
    (tmp_path / "broken.yaml").write_text("id: [unterminated")
    (tmp_path / "invalid.json").write_text(json.dumps({"id": "no-nodes"}))
    (tmp_path / "notes.txt").write_text("ignored")

    store = FlowStore()

    assert store.load_directory(str(tmp_path)) == 2
    assert "one" in store and "two" in store


def test_load_missing_directory(tmp_path):
    assert FlowStore().load_directory(str(tmp_path / "nope")) == 0


def test_bundled_sample_flow_loads():
    store = FlowStore()
    store.load_directory(str(FLOWS_DIR))
    flow = store.get("loan_approval")
    assert flow.get_node("check_ratio").type.value == "conditional"
    assert flow.get_node("normalize").config.transform_script
    assert flow.config.max_concurrency == 4
