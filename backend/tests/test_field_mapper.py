# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for field mappings and ${path} templates
"""

import pytest

from flow_orchestrator.flow import field_mapper
from flow_orchestrator.flow.exceptions import MappingResolutionError
from flow_orchestrator.flow.models import FieldMapping, FlowNode


SOURCE = {"customer": {"id": "c-1", "name": "Ada"}, "amount": 12.5, "items": [1, 2]}


def mapping(**kwargs) -> FieldMapping:
    return FieldMapping.model_validate(kwargs)


def test_direct_mapping_copies_nested_value():
    result = field_mapper.resolve([mapping(sourceField="customer.id", targetField="body.customerId")], SOURCE)
    assert result == {"body": {"customerId": "c-1"}}


def test_missing_source_path_omits_key():
    result = field_mapper.resolve([mapping(sourceField="customer.address.city", targetField="city")], SOURCE)
    assert result == {}


def test_null_intermediate_is_not_an_error():
    result = field_mapper.resolve([mapping(sourceField="a.b.c", targetField="x")], {"a": None})
    assert "x" not in result


def test_static_mapping_ignores_source():
    result = field_mapper.resolve(
        [mapping(targetField="headers.X-Channel", type="static", staticValue="web")],
        None,
    )
    assert result == {"headers": {"X-Channel": "web"}}


def test_static_mapping_keeps_explicit_none():
    result = field_mapper.resolve([mapping(targetField="flag", type="static", staticValue=None)], SOURCE)
    assert result == {"flag": None}


def test_transform_mapping_binds_value_and_source():
    result = field_mapper.resolve(
        [
            mapping(sourceField="amount", targetField="cents", type="transform", transform="value * 100"),
            mapping(targetField="count", type="transform", transform="len(items)"),
        ],
        SOURCE,
    )
    assert result == {"cents": 1250.0, "count": 2}


def test_inert_mappings_are_ignored():
    result = field_mapper.resolve(
        [
            mapping(targetField="a"),                       # no source
            mapping(sourceField="amount", targetField=""),  # no target
            mapping(targetField="b", type="static"),        # no static value
        ],
        SOURCE,
    )
    assert result == {}


def test_transform_failure_raises_mapping_error():
    with pytest.raises(MappingResolutionError) as exc_info:
        field_mapper.resolve(
            [mapping(id="m1", sourceField="amount", targetField="x", type="transform", transform="value +")],
            SOURCE,
        )
    assert exc_info.value.mapping_id == "m1"
    assert exc_info.value.target_field == "x"


def test_dict_shorthand_becomes_direct_mappings():
    node = FlowNode.model_validate({
        "id": "n1",
        "type": "function",
        "config": {"function_name": "identity"},
        "inputMapping": {"who": "customer.name"},
    })
    assert field_mapper.resolve(node.input_mapping, SOURCE) == {"who": "Ada"}


def test_render_template_single_reference_keeps_type():
    assert field_mapper.render_template("${items}", SOURCE) == [1, 2]
    assert field_mapper.render_template("${amount}", SOURCE) == 12.5


def test_render_template_embedded_references():
    rendered = field_mapper.render_template("Hello ${customer.name}, items=${items}, x=${missing}", SOURCE)
    assert rendered == "Hello Ada, items=[1, 2], x=null"


def test_render_template_recurses_into_containers():
    rendered = field_mapper.render_template({"id": "${customer.id}", "list": ["${amount}"]}, SOURCE)
    assert rendered == {"id": "c-1", "list": [12.5]}
