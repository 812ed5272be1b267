# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Field Mapper

Builds a downstream request object from an upstream JSON object using
FieldMapping rules, and renders ${path} templates. Pure functions only.
"""

import json
import re
from typing import Any, Dict, List, Optional

from flow_orchestrator.expressions import evaluate
from .exceptions import MappingResolutionError
from .models import FieldMapping, MappingType


_MISSING = object()
_TEMPLATE_REF = re.compile(r'\$\{([^}]+)\}')


def get_path(obj: Any, path: str, default: Any = None) -> Any:
    """Get nested value using dot notation; None intermediates yield default"""
    if not path:
        return obj
    current = obj
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return default
    return current


def set_path(target: Dict[str, Any], path: str, value: Any) -> None:
    """Set nested value using dot notation, creating intermediate dicts"""
    parts = path.split(".")
    current = target
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value


def resolve(mappings: Optional[List[FieldMapping]], source: Any) -> Dict[str, Any]:
    """
    Apply mappings to `source` and return the new target object.

    - direct: copy value at source_field (absent source path -> key omitted)
    - static: write static_value verbatim
    - transform: evaluate `transform` with the source bound as context;
      `value` is the value at source_field when one is given

    Inert mappings are ignored. Transform failures raise MappingResolutionError.
    """
    target: Dict[str, Any] = {}

    for mapping in mappings or []:
        if mapping.is_inert():
            continue

        if mapping.type == MappingType.STATIC:
            set_path(target, mapping.target_field, mapping.static_value)
            continue

        value = get_path(source, mapping.source_field, _MISSING) if mapping.source_field else _MISSING

        if mapping.type == MappingType.TRANSFORM and mapping.transform:
            value = _apply_transform(mapping, source, None if value is _MISSING else value)
        elif value is _MISSING:
            continue

        set_path(target, mapping.target_field, value)

    return target


def _apply_transform(mapping: FieldMapping, source: Any, value: Any) -> Any:
    context: Dict[str, Any] = dict(source) if isinstance(source, dict) else {}
    context["source"] = source
    context["value"] = value
    try:
        return evaluate(mapping.transform, context)
    except ValueError as e:
        raise MappingResolutionError(mapping.id, mapping.target_field, str(e)) from e


def render_template(value: Any, data: Any) -> Any:
    """
    Resolve ${path} references against `data`.

    A string that is exactly one reference keeps the referenced value's type;
    embedded references are replaced by their JSON (strings stay bare).
    Dicts and lists are rendered recursively.
    """
    if isinstance(value, dict):
        return {key: render_template(item, data) for key, item in value.items()}
    if isinstance(value, list):
        return [render_template(item, data) for item in value]
    if not isinstance(value, str):
        return value

    # Single reference: ${ref}
    if value.startswith("${") and value.endswith("}") and value.count("${") == 1:
        return get_path(data, value[2:-1].strip())

    # Embedded references: "text ${ref} more text"
    def replace_ref(match):
        resolved = get_path(data, match.group(1).strip())
        if isinstance(resolved, str):
            return resolved
        return json.dumps(resolved) if resolved is not None else "null"

    return _TEMPLATE_REF.sub(replace_ref, value)
