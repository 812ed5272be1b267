# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Flow Store - Resolve flow definitions by id and version.
Definitions are registered in memory or loaded from JSON / YAML files.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import ValidationError as PydanticValidationError

from flow_orchestrator.core.errors import NotFoundError, ValidationError
from flow_orchestrator.core.logging import get_service_logger
from flow_orchestrator.flow.models import FlowDefinition

logger = get_service_logger("flow_store")

FLOW_FILE_SUFFIXES = (".json", ".yaml", ".yml")


class FlowStore:
    """
    In-memory flow definitions keyed by (flow_id, version).

    The most recently registered version of a flow is its latest.
    """

    def __init__(self):
        self._flows: Dict[Tuple[str, Optional[str]], FlowDefinition] = {}
        self._latest: Dict[str, FlowDefinition] = {}

    def register(self, flow: Any) -> FlowDefinition:
        """Register a FlowDefinition or a raw definition dict"""
        if not isinstance(flow, FlowDefinition):
            try:
                flow = FlowDefinition.model_validate(flow)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid flow definition: {e.errors()[0]['msg']}", field="flow") from e

        self._flows[(flow.id, flow.version)] = flow
        self._latest[flow.id] = flow
        return flow

    def get(self, flow_id: str, version: Optional[str] = None) -> FlowDefinition:
        """
        Get a flow; latest registered version when `version` is None.

        Raises NotFoundError for unknown flow ids or versions.
        """
        if version is None:
            flow = self._latest.get(flow_id)
        else:
            flow = self._flows.get((flow_id, version))

        if flow is None:
            identifier = flow_id if version is None else f"{flow_id}@{version}"
            raise NotFoundError("Flow", identifier)
        return flow

    def list(self) -> List[FlowDefinition]:
        return list(self._latest.values())

    def __contains__(self, flow_id: str) -> bool:
        return flow_id in self._latest

    def load_file(self, path: Path) -> FlowDefinition:
        with open(path, "r") as f:
            if path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
        return self.register(data)

    def load_directory(self, directory: str) -> int:
        """
        Load every *.json / *.yaml flow in `directory`.

        Invalid files are logged and skipped. Returns number loaded.
        """
        base = Path(directory)
        if not base.is_dir():
            logger.info(f"Flows directory not found, skipping: {base}")
            return 0

        loaded = 0
        for path in sorted(base.iterdir()):
            if path.suffix not in FLOW_FILE_SUFFIXES:
                continue
            try:
                flow = self.load_file(path)
                loaded += 1
                logger.debug(f"Loaded flow '{flow.id}' from {path.name}")
            except (OSError, ValueError, yaml.YAMLError, ValidationError) as e:
                logger.warning(f"Skipping invalid flow file {path.name}: {e}")

        logger.info(f"Loaded {loaded} flow(s) from {base}")
        return loaded
