# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Service-layer exceptions for the flow orchestrator.

Each OrchestratorError carries the HTTP status the API answers with.
Engine-internal failures (node errors, graph validation) live in
flow_orchestrator.flow.exceptions.
"""

from typing import Optional

MAX_USER_ERROR_LENGTH = 500


class OrchestratorError(Exception):
    """Base exception for all orchestrator errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[dict] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """API error body."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "status_code": self.status_code,
            "details": self.details
        }


class NotFoundError(OrchestratorError):
    """
    A flow (or flow version) is not registered.

    Args:
        resource: Kind of resource, e.g. "Flow"
        identifier: Id that was looked up, `flow_id@version` for versions
    """

    def __init__(self, resource: str, identifier: str, details: Optional[dict] = None):
        super().__init__(f"{resource} not found: {identifier}", status_code=404, details=details)
        self.resource = resource
        self.identifier = identifier


class ValidationError(OrchestratorError):
    """A flow definition could not be parsed."""

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, status_code=400, details=details)
        self.field = field


class ConfigurationError(OrchestratorError):
    """The YAML configuration could not be loaded."""

    def __init__(self, message: str, config_file: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message, status_code=500, details=details)
        self.config_file = config_file


def sanitize_error_for_user(error: Exception, include_type: bool = True) -> str:
    """
    One-line, length-capped error text for API responses and result metadata.

    >>> sanitize_error_for_user(ValueError("bad input"))
    'ValueError: bad input'
    """
    error_msg = " ".join(str(error).split())

    if len(error_msg) > MAX_USER_ERROR_LENGTH:
        error_msg = error_msg[:MAX_USER_ERROR_LENGTH] + "..."

    if include_type:
        return f"{error.__class__.__name__}: {error_msg}"
    return error_msg
