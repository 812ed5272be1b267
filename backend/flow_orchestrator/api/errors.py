# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Exception -> HTTPException mapping shared by the routers.
"""

from fastapi import HTTPException

from flow_orchestrator.core.errors import OrchestratorError, sanitize_error_for_user
from flow_orchestrator.flow.exceptions import ComparisonModeError, FlowValidationError


def to_http_exception(error: Exception) -> HTTPException:
    """
    NotFoundError -> 404, validation and comparison-mode errors -> 400,
    anything else -> 500.
    """
    if isinstance(error, OrchestratorError):
        return HTTPException(status_code=error.status_code, detail=error.message)
    if isinstance(error, FlowValidationError):
        detail = error.message if not error.field else f"{error.field}: {error.message}"
        return HTTPException(status_code=400, detail=detail)
    if isinstance(error, ComparisonModeError):
        return HTTPException(status_code=400, detail=str(error))
    return HTTPException(status_code=500, detail=f"Execution failed: {sanitize_error_for_user(error)}")
