# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
FastAPI dependencies for the orchestrator API.
"""

from fastapi import HTTPException, Request, status


def get_orchestrator(request: Request):
    """Get the ExecutionOrchestrator stored in app.state by create_app."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Execution orchestrator not initialized"
        )
    return orchestrator
