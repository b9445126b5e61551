"""
Exception handlers - turn service errors into JSON responses.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..core.errors import (
    InvalidStreamStateError, ResourceAccessError, UnauthenticatedError, WorkdeskError
)

logger = logging.getLogger(__name__)


async def workdesk_error_handler(request: Request, exc: WorkdeskError) -> JSONResponse:
    """Answer with the error's status and public message."""
    if isinstance(exc, ResourceAccessError):
        # Real reason stays in the log only
        logger.info(f"{request.method} {request.url.path} denied: {exc.message}")
    elif isinstance(exc, InvalidStreamStateError):
        logger.warning(f"{request.method} {request.url.path}: {exc.message}")
    elif exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")

    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthenticatedError) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WorkdeskError, workdesk_error_handler)
