"""Translate engine errors into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from bpmflow.services.execution_engine import (
    ActivityNotFound,
    ActivityNotTerminal,
    ConcurrentUpdate,
    EngineError,
    FormValidationFailed,
    NoActiveTransitions,
    NoStartActivity,
    ProcessNotActive,
    ProcessNotFound,
    TransitionNotActive,
    TransitionNotFound,
    WorkflowNotFound,
)
from bpmflow.services.scheduler_service import InvalidSchedule, ScheduleNotFound

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[EngineError], int] = {
    WorkflowNotFound: 404,
    ProcessNotFound: 404,
    TransitionNotFound: 404,
    ActivityNotFound: 404,
    ScheduleNotFound: 404,
    ProcessNotActive: 409,
    ConcurrentUpdate: 409,
    TransitionNotActive: 409,
    ActivityNotTerminal: 409,
    NoStartActivity: 400,
    NoActiveTransitions: 400,
    InvalidSchedule: 400,
    FormValidationFailed: 422,
}


def status_for(exc: EngineError) -> int:
    for cls in type(exc).__mro__:
        if cls in STATUS_CODES:
            return STATUS_CODES[cls]
    return 400


async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
    status = status_for(exc)
    logger.info("%s %s -> %d: %s", request.method, request.url.path, status, exc.message)
    body: dict = {"detail": exc.message}
    if isinstance(exc, FormValidationFailed):
        body["errors"] = exc.errors
    return JSONResponse(status_code=status, content=body)
