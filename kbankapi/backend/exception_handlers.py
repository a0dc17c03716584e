"""Exception handlers rendering failures in the gateway's two error shapes.

Error Response Format:
    {"error": "message"}                 operation failed at the bank
    {"errors": [{"type": "field", ...}]} request input rejected

Both are returned with HTTP 400.
"""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .errors import FieldValidationError, OperationFailed, field_error

logger = logging.getLogger("kbankapi.backend.errors")

_SCALAR_TYPES = (str, int, float, bool, type(None))


def _request_error_entry(error: dict) -> dict:
    loc = list(error.get("loc") or [])
    location = str(loc[0]) if loc else "body"
    path = ".".join(str(part) for part in loc[1:]) or location
    value: Any = error.get("input")
    if not isinstance(value, _SCALAR_TYPES):
        value = None
    return field_error(path, error.get("msg", "Invalid value"), value, location)


async def field_validation_handler(request: Request, exc: FieldValidationError) -> JSONResponse:
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"errors": exc.errors})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [_request_error_entry(error) for error in exc.errors()]
    logger.info("Rejected %s %s: %d invalid field(s)", request.method, request.url.path, len(errors))
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"errors": errors})


async def operation_failed_handler(request: Request, exc: OperationFailed) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": exc.message})


def setup_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FieldValidationError, field_validation_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(OperationFailed, operation_failed_handler)
