"""Terminal error handlers: every failure leaves the API as ``{"success": false, "error": ...}``."""
import logging
import re
from typing import List

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pymongo.errors import DuplicateKeyError, PyMongoError
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ErrorResponse(Exception):
    """An error with the HTTP status it should be answered with."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _envelope(status_code: int, message: str, headers=None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message}, headers=headers)


def first_error_message(errors: List[dict]) -> str:
    if not errors:
        return "Invalid request"
    err = errors[0]
    loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
    msg = err.get("msg", "Invalid value")
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return f"{'.'.join(loc)}: {msg}" if loc else msg


def duplicate_key_fields(exc: DuplicateKeyError) -> List[str]:
    details = exc.details or {}
    if details.get("keyValue"):
        return list(details["keyValue"].keys())
    # E11000 duplicate key error collection: db.user index: email_1 dup key: { email: "a@b.io" }
    message = str(exc)
    match = re.search(r"dup key: \{(.*)\}", message)
    if match:
        return re.findall(r"(\w+):", match.group(1))
    match = re.search(r"index: (\S+)", message)
    if match:
        return re.findall(r"([A-Za-z][\w.]*?)_-?1", match.group(1))
    return []


def duplicate_key_message(exc: DuplicateKeyError) -> str:
    fields = duplicate_key_fields(exc)
    if not fields:
        return "Duplicate field value entered"
    joined = ", ".join(fields)
    if len(fields) > 1:
        return f"Duplicate {joined} value entered; a record with those values ({joined}) already exists."
    return f"Duplicate {joined} value entered; a record with that {joined} value already exists."


async def error_response_handler(request: Request, exc: ErrorResponse):
    return _envelope(exc.status_code, exc.message)


async def http_exception_handler(request: Request, exc: HTTPException):
    return _envelope(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return _envelope(400, first_error_message(exc.errors()))


async def validation_error_handler(request: Request, exc: ValidationError):
    return _envelope(400, first_error_message(exc.errors()))


async def value_error_handler(request: Request, exc: ValueError):
    return _envelope(400, str(exc))


async def duplicate_key_handler(request: Request, exc: DuplicateKeyError):
    return _envelope(409, duplicate_key_message(exc))


async def database_error_handler(request: Request, exc: PyMongoError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return _envelope(500, "Database error")


async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _envelope(500, "Server Error")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ErrorResponse, error_response_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
    app.add_exception_handler(DuplicateKeyError, duplicate_key_handler)
    app.add_exception_handler(PyMongoError, database_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
