"""Uniform JSON envelope shared by every endpoint.

Success::

    {"status": "success", "data": ...}

Error::

    {"status": "error", "code": "<machine token>", "message": "..." | ["...", ...]}
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Sequence, Union

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

Message = Union[str, List[str]]


class APIError(Exception):
    """An error rendered as the error envelope."""

    def __init__(self, code: str, message: Message, status_code: int = status.HTTP_400_BAD_REQUEST) -> None:
        super().__init__(code)
        self.code = code
        self.message = message
        self.status_code = status_code

    def __repr__(self) -> str:
        return f"APIError(code={self.code!r}, status_code={self.status_code})"


def success(data: Any = None, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "success", "data": jsonable_encoder(data)},
    )


def error(code: str, message: Message, status_code: int) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "code": code, "message": message},
    )


def database_error() -> APIError:
    return APIError("database_error", "Database read/write error", status.HTTP_500_INTERNAL_SERVER_ERROR)


def _field_name(loc: Sequence[Union[str, int]]) -> str:
    # Drop the request part ("body", "query") and render list indexes inline
    parts = [str(p) for p in loc[1:]] if len(loc) > 1 else [str(p) for p in loc]
    name = ""
    for part in parts:
        if part.isdigit():
            name += f"[{part}]"
        else:
            name = f"{name}.{part}" if name else part
    return name


def describe_validation_errors(errors: Iterable[dict]) -> List[str]:
    """Flatten pydantic errors into one human readable line per failing field."""

    messages: List[str] = []
    for err in errors:
        loc = tuple(err.get("loc") or ())
        field = _field_name(loc)
        if err.get("type") == "missing":
            if loc == ("body",):
                line = "Missing request body"
            else:
                line = f"Missing {field} field"
        else:
            reason = str(err.get("msg", "invalid value"))
            # pydantic prefixes messages raised from validators
            reason = reason.removeprefix("Value error, ")
            line = f"{field}: {reason}"
        if line not in messages:
            messages.append(line)
    return messages


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    return error(exc.code, exc.message, exc.status_code)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = describe_validation_errors(exc.errors())
    logger.info("Rejected %s %s: %s", request.method, request.url.path, "; ".join(messages))
    return error("invalid_parameters", messages, status.HTTP_400_BAD_REQUEST)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    failure = database_error()
    return error(failure.code, failure.message, failure.status_code)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
