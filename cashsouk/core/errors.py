"""Exception handlers rendering every failure as ``{code, message, data: null, details}``.

Routers raise ``HTTPException`` with ``detail={"code", "message", "details"}``
(see ``deps.service_error``); plain string details get a status-derived code.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from cashsouk.core.context import get_request_id

logger = logging.getLogger(__name__)

STATUS_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
    413: "payload_too_large",
    422: "validation_error",
    429: "rate_limited",
}


def _phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Request failed"


def _as_details(value: Any) -> dict:
    if value is None:
        return {}
    if isinstance(value, dict):
        return value
    if isinstance(value, list):
        return {"errors": value}
    return {"detail": str(value)}


def error_response(status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    body = {"code": code, "message": message, "data": None, "details": _as_details(details)}
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def _unpack_detail(detail: Any, status_code: int) -> tuple[str, str, dict]:
    code = STATUS_CODES.get(status_code, "http_error")
    if isinstance(detail, dict):
        message = detail.get("message") or detail.get("detail") or _phrase(status_code)
        if "details" in detail:
            extra = _as_details(detail["details"])
        else:
            extra = {key: value for key, value in detail.items() if key not in {"code", "message", "detail"}}
        return detail.get("code") or code, message, extra
    if isinstance(detail, str) and detail:
        return code, detail, {}
    return code, _phrase(status_code), _as_details(detail)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code, message, details = _unpack_detail(exc.detail, exc.status_code)
    response = error_response(exc.status_code, code, message, details)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = "Validation failed"
    if errors:
        first = errors[0]
        # Drop the body/query/path prefix so the field reads like the form field it came from.
        field = ".".join(str(part) for part in first.get("loc", ()) if part not in {"body", "query", "path"})
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg") or message)
    return error_response(422, "validation_error", message, {"errors": errors})


async def stale_data_exception_handler(request: Request, exc: StaleDataError) -> JSONResponse:
    # Two saves raced on a versioned row (application, product or contract).
    logger.warning(
        "stale write rejected",
        extra={"fields": {"method": request.method, "path": request.url.path}},
    )
    return error_response(
        409, "version_conflict", "This application was changed elsewhere. Reload it and try again."
    )


async def integrity_exception_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    constraint = getattr(getattr(exc.orig, "diag", None), "constraint_name", None)
    logger.warning(
        "integrity conflict",
        extra={"fields": {"path": request.url.path, "constraint": constraint}},
    )
    return error_response(
        409,
        "conflict",
        "The change conflicts with an existing record",
        {"constraint": constraint} if constraint else None,
    )


async def rate_limit_exception_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return error_response(429, "rate_limited", f"Rate limit exceeded: {exc.detail}")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled error",
        extra={"fields": {"method": request.method, "path": request.url.path}},
    )
    return error_response(500, "internal_server_error", "Internal server error", {"request_id": get_request_id()})


def register_exception_handlers(app) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StaleDataError, stale_data_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
