from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response


def _success_code(status_code: int) -> str:
    return {200: "ok", 201: "created", 202: "accepted"}.get(status_code, "ok")


def _success_message(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Success"


def build_success_envelope(data: Any, status_code: int = 200) -> dict[str, Any]:
    return {
        "code": _success_code(status_code),
        "message": _success_message(status_code),
        "data": data,
        "details": {},
    }


def _is_enveloped(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    return "code" in payload and "message" in payload and ("data" in payload or "details" in payload)


def _copy_headers(source: Response, target: Response) -> Response:
    for key, value in source.headers.items():
        if key.lower() in {"content-length", "content-type"}:
            continue
        target.headers[key] = value
    return target


class ResponseEnvelopeMiddleware(BaseHTTPMiddleware):
    """Wrap 2xx JSON bodies in the ``{code, message, data, details}`` envelope."""

    async def dispatch(self, request, call_next) -> Response:
        response = await call_next(request)

        if response.status_code < 200 or response.status_code >= 300:
            return response

        # Convert 204 to a 200 success envelope for client consistency
        if response.status_code == 204:
            return _copy_headers(
                response, JSONResponse(status_code=200, content=build_success_envelope(None, 200))
            )

        if response.headers.get("content-type", "").split(";")[0] != "application/json":
            return response

        body = b""
        async for chunk in response.body_iterator:
            body += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
        try:
            payload = json.loads(body.decode("utf-8")) if body else None
        except ValueError:
            return _copy_headers(
                response,
                Response(content=body, status_code=response.status_code, media_type="application/json"),
            )

        if _is_enveloped(payload):
            normalized = dict(payload)
            normalized.setdefault("data", None)
            normalized.setdefault("details", {})
        else:
            normalized = build_success_envelope(payload, response.status_code)
        return _copy_headers(response, JSONResponse(status_code=response.status_code, content=normalized))


def register_response_envelope(app) -> None:
    app.add_middleware(ResponseEnvelopeMiddleware)
