import logging

from fastapi import HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

logger = logging.getLogger(__name__)

_STATUS_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    409: "conflict",
}


def _error_payload(code: str, message: str, details):
    return {"code": code, "message": message, "details": details}


def _http_error_payload(exc: HTTPException) -> dict:
    code = _STATUS_CODES.get(exc.status_code, f"http_{exc.status_code}")
    if isinstance(exc.detail, str):
        return _error_payload(code, exc.detail, None)
    if isinstance(exc.detail, dict):
        return _error_payload(
            exc.detail.get("code", code),
            exc.detail.get("message", "Request failed"),
            exc.detail.get("details"),
        )
    return _error_payload(code, "Request failed", exc.detail)


def register_error_handlers(app) -> None:
    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return JSONResponse(
            status_code=exc.status_code, content=_http_error_payload(exc)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        return JSONResponse(
            status_code=422,
            content=_error_payload(
                "validation_error",
                "Invalid request",
                jsonable_encoder(exc.errors()),
            ),
        )

    @app.exception_handler(IntegrityError)
    async def integrity_exception_handler(request: Request, exc: IntegrityError):
        logger.warning("Integrity error on %s: %s", request.url.path, exc.orig)
        return JSONResponse(
            status_code=409,
            content=_error_payload(
                "conflict", "Messaging permission changed concurrently, retry", None
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content=_error_payload("internal_error", "Internal server error", None),
        )
