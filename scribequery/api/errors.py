from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from scribequery.errors import BackendUnavailable, ProviderDisabled, ScribeQueryError, StreamAbort, ValidationError

logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ValidationError.kind: 400,
    ProviderDisabled.kind: 503,
    BackendUnavailable.kind: 502,
    StreamAbort.kind: 502,
}


def error_body(exc: BaseException) -> dict:
    kind = getattr(exc, "kind", "InternalError")
    message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
    return {"error": message, "kind": kind}


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ScribeQueryError)
    async def handle_scribequery_error(request: Request, exc: ScribeQueryError):
        status = STATUS_BY_KIND.get(exc.kind, 500)
        if status >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status, content=error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={
                "error": "Invalid request body",
                "kind": ValidationError.kind,
                "detail": jsonable_encoder(exc.errors()),
            },
        )
