import logging
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from marketchat.config.settings import Config
from marketchat.utils.errors import MarketchatError


logger = logging.getLogger(__name__)


def error_body(message: str, details: str | None = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {"status": "error", "message": message}
    # internal error text never leaves a production build
    if details and not Config.IS_PRODUCTION:
        body["details"] = details
    return body


async def marketchat_error_handler(request: Request, exc: MarketchatError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=error_body("Internal storage error", exc.message))
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(p) for p in err.get("loc", ())[1:]) for err in exc.errors()]
    fields = [f for f in fields if f]
    message = "Invalid request"
    if fields:
        message = f"Invalid or missing fields: {', '.join(fields)}"
    return JSONResponse(status_code=400, content=error_body(message))


async def storage_error_handler(request: Request, exc: PyMongoError) -> JSONResponse:
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body("Internal storage error", str(exc)))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=error_body("Internal server error", str(exc)))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketchatError, marketchat_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(PyMongoError, storage_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
