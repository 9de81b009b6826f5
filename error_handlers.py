"""Global exception handlers.

- ChatError -> its own status and {"error": {code, message}} envelope
- RequestValidationError -> 400 with field-level details
- Exception (catch-all) -> 500, never leaks internal details
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from exceptions import ChatError
from logging_config import get_logger

logger = get_logger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    _register_chat_error_handler(app)
    _register_validation_error_handler(app)
    _register_generic_error_handler(app)


def _register_chat_error_handler(app: FastAPI) -> None:

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        log = logger.error if exc.http_status >= 500 else logger.info
        log(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())


def _register_validation_error_handler(app: FastAPI) -> None:

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error on {request.url.path}: {len(exc.errors())} errors")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_build_validation_error_response(exc),
        )


def _register_generic_error_handler(app: FastAPI) -> None:

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                }
            },
        )


def _build_validation_error_response(exc: RequestValidationError) -> dict:
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "details": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        }
    }
