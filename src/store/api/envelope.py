"""The `{status, data, message}` response envelope and its exception handlers."""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError, ValidationError

from store.domain import logger
from store.errors import Forbidden, GatewayUnavailable


def ok(data=None, message: str = "OK") -> dict:
    return {"status": True, "data": data, "message": message}


def _first_message(messages: dict, default: str) -> str:
    for values in messages.values():
        if isinstance(values, list) and values:
            return str(values[0])
        if values:
            return str(values)
    return default


def failure(status_code: int, error_code: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "status": False,
            "data": {
                "code": status_code,
                "errorCode": error_code,
                "message": message,
                "details": details or {},
            },
            "message": message,
        },
    )


async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    status_code = getattr(exc, "status_code", 400)
    error_code = getattr(exc, "error_code", "VALIDATION_ERROR")
    message = _first_message(exc.messages, "Validation failed")
    logger.info("Request rejected", path=request.url.path, error_code=error_code, details=exc.messages)
    return failure(status_code, error_code, message, exc.messages)


async def _request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    details: dict[str, list[str]] = {}
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"] if part != "body")
        details.setdefault(field or "body", []).append(error["msg"])
    return failure(400, "VALIDATION_ERROR", _first_message(details, "Invalid request"), details)


async def _not_found(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return failure(404, "NOT_FOUND", "Resource not found", {"error": [str(exc)]})


async def _forbidden(request: Request, exc: Forbidden) -> JSONResponse:
    logger.warning("Request forbidden", path=request.url.path, error_code=exc.error_code)
    return failure(exc.status_code, exc.error_code, exc.message)


async def _gateway_unavailable(request: Request, exc: GatewayUnavailable) -> JSONResponse:
    return failure(exc.status_code, exc.error_code, exc.message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationError, _validation_error)
    app.add_exception_handler(RequestValidationError, _request_validation_error)
    app.add_exception_handler(ObjectNotFoundError, _not_found)
    app.add_exception_handler(Forbidden, _forbidden)
    app.add_exception_handler(GatewayUnavailable, _gateway_unavailable)
