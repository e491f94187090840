# order_service/api/errors.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from order_service.domain.errors import (
    ErrorKind,
    InvalidStatusTransition,
    OrderServiceError,
    Unauthorized,
    ValidationFailed,
)
from order_service.utils.logging import get_logger

logger = get_logger(__name__)

_STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.AUTHORIZATION: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.PAYMENT_DECLINED: 402,
    ErrorKind.UPSTREAM: 503,
    ErrorKind.INTERNAL: 500,
}


def status_for(exc: OrderServiceError) -> int:
    if isinstance(exc, Unauthorized):
        return 401
    if isinstance(exc, InvalidStatusTransition):
        return 422
    return _STATUS_BY_KIND[exc.kind]


def _body(exc: OrderServiceError) -> dict:
    return {"detail": jsonable_encoder(exc.to_dict())}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(OrderServiceError)
    async def handle_service_error(request: Request, exc: OrderServiceError):
        status = status_for(exc)
        if status >= 500:
            logger.warning(f"{request.method} {request.url.path} -> {status} {exc.code}: {exc.message}")
        return JSONResponse(status_code=status, content=_body(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
        return JSONResponse(
            status_code=400,
            content=_body(ValidationFailed("Invalid request", details={"errors": errors})),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content=_body(OrderServiceError("Internal server error")))
