"""Map engine errors and unexpected faults to HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ridehail.domain.errors import ErrorKind, RideError

logger = logging.getLogger(__name__)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_TRANSITION: 400,
    ErrorKind.CONFLICT: 400,
    ErrorKind.DATA_INTEGRITY: 500,
}

GENERIC_FAILURE = "Internal server error"


async def ride_error_handler(request: Request, exc: RideError) -> JSONResponse:
    status_code = STATUS_BY_KIND[exc.kind]
    if status_code >= 500:
        logger.error("Invariant violated on %s: %s", request.url.path, exc.message)
        return JSONResponse(
            status_code=status_code,
            content={"detail": GENERIC_FAILURE, "kind": exc.kind.value},
        )
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message, "kind": exc.kind.value},
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "detail": "Invalid request",
            "kind": ErrorKind.VALIDATION.value,
            "errors": [
                {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
                for err in exc.errors()
            ],
        },
    )


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": GENERIC_FAILURE})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RideError, ride_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
