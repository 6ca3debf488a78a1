"""HTTP mapping for logistics errors."""

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import ObjectNotFoundError
from protean.integrations.fastapi import register_exception_handlers

from logistics.errors import (
    CourierUnavailable,
    NoFulfillableItems,
    NoZoneConfigured,
    RefundFailed,
    ReturnForbidden,
    ReturnWindowExceeded,
)

_STATUS_CODES = {
    ReturnForbidden: 403,
    ReturnWindowExceeded: 400,
    NoFulfillableItems: 422,
    NoZoneConfigured: 422,
    CourierUnavailable: 502,
    RefundFailed: 502,
}


def _handler(status_code: int):
    async def handle(_request: Request, exc) -> JSONResponse:
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": exc.message, **exc.context},
        )

    return handle


async def _not_found(_request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": "NotFound", "detail": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    """Install protean's handlers plus the logistics-specific status codes."""
    register_exception_handlers(app)
    app.add_exception_handler(ObjectNotFoundError, _not_found)
    for exc_class, status_code in _STATUS_CODES.items():
        app.add_exception_handler(exc_class, _handler(status_code))
