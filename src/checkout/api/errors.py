"""Exception handlers mapping checkout failures onto HTTP responses."""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from checkout.errors import CheckoutError, InsufficientStockError

logger = structlog.get_logger(__name__)


async def insufficient_stock_handler(request: Request, exc: InsufficientStockError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": exc.error, "details": exc.details})


async def checkout_error_handler(request: Request, exc: CheckoutError) -> JSONResponse:
    logger.error("Checkout request failed", path=request.url.path, error=exc.message)
    return JSONResponse(status_code=500, content={"error": exc.error, "details": exc.message})


def register_checkout_exception_handlers(app: FastAPI) -> None:
    """Protean's handlers (ValidationError → 400, ObjectNotFoundError → 404) plus ours."""
    register_exception_handlers(app)
    app.add_exception_handler(InsufficientStockError, insufficient_stock_handler)
    app.add_exception_handler(CheckoutError, checkout_error_handler)
