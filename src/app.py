"""Checkout service FastAPI application.

Processes checkout, order administration, stock and job-queue requests
synchronously over HTTP inside the checkout domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay.
from checkout.domain import checkout
from checkout.utils.logging import configure_logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

configure_logging()
checkout.init()

_DOMAIN_PREFIXES = ("/checkout", "/orders", "/stock", "/jobs")


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Checkout API",
    description="Checkout-to-fulfillment pipeline: stock, orders, couriers and notification jobs",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def domain_context_middleware(request: Request, call_next):
    """Push the checkout domain context for domain routes."""
    if request.url.path.startswith(_DOMAIN_PREFIXES):
        with checkout.domain_context():
            response = await call_next(request)
        return response
    # Health check, docs, etc.
    return await call_next(request)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
from checkout.api import (  # noqa: E402
    checkout_router,
    jobs_router,
    order_router,
    register_checkout_exception_handlers,
    stock_router,
)

app.include_router(checkout_router)
app.include_router(order_router)
app.include_router(stock_router)
app.include_router(jobs_router)
register_checkout_exception_handlers(app)


# ---------------------------------------------------------------------------
# Health / root
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    return JSONResponse(content={"status": "ok", "domains": {"checkout": {"name": checkout.name}}})
