from checkout.api.errors import register_checkout_exception_handlers
from checkout.api.routes import checkout_router, jobs_router, order_router, stock_router

__all__ = [
    "checkout_router",
    "jobs_router",
    "order_router",
    "stock_router",
    "register_checkout_exception_handlers",
]
