"""FastAPI routes for the Checkout domain: checkout, orders, stock and jobs."""

from fastapi import APIRouter
from protean.utils.globals import current_domain

from checkout.api.schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    ChangeStatusRequest,
    CheckoutRequest,
    CheckoutResponse,
    CourierRefreshResponse,
    OrderResponse,
    ProcessJobsRequest,
    ProcessJobsResponse,
    ReceiveStockRequest,
    ScheduledJobResponse,
    StockResponse,
)
from checkout.courier.tracking import RefreshCourierTracking
from checkout.jobs.queue import jobs_for_order
from checkout.jobs.worker import ProcessDueJobs
from checkout.orchestrator import place_order
from checkout.order.order import Order
from checkout.order.status import ChangeOrderStatus
from checkout.stock.ledger import StockLedger
from checkout.stock.stock import StockRecord, stock_key


def _stock_response(record) -> StockResponse:
    return StockResponse(
        stock_key=str(record.stock_key),
        product_id=str(record.product_id),
        variant_id=str(record.variant_id) if record.variant_id else None,
        label=record.label,
        available=record.available,
    )


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
async def checkout(body: CheckoutRequest) -> CheckoutResponse:
    result = place_order(body.model_dump())
    return CheckoutResponse(
        success=result.success,
        order_id=result.order_id,
        ref_id=result.ref_id,
        order=OrderResponse.from_order(result.order),
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("/{reference}", response_model=OrderResponse)
async def track_order(reference: str) -> OrderResponse:
    """Look an order up by order id, ref id or internal id."""
    order = current_domain.repository_for(Order).lookup(reference)
    return OrderResponse.from_order(order)


@order_router.put("/{reference}/status", response_model=OrderResponse)
async def change_order_status(reference: str, body: ChangeStatusRequest) -> OrderResponse:
    command = ChangeOrderStatus(
        order_id=reference,
        status=body.status,
        changed_by=body.changed_by,
        reason=body.reason,
    )
    order_id = current_domain.process(command, asynchronous=False)
    return OrderResponse.from_order(current_domain.repository_for(Order).get(order_id))


@order_router.post("/{reference}/courier/refresh", response_model=CourierRefreshResponse)
async def refresh_courier_tracking(reference: str) -> CourierRefreshResponse:
    result = current_domain.process(RefreshCourierTracking(order_id=reference), asynchronous=False)
    return CourierRefreshResponse(**result)


@order_router.get("/{reference}/jobs", response_model=list[ScheduledJobResponse])
async def list_order_jobs(reference: str) -> list[ScheduledJobResponse]:
    order = current_domain.repository_for(Order).lookup(reference)
    return [
        ScheduledJobResponse(
            id=str(job.id),
            job_type=job.job_type,
            status=job.status,
            run_at=job.run_at,
            attempts=job.attempts or 0,
            last_error=job.last_error,
            payload=job.payload_data(),
        )
        for job in jobs_for_order(str(order.id))
    ]


# ---------------------------------------------------------------------------
# Stock Router
# ---------------------------------------------------------------------------
stock_router = APIRouter(prefix="/stock", tags=["stock"])


@stock_router.post("", status_code=201, response_model=StockResponse)
async def receive_stock(body: ReceiveStockRequest) -> StockResponse:
    record = StockLedger().receive(body.product_id, body.variant_id, body.quantity, body.label)
    return _stock_response(record)


@stock_router.post("/availability", response_model=AvailabilityResponse)
async def check_availability(body: AvailabilityRequest) -> AvailabilityResponse:
    result = StockLedger().check_availability([line.model_dump() for line in body.items])
    return AvailabilityResponse(available=result.available, errors=result.errors)


@stock_router.get("/{product_id}", response_model=StockResponse)
async def get_stock(product_id: str, variant_id: str | None = None) -> StockResponse:
    record = current_domain.repository_for(StockRecord).get(stock_key(product_id, variant_id))
    return _stock_response(record)


# ---------------------------------------------------------------------------
# Jobs Router
# ---------------------------------------------------------------------------
jobs_router = APIRouter(prefix="/jobs", tags=["jobs"])


@jobs_router.post("/process", response_model=ProcessJobsResponse)
async def process_due_jobs(body: ProcessJobsRequest | None = None) -> ProcessJobsResponse:
    """Run pending jobs whose ``run_at`` has passed. Meant to be called by cron."""
    command = ProcessDueJobs(as_of=body.as_of if body else None)
    result = current_domain.process(command, asynchronous=False)
    return ProcessJobsResponse(**result)
