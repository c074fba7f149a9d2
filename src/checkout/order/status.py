"""ChangeOrderStatus command + handler: admin-driven status transitions.

Cancelling an order whose stock was decremented puts the units back, and a
live courier consignment is cancelled with the provider. The customer gets a
best-effort WhatsApp status update; a failed message never fails the
transition.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from checkout.courier import resolve_provider
from checkout.domain import checkout
from checkout.errors import CourierError
from checkout.messaging.notify import send_status_update
from checkout.order.order import SYSTEM_ACTOR, CourierStatus, Order, OrderStatus
from checkout.stock.ledger import StockLedger

logger = structlog.get_logger(__name__)

_SETTLED_COURIER_STATUSES = {
    CourierStatus.DELIVERED.value,
    CourierStatus.FAILED.value,
    CourierStatus.CANCELLED.value,
}


@checkout.command(part_of="Order")
class ChangeOrderStatus:
    order_id = Identifier(required=True)  # order id, ref id or internal id
    status = String(required=True, choices=OrderStatus)
    changed_by = String(default=SYSTEM_ACTOR)
    reason = String(max_length=500)


def _cancel_consignment(order: Order, reason: str | None, changed_by: str) -> None:
    """Cancel the order's consignment with its courier. Failures land in the courier error log."""
    courier = order.courier
    if courier is None or courier.status in _SETTLED_COURIER_STATUSES:
        return

    provider = resolve_provider(courier.provider)
    if provider is None:
        order.record_courier_error(f"Cancel failed: no courier provider registered for {courier.provider}")
        return

    try:
        cancelled = provider.cancel(courier.consignment_number)
    except CourierError as e:
        order.record_courier_error(f"Cancel failed: {e.message}")
        logger.warning("Courier cancellation failed", order_id=order.order_number, error=e.message)
        return

    if not cancelled:
        order.record_courier_error("Cancel failed: courier refused the cancellation")
        logger.warning("Courier refused cancellation", order_id=order.order_number)
        return

    order.record_courier_status(
        CourierStatus.CANCELLED.value,
        description=f"Order cancelled: {reason or 'No reason provided'}",
        updated_by=changed_by,
    )
    logger.info(
        "Courier consignment cancelled",
        order_id=order.order_number,
        consignment_number=courier.consignment_number,
    )


@checkout.command_handler(part_of=Order)
class ChangeOrderStatusHandler:
    @handle(ChangeOrderStatus)
    def change_status(self, command: ChangeOrderStatus) -> str:
        repo = current_domain.repository_for(Order)
        order = repo.lookup(str(command.order_id))

        previous = order.status
        changed_by = command.changed_by or SYSTEM_ACTOR
        order.transition_to(command.status, changed_by, command.reason)

        if command.status == OrderStatus.CANCELLED.value:
            StockLedger().restore_for(order, reason=command.reason or "Order cancelled")
            _cancel_consignment(order, command.reason, changed_by)

        repo.add(order)
        logger.info(
            "Order status changed",
            order_id=order.order_number,
            previous_status=previous,
            new_status=order.status,
            changed_by=changed_by,
        )

        try:
            send_status_update(order)
        except Exception as e:
            logger.warning("Order status update message failed", order_id=order.order_number, error=str(e))

        return str(order.id)
