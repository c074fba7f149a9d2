"""RefreshCourierTracking command + handler: pull the latest courier status.

A new courier status is appended to the order's tracking history. Pickup and
transit move a CONFIRMED order to SHIPPED, and delivery moves it on to
DELIVERED. Provider errors are recorded on the courier snapshot.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier
from protean.utils.globals import current_domain

from checkout.courier import resolve_provider
from checkout.domain import checkout
from checkout.errors import CourierError
from checkout.order.order import CourierStatus, Order, OrderStatus

logger = structlog.get_logger(__name__)

_SHIPPED_COURIER_STATUSES = {
    CourierStatus.PICKED_UP.value,
    CourierStatus.IN_TRANSIT.value,
    CourierStatus.OUT_FOR_DELIVERY.value,
}


@checkout.command(part_of="Order")
class RefreshCourierTracking:
    order_id = Identifier(required=True)


def _advance_order(order: Order, courier_status: str) -> None:
    current = OrderStatus(order.status)
    reason = f"Courier reported {courier_status}"
    if courier_status in _SHIPPED_COURIER_STATUSES and current == OrderStatus.CONFIRMED:
        order.transition_to(OrderStatus.SHIPPED.value, reason=reason)
    elif courier_status == CourierStatus.DELIVERED.value:
        if current == OrderStatus.CONFIRMED:
            order.transition_to(OrderStatus.SHIPPED.value, reason=reason)
        if OrderStatus(order.status) == OrderStatus.SHIPPED:
            order.transition_to(OrderStatus.DELIVERED.value, reason=reason)


@checkout.command_handler(part_of=Order)
class RefreshCourierTrackingHandler:
    @handle(RefreshCourierTracking)
    def refresh(self, command: RefreshCourierTracking) -> dict:
        repo = current_domain.repository_for(Order)
        order = repo.lookup(str(command.order_id))
        if order.courier is None:
            raise ValidationError({"courier": ["Order has no courier consignment"]})

        provider = resolve_provider(order.courier.provider)
        if provider is None:
            raise ValidationError({"courier": [f"No courier provider registered for {order.courier.provider}"]})

        try:
            result = provider.track(order.courier.consignment_number)
        except CourierError as e:
            order.record_courier_error(e.message)
            repo.add(order)
            logger.warning("Courier tracking failed", order_id=order.order_number, error=e.message)
            return {"changed": False, "courier_status": order.courier.status, "error": e.message}

        changed = order.record_courier_status(
            result.status,
            location=result.location,
            description=result.description,
            api_response=result.raw,
        )
        if changed:
            _advance_order(order, result.status)
        repo.add(order)

        return {"changed": changed, "courier_status": order.courier.status, "order_status": order.status}
