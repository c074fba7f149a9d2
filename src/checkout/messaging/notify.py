"""Direct customer notifications sent outside the job queue."""

import structlog

from checkout.errors import NotificationError
from checkout.messaging import WHATSAPP, get_channel
from checkout.messaging.templates import (
    ORDER_CONFIRMATION_TEMPLATE,
    ORDER_STATUS_TEMPLATE,
    OrderConfirmationTemplate,
    OrderStatusTemplate,
)

logger = structlog.get_logger(__name__)


def _send_whatsapp(to: str | None, template: str, parameters: list[str]) -> dict:
    if not to:
        raise NotificationError("No phone number to message")
    result = get_channel(WHATSAPP).send_template(to, template, parameters)
    if result.get("status") != "sent":
        raise NotificationError(result.get("error", "Unknown dispatch error"))
    return result


def send_order_confirmation(payload: dict) -> dict:
    """Send the WhatsApp order confirmation.

    Raises:
        NotificationError: when there is no phone or the channel reports failure.
    """
    result = _send_whatsapp(
        payload.get("phone"),
        ORDER_CONFIRMATION_TEMPLATE,
        OrderConfirmationTemplate.whatsapp_parameters(payload),
    )
    logger.info("Order confirmation sent", order_id=payload.get("order_id"), message_id=result.get("message_id"))
    return result


def send_status_update(order) -> dict:
    phone = order.contact.phone if order.contact and order.contact.phone else order.shipping_address.phone
    return _send_whatsapp(
        phone,
        ORDER_STATUS_TEMPLATE,
        OrderStatusTemplate.whatsapp_parameters(
            order.shipping_address.full_name,
            order.order_number,
            order.status,
            order.tracking_number,
        ),
    )
