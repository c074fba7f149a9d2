"""Self-contained job payloads built from an Order at enqueue time."""

from datetime import UTC, datetime

HOME_DELIVERY_LABEL = "Home Delivery"
HOME_DELIVERY_ESTIMATE = "6-24 hours"


def _delivery_estimate(days: int) -> str:
    return "1 business day" if days == 1 else f"{days} business days"


def build_order_confirmation_payload(order, provider=None) -> dict:
    """Snapshot everything a confirmation message needs, as plain JSON-ready data."""
    address = order.shipping_address
    city = address.city if address else ""

    if provider is not None:
        delivery_method = f"{provider.name.upper()} Express"
        estimated_delivery = _delivery_estimate(provider.estimate_days(city))
    else:
        delivery_method = HOME_DELIVERY_LABEL
        estimated_delivery = HOME_DELIVERY_ESTIMATE

    courier = None
    if order.courier is not None and order.courier.consignment_number:
        courier = {
            "provider": order.courier.provider,
            "consignment_number": order.courier.consignment_number,
            "estimated_delivery": estimated_delivery,
            "is_outside_city": provider.is_outside_city(city) if provider is not None else None,
        }

    return {
        "order_id": order.order_number,
        "ref_id": order.ref_number,
        "internal_order_id": str(order.id),
        "email": order.contact.email if order.contact else None,
        "phone": (order.contact.phone if order.contact else None) or (address.phone if address else None),
        "customer_name": address.full_name if address else "",
        "items": [
            {
                "title": item.label or str(item.product_id),
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "quantity": item.quantity,
                "price_at_purchase": item.price_at_purchase,
                "image": item.image,
            }
            for item in (order.items or [])
        ],
        "subtotal": order.subtotal,
        "shipping_fee": order.shipping_fee,
        "total": order.total,
        "shipping_address": {
            "first_name": address.first_name,
            "last_name": address.last_name,
            "address": address.address,
            "city": address.city,
            "state": address.state,
            "postal_code": address.postal_code,
            "phone": address.phone,
            "country": address.country,
        }
        if address
        else None,
        "shipping_method": order.shipping_method,
        "delivery_method": delivery_method,
        "payment_method": order.payment.method if order.payment else None,
        "order_date": (order.created_at or datetime.now(UTC)).isoformat(),
        "estimated_delivery": estimated_delivery,
        "status": order.status,
        "courier": courier,
    }
