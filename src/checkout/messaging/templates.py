"""Customer message templates.

Every template renders from a confirmation payload (see
``checkout.jobs.payloads``) and never reads the Order.
"""

ORDER_CONFIRMATION_TEMPLATE = "order_confirmation"
ORDER_STATUS_TEMPLATE = "order_status_update"


def _money(amount) -> str:
    return f"Rs. {float(amount or 0):,.0f}"


class OrderConfirmationTemplate:
    @staticmethod
    def render(payload: dict) -> dict:
        lines = []
        for item in payload.get("items", []):
            line_total = float(item.get("price_at_purchase") or 0) * int(item.get("quantity") or 0)
            lines.append(f"- {item.get('title')} x {item.get('quantity')}: {_money(line_total)}")

        address = payload.get("shipping_address") or {}
        shipping = ", ".join(
            part for part in (address.get("address"), address.get("city"), address.get("country")) if part
        )

        body = [
            f"Hi {payload.get('customer_name') or 'there'},",
            "",
            f"Thank you for your order #{payload.get('order_id')} (reference {payload.get('ref_id')}).",
            "",
            *lines,
            "",
            f"Subtotal: {_money(payload.get('subtotal'))}",
            f"Shipping: {_money(payload.get('shipping_fee'))}",
            f"Total: {_money(payload.get('total'))}",
            "",
            f"Payment: {payload.get('payment_method')}",
            f"Delivery: {payload.get('delivery_method')} to {shipping}",
            f"Estimated delivery: {payload.get('estimated_delivery')}",
        ]
        courier = payload.get("courier")
        if courier:
            body.append(f"Consignment number: {courier.get('consignment_number')}")

        return {
            "subject": f"Order #{payload.get('order_id')} received",
            "body": "\n".join(body),
        }

    @staticmethod
    def whatsapp_parameters(payload: dict) -> list[str]:
        return [
            payload.get("customer_name") or "",
            payload.get("order_id") or "",
            str(payload.get("total")),
            payload.get("delivery_method") or "",
            payload.get("estimated_delivery") or "",
        ]


class OrderStatusTemplate:
    @staticmethod
    def whatsapp_parameters(customer_name: str, order_id: str, status: str, tracking_number: str | None) -> list[str]:
        return [customer_name, order_id, status, tracking_number or "-"]
