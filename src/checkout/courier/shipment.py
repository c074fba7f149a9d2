"""Parcel details derived from an order, shared by courier adapters."""

WEIGHT_PER_LINE_KG = 0.5
MINIMUM_WEIGHT_KG = 1.0


def parcel_weight(order) -> float:
    return max(MINIMUM_WEIGHT_KG, len(order.items or []) * WEIGHT_PER_LINE_KG)


def product_details(order) -> str:
    return ", ".join(f"{item.label or item.product_id} ({item.quantity} pcs)" for item in (order.items or []))


def consignee_name(address) -> str:
    return " ".join(part for part in (address.first_name, address.last_name) if part)
