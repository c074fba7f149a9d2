"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from checkout.domain import checkout


@checkout.event(part_of="Order")
class OrderPlaced:
    """A shopper completed checkout and the order was recorded as Pending."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    ref_number = String(required=True)
    shipping_method = String(required=True)
    items = Text(required=True)  # JSON: list of line dicts
    item_count = Integer(required=True)
    subtotal = Float(required=True)
    shipping_fee = Float()
    total = Float(required=True)
    placed_at = DateTime(required=True)


@checkout.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    changed_by = String(required=True)
    reason = String()
    changed_at = DateTime(required=True)


@checkout.event(part_of="Order")
class CourierAttached:
    """A courier consignment was booked for the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    provider = String(required=True)
    consignment_number = String(required=True)
    attached_at = DateTime(required=True)


@checkout.event(part_of="Order")
class CourierTrackingUpdated:
    __version__ = 1

    order_id = Identifier(required=True)
    consignment_number = String(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    location = String()
    occurred_at = DateTime(required=True)
