"""Order aggregate (CQRS): the durable record of a purchase.

An Order is written once at checkout in PENDING and afterwards changes only
through explicit status transitions. Every transition updates ``status`` and
appends one ``StatusChange`` in the same method, so the history always ends
with the current status.

State Machine:
    PENDING → CONFIRMED → SHIPPED → DELIVERED
    {PENDING, CONFIRMED} → CANCELLED

The courier sub-document is a value object snapshot taken when a consignment
is booked. It is replaced wholesale on every courier update and never reads
back from the live shipping address.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from checkout.domain import checkout
from checkout.order.events import (
    CourierAttached,
    CourierTrackingUpdated,
    OrderPlaced,
    OrderStatusChanged,
)

SYSTEM_ACTOR = "system"


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class OrderType(Enum):
    HOME_DELIVERY = "Home_Delivery"
    PICKUP = "Pickup"


class PaymentMethod(Enum):
    COD = "COD"


class PaymentStatus(Enum):
    PENDING = "Pending"
    PAID = "Paid"
    FAILED = "Failed"


class CourierStatus(Enum):
    PENDING = "Pending"
    CREATED = "Created"
    PICKED_UP = "Picked_Up"
    IN_TRANSIT = "In_Transit"
    OUT_FOR_DELIVERY = "Out_For_Delivery"
    DELIVERED = "Delivered"
    FAILED = "Failed"
    CANCELLED = "Cancelled"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
}

# Courier statuses advance along this line; FAILED and CANCELLED end it
_COURIER_PROGRESSION = [
    CourierStatus.PENDING,
    CourierStatus.CREATED,
    CourierStatus.PICKED_UP,
    CourierStatus.IN_TRANSIT,
    CourierStatus.OUT_FOR_DELIVERY,
    CourierStatus.DELIVERED,
]
_COURIER_TERMINAL = {CourierStatus.DELIVERED, CourierStatus.FAILED, CourierStatus.CANCELLED}

_COURIER_FIELDS = (
    "provider",
    "consignment_number",
    "customer_reference_no",
    "consignee_name",
    "consignee_address",
    "consignee_city",
    "consignee_phone",
    "consignee_email",
    "origin_city",
    "destination_city",
    "weight",
    "pieces",
    "cod_amount",
    "product_details",
    "remarks",
    "status",
    "api_response",
    "api_errors",
    "estimated_delivery",
    "last_api_call",
)


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@checkout.value_object(part_of="Order")
class ContactInfo:
    email = String(required=True, max_length=254)
    phone = String(max_length=30)
    marketing_opt_in = Boolean(default=False)


@checkout.value_object(part_of="Order")
class Address:
    """A delivery or billing address captured at checkout time."""

    first_name = String(required=True, max_length=100)
    last_name = String(max_length=100)
    address = String(required=True, max_length=500)
    city = String(required=True, max_length=100)
    state = String(max_length=100)
    country = String(max_length=100, default="Pakistan")
    postal_code = String(max_length=20)
    phone = String(max_length=30)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


@checkout.value_object(part_of="Order")
class PaymentInfo:
    """Cash-on-delivery payment sub-state."""

    method = String(max_length=20, choices=PaymentMethod, default=PaymentMethod.COD.value)
    status = String(max_length=20, choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    transaction_id = String(max_length=255)


@checkout.value_object(part_of="Order")
class CourierInfo:
    """Courier consignment snapshot taken at booking time.

    Consignee details are copied from the order so later address edits do not
    rewrite what was handed to the courier.
    """

    provider = String(required=True, max_length=50)
    consignment_number = String(max_length=100)
    customer_reference_no = String(max_length=50)
    consignee_name = String(max_length=200)
    consignee_address = String(max_length=500)
    consignee_city = String(max_length=100)
    consignee_phone = String(max_length=30)
    consignee_email = String(max_length=254)
    origin_city = String(max_length=100)
    destination_city = String(max_length=100)
    weight = Float(min_value=0.0)
    pieces = Integer(min_value=0)
    cod_amount = Float(min_value=0.0)
    product_details = Text()
    remarks = String(max_length=500)
    status = String(max_length=50, choices=CourierStatus, default=CourierStatus.PENDING.value)
    api_response = Text()  # JSON: raw provider response
    api_errors = Text()  # JSON: list of error strings
    estimated_delivery = DateTime()
    last_api_call = DateTime()

    @invariant.post
    def booked_consignment_has_number(self):
        if self.status != CourierStatus.PENDING.value and not self.consignment_number:
            raise ValidationError({"consignment_number": ["A booked consignment must carry a consignment number"]})

    def errors(self) -> list[str]:
        return json.loads(self.api_errors) if self.api_errors else []


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@checkout.entity(part_of="Order")
class OrderItem:
    """A purchased line. ``price_at_purchase`` is a snapshot and never repriced."""

    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)
    price_at_purchase = Float(required=True, min_value=0.0)
    label = String(max_length=255)
    image = String(max_length=1000)


@checkout.entity(part_of="Order")
class StatusChange:
    """Append-only audit entry for an order status transition."""

    sequence = Integer(required=True, min_value=1)
    status = String(required=True, choices=OrderStatus)
    changed_at = DateTime(required=True)
    changed_by = String(required=True, max_length=100)
    reason = String(max_length=500)


@checkout.entity(part_of="Order")
class CourierTrackingEntry:
    sequence = Integer(required=True, min_value=1)
    status = String(required=True, max_length=50, choices=CourierStatus)
    location = String(max_length=200)
    description = String(max_length=500)
    occurred_at = DateTime(required=True)
    updated_by = String(max_length=100, default=SYSTEM_ACTOR)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@checkout.aggregate
class Order:
    order_number = String(required=True, max_length=20)
    ref_number = String(required=True, max_length=20)
    user_id = Identifier()
    session_id = String(max_length=255)
    contact = ValueObject(ContactInfo)
    shipping_address = ValueObject(Address)
    billing_address = ValueObject(Address)
    shipping_method = String(required=True, max_length=50)
    order_type = String(max_length=20, choices=OrderType, default=OrderType.HOME_DELIVERY.value)
    payment = ValueObject(PaymentInfo)
    items = HasMany(OrderItem)
    subtotal = Float(required=True, min_value=0.0)
    shipping_fee = Float(default=0.0, min_value=0.0)
    total = Float(required=True, min_value=0.0)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    history = HasMany(StatusChange)
    courier = ValueObject(CourierInfo)
    courier_tracking = HasMany(CourierTrackingEntry)
    tracking_number = String(max_length=100)
    stock_committed = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_number: str,
        ref_number: str,
        contact: dict,
        shipping_address: dict,
        items: list[dict],
        subtotal: float,
        total: float,
        shipping_method: str,
        shipping_fee: float = 0.0,
        billing_address: dict | None = None,
        user_id: str | None = None,
        session_id: str | None = None,
        order_type: str | None = None,
    ):
        """Record a new order in PENDING with its opening history entry.

        Amounts are stored exactly as given. Pricing happens upstream and
        ``total == subtotal + shipping_fee`` is the caller's responsibility.
        """
        if not items:
            raise ValidationError({"items": ["An order must contain at least one item"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            ref_number=ref_number,
            user_id=user_id,
            session_id=session_id,
            contact=ContactInfo(**contact),
            shipping_address=Address(**shipping_address),
            billing_address=Address(**(billing_address or shipping_address)),
            shipping_method=shipping_method,
            order_type=order_type or OrderType.HOME_DELIVERY.value,
            payment=PaymentInfo(),
            subtotal=subtotal,
            shipping_fee=shipping_fee,
            total=total,
            status=OrderStatus.PENDING.value,
            created_at=now,
            updated_at=now,
        )
        for item_data in items:
            order.add_items(OrderItem(**item_data))
        order.add_history(
            StatusChange(
                sequence=1,
                status=OrderStatus.PENDING.value,
                changed_at=now,
                changed_by=SYSTEM_ACTOR,
                reason="Order created",
            )
        )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                ref_number=ref_number,
                shipping_method=shipping_method,
                items=json.dumps(items),
                item_count=len(items),
                subtotal=subtotal,
                shipping_fee=shipping_fee,
                total=total,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def status_history(self) -> list:
        """History entries oldest first."""
        return sorted(self.history or [], key=lambda h: h.sequence)

    def tracking_history(self) -> list:
        return sorted(self.courier_tracking or [], key=lambda t: t.sequence)

    @property
    def latest_status_change(self):
        history = self.status_history()
        return history[-1] if history else None

    def stock_lines(self) -> list[dict]:
        """Line items in the shape the stock ledger consumes."""
        return [
            {
                "product_id": str(item.product_id),
                "variant_id": str(item.variant_id) if item.variant_id else None,
                "quantity": item.quantity,
                "label": item.label,
            }
            for item in (self.items or [])
        ]

    # -------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status: OrderStatus) -> None:
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def transition_to(self, status: str, changed_by: str = SYSTEM_ACTOR, reason: str | None = None) -> None:
        """Move to ``status`` and append exactly one history entry."""
        try:
            target = OrderStatus(status)
        except ValueError:
            raise ValidationError({"status": [f"Unknown order status: {status}"]}) from None
        self._assert_can_transition(target)

        now = datetime.now(UTC)
        previous = self.status
        self.status = target.value
        self.add_history(
            StatusChange(
                sequence=len(self.history or []) + 1,
                status=target.value,
                changed_at=now,
                changed_by=changed_by,
                reason=reason or "",
            )
        )
        self.updated_at = now
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=previous,
                new_status=target.value,
                changed_by=changed_by,
                reason=reason or "",
                changed_at=now,
            )
        )

    def confirm(self, changed_by: str = SYSTEM_ACTOR, reason: str | None = None) -> None:
        self.transition_to(OrderStatus.CONFIRMED.value, changed_by, reason or "Order confirmed")

    def cancel(self, changed_by: str = SYSTEM_ACTOR, reason: str | None = None) -> None:
        self.transition_to(OrderStatus.CANCELLED.value, changed_by, reason or "Order cancelled")

    # -------------------------------------------------------------------
    # Stock bookkeeping
    # -------------------------------------------------------------------
    def mark_stock_committed(self) -> None:
        self.stock_committed = True
        self.updated_at = datetime.now(UTC)

    def mark_stock_restored(self) -> None:
        self.stock_committed = False
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Courier
    # -------------------------------------------------------------------
    def attach_courier(self, courier: CourierInfo, changed_by: str = SYSTEM_ACTOR) -> None:
        """Attach a booked consignment and confirm the order.

        A snapshot without a consignment number is rejected: a booking that
        returned no tracking leaves the order untouched.
        """
        if OrderStatus(self.status) != OrderStatus.PENDING:
            raise ValidationError({"courier": ["A courier can only be attached to a pending order"]})
        if not courier.consignment_number:
            raise ValidationError({"courier": ["Courier booking returned no consignment number"]})

        now = datetime.now(UTC)
        self.courier = courier
        self.tracking_number = courier.consignment_number
        self.add_courier_tracking(
            CourierTrackingEntry(
                sequence=len(self.courier_tracking or []) + 1,
                status=courier.status,
                location=courier.origin_city or "",
                description=f"Order booked with CN {courier.consignment_number}",
                occurred_at=now,
                updated_by=changed_by,
            )
        )
        self.raise_(
            CourierAttached(
                order_id=str(self.id),
                order_number=self.order_number,
                provider=courier.provider,
                consignment_number=courier.consignment_number,
                attached_at=now,
            )
        )
        self.transition_to(
            OrderStatus.CONFIRMED.value,
            changed_by,
            f"Order confirmed, {courier.provider} tracking number {courier.consignment_number}",
        )

    def _replace_courier(self, **changes) -> None:
        values = {name: getattr(self.courier, name) for name in _COURIER_FIELDS}
        values.update(changes)
        self.courier = CourierInfo(**values)

    def record_courier_status(
        self,
        status: str,
        location: str | None = None,
        description: str | None = None,
        updated_by: str = SYSTEM_ACTOR,
        api_response: dict | None = None,
    ) -> bool:
        """Apply a courier status report. Returns False when nothing changed.

        Reports that would move the consignment backwards, or arrive after a
        terminal status, are ignored.
        """
        if self.courier is None:
            raise ValidationError({"courier": ["Order has no courier consignment"]})
        try:
            target = CourierStatus(status)
        except ValueError:
            raise ValidationError({"courier_status": [f"Unknown courier status: {status}"]}) from None

        current = CourierStatus(self.courier.status)
        if target == current or current in _COURIER_TERMINAL:
            return False
        if target in _COURIER_PROGRESSION and _COURIER_PROGRESSION.index(target) < _COURIER_PROGRESSION.index(current):
            return False

        now = datetime.now(UTC)
        changes = {"status": target.value, "last_api_call": now}
        if api_response is not None:
            changes["api_response"] = json.dumps(api_response, default=str)
        self._replace_courier(**changes)
        self.add_courier_tracking(
            CourierTrackingEntry(
                sequence=len(self.courier_tracking or []) + 1,
                status=target.value,
                location=location or "",
                description=description or "",
                occurred_at=now,
                updated_by=updated_by,
            )
        )
        self.updated_at = now
        self.raise_(
            CourierTrackingUpdated(
                order_id=str(self.id),
                consignment_number=self.courier.consignment_number,
                previous_status=current.value,
                new_status=target.value,
                location=location or "",
                occurred_at=now,
            )
        )
        return True

    def record_courier_error(self, error: str) -> None:
        if self.courier is None:
            raise ValidationError({"courier": ["Order has no courier consignment"]})
        errors = self.courier.errors()
        errors.append(error)
        self._replace_courier(api_errors=json.dumps(errors), last_api_call=datetime.now(UTC))
        self.updated_at = datetime.now(UTC)
