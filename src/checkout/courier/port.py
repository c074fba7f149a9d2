"""Courier provider port: the interface every courier integration implements.

Only ``create``, ``track`` and ``cancel`` touch the network. ``create`` is
not assumed idempotent at the provider, so callers must not retry it
blindly; adapters own whatever retry policy they need.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from checkout.courier.shipment import consignee_name, parcel_weight, product_details
from checkout.order.order import CourierInfo, CourierStatus


@dataclass(frozen=True)
class BookingResult:
    """Outcome of a successful consignment booking."""

    tracking: str | None
    raw: dict = field(default_factory=dict)


@dataclass(frozen=True)
class TrackingResult:
    status: str  # CourierStatus value
    location: str | None = None
    description: str | None = None
    raw: dict = field(default_factory=dict)


class CourierProvider(ABC):
    """Abstract courier provider."""

    name: str = ""
    origin_city: str = ""

    @abstractmethod
    def map_from_order(self, order) -> dict:
        """Build the provider-specific creation payload. Pure, never fails."""
        ...

    @abstractmethod
    def create(self, payload: dict) -> BookingResult:
        """Book a consignment.

        Raises:
            CourierBookingError: when the provider rejects or cannot be reached.
        """
        ...

    @abstractmethod
    def track(self, tracking: str) -> TrackingResult: ...

    @abstractmethod
    def cancel(self, tracking: str) -> bool: ...

    @abstractmethod
    def estimate_days(self, city: str) -> int: ...

    @abstractmethod
    def is_outside_city(self, city: str) -> bool: ...

    def snapshot(self, order, booking: BookingResult) -> CourierInfo:
        """Freeze the consignment as booked, copying consignee details from the order."""
        address = order.shipping_address
        now = datetime.now(UTC)
        return CourierInfo(
            provider=self.name,
            consignment_number=booking.tracking,
            customer_reference_no=order.ref_number,
            consignee_name=consignee_name(address),
            consignee_address=address.address,
            consignee_city=address.city,
            consignee_phone=address.phone or (order.contact.phone if order.contact else None),
            consignee_email=order.contact.email if order.contact else None,
            origin_city=self.origin_city,
            destination_city=address.city,
            weight=parcel_weight(order),
            pieces=len(order.items or []),
            cod_amount=order.total,
            product_details=product_details(order),
            remarks=f"Order #{order.order_number}",
            status=CourierStatus.CREATED.value,
            api_response=json.dumps(booking.raw, default=str),
            api_errors=json.dumps([]),
            estimated_delivery=now + timedelta(days=self.estimate_days(address.city)),
            last_api_call=now,
        )
