"""Fake courier adapter: deterministic courier for testing and development.

Books consignments with generated (or configured) tracking numbers and
records every payload it receives. Can be told to fail by raising, or to
return a booking without a tracking number.
"""

from uuid import uuid4

from checkout.courier.port import BookingResult, CourierProvider, TrackingResult
from checkout.courier.shipment import consignee_name, parcel_weight
from checkout.courier.tcs import delivery_days, is_outside_home_city
from checkout.errors import CourierBookingError, CourierError
from checkout.order.order import CourierStatus


class FakeCourier(CourierProvider):
    """Fake courier that always succeeds by default."""

    def __init__(self, name: str = "tcs", origin_city: str = "Lahore"):
        self.name = name
        self.origin_city = origin_city
        self.should_succeed = True
        self.return_tracking = True
        self.failure_reason = "Courier unavailable"
        self.tracking_number: str | None = None
        self.tracking_status = CourierStatus.IN_TRANSIT.value
        self.created: list[dict] = []
        self.cancelled: list[str] = []

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Courier unavailable",
        tracking_number: str | None = None,
        return_tracking: bool = True,
        tracking_status: str | None = None,
    ):
        """Configure the fake courier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.tracking_number = tracking_number
        self.return_tracking = return_tracking
        if tracking_status:
            self.tracking_status = tracking_status

    def map_from_order(self, order) -> dict:
        return {
            "consignee_name": consignee_name(order.shipping_address),
            "destination_city": order.shipping_address.city,
            "weight": parcel_weight(order),
            "pieces": len(order.items or []),
            "cod_amount": order.total,
            "reference": order.ref_number,
        }

    def create(self, payload: dict) -> BookingResult:
        self.created.append(payload)
        if not self.should_succeed:
            raise CourierBookingError(self.failure_reason)
        if not self.return_tracking:
            return BookingResult(tracking=None, raw={"message": "accepted without CN"})

        tracking = self.tracking_number or f"FAKE-{uuid4().hex[:10].upper()}"
        return BookingResult(tracking=tracking, raw={"CN": tracking})

    def track(self, tracking: str) -> TrackingResult:
        if not self.should_succeed:
            raise CourierError(self.failure_reason)
        return TrackingResult(
            status=self.tracking_status,
            location="Distribution Center",
            description=f"Consignment {tracking} {self.tracking_status.lower()}",
            raw={"CN": tracking, "status": self.tracking_status},
        )

    def cancel(self, tracking: str) -> bool:
        self.cancelled.append(tracking)
        return self.should_succeed

    def estimate_days(self, city: str) -> int:
        return delivery_days(city)

    def is_outside_city(self, city: str) -> bool:
        return is_outside_home_city(city)

    def reset(self):
        """Clear recorded calls and restore default behavior."""
        self.configure()
        self.tracking_status = CourierStatus.IN_TRANSIT.value
        self.created.clear()
        self.cancelled.clear()
