"""StockRecord aggregate: sellable quantity for one product or variant.

``available`` never goes negative. Every receipt, sale and restore is logged
as a ``StockMovement``, an append-only aggregate of its own tagged with the
stock key and the order it belongs to. The record stays a fixed size however
many orders draw on it; what an order holds is read back from its own
movements, which is what makes applying the same order twice a no-op.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String

from checkout.domain import checkout
from checkout.stock.events import StockDecremented, StockReceived, StockRestored


class MovementKind(Enum):
    RECEIVED = "Received"
    SALE = "Sale"
    RESTORE = "Restore"


def stock_key(product_id: str, variant_id: str | None = None) -> str:
    """Identity of the stock record a line draws from."""
    return f"{product_id}:{variant_id}" if variant_id else str(product_id)


@checkout.aggregate
class StockMovement:
    stock_key = Identifier(required=True)
    order_id = Identifier()
    kind = String(required=True, max_length=20, choices=MovementKind)
    quantity = Integer(required=True, min_value=1)
    recorded_at = DateTime(required=True)

    @classmethod
    def log(cls, stock_key: str, kind: MovementKind, quantity: int, order_id: str | None = None):
        return cls(
            stock_key=stock_key,
            order_id=order_id,
            kind=kind.value,
            quantity=quantity,
            recorded_at=datetime.now(UTC),
        )

    @property
    def signed_quantity(self) -> int:
        """Units this movement moved into (+) or out of (-) an order's hands."""
        if self.kind == MovementKind.SALE.value:
            return self.quantity
        if self.kind == MovementKind.RESTORE.value:
            return -self.quantity
        return 0


@checkout.aggregate
class StockRecord:
    stock_key = Identifier(identifier=True, required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    label = String(max_length=255)
    available = Integer(default=0, min_value=0)
    updated_at = DateTime()

    @classmethod
    def stock(
        cls,
        product_id: str,
        variant_id: str | None = None,
        quantity: int = 0,
        label: str | None = None,
    ):
        """Start tracking a product (or one of its variants) with ``quantity`` units."""
        if quantity < 0:
            raise ValidationError({"quantity": ["Quantity cannot be negative"]})
        record = cls(
            stock_key=stock_key(product_id, variant_id),
            product_id=product_id,
            variant_id=variant_id,
            label=label or (f"{product_id} ({variant_id})" if variant_id else str(product_id)),
            available=0,
            updated_at=datetime.now(UTC),
        )
        if quantity:
            record.receive(quantity)
        return record

    @property
    def display_label(self) -> str:
        return self.label or str(self.product_id)

    def receive(self, quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        now = datetime.now(UTC)
        self.available = (self.available or 0) + quantity
        self.updated_at = now
        self.raise_(
            StockReceived(
                stock_key=self.stock_key,
                quantity=quantity,
                new_available=self.available,
                received_at=now,
            )
        )

    def can_fulfil(self, quantity: int) -> bool:
        return (self.available or 0) >= quantity

    def decrement(self, order_id: str, quantity: int) -> None:
        """Take ``quantity`` units for ``order_id``; refuses to oversell."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if not self.can_fulfil(quantity):
            raise ValidationError(
                {
                    "available": [
                        f"Insufficient stock for {self.display_label}. "
                        f"Available: {self.available}, Required: {quantity}"
                    ]
                }
            )

        now = datetime.now(UTC)
        previous = self.available
        self.available = previous - quantity
        self.updated_at = now
        self.raise_(
            StockDecremented(
                stock_key=self.stock_key,
                order_id=order_id,
                quantity=quantity,
                previous_available=previous,
                new_available=self.available,
                decremented_at=now,
            )
        )

    def restore(self, order_id: str, quantity: int, reason: str | None = None) -> int:
        """Put back the ``quantity`` units ``order_id`` holds. Returns the units restored."""
        if quantity <= 0:
            return 0

        now = datetime.now(UTC)
        self.available = (self.available or 0) + quantity
        self.updated_at = now
        self.raise_(
            StockRestored(
                stock_key=self.stock_key,
                order_id=order_id,
                quantity=quantity,
                new_available=self.available,
                reason=reason or "",
                restored_at=now,
            )
        )
        return quantity
