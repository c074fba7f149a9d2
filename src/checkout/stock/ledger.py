"""Stock ledger: the stock operations the checkout pipeline relies on."""

from dataclasses import dataclass, field

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from checkout.domain import logger
from checkout.errors import StockDecrementError
from checkout.order.order import Order
from checkout.stock.repository import group_lines, missing_reason, shortage_reason
from checkout.stock.stock import StockRecord


@dataclass
class StockAvailability:
    available: bool
    errors: list[dict] = field(default_factory=list)


class StockLedger:
    def check_availability(self, lines: list[dict]) -> StockAvailability:
        """Report whether every line can be served right now.

        Lines for the same product/variant are summed before comparison and
        all records are read in one consistent snapshot.
        """
        grouped = group_lines(lines)
        records = current_domain.repository_for(StockRecord).snapshot(grouped.keys())

        errors = []
        for key, line in grouped.items():
            record = records[key]
            if record is None:
                errors.append({"line": line["line"], "reason": missing_reason(line)})
            elif not record.can_fulfil(line["quantity"]):
                errors.append({"line": line["line"], "reason": shortage_reason(record, line)})
        return StockAvailability(available=not errors, errors=errors)

    def decrement(self, order_id: str) -> None:
        """Apply the line items of a persisted order to stock.

        Safe to call again for the same order: already-applied lines are
        skipped. Raises ``StockDecrementError`` on any failure.
        """
        order_repo = current_domain.repository_for(Order)
        try:
            order = order_repo.get(order_id)
        except ObjectNotFoundError as exc:
            raise StockDecrementError(f"Order {order_id} not found") from exc

        if order.stock_committed:
            logger.info("Stock already decremented for order", order_id=order_id)
            return

        current_domain.repository_for(StockRecord).decrement_for_order(str(order.id), order.stock_lines())
        order.mark_stock_committed()
        order_repo.add(order)

    def restore_for(self, order: Order, reason: str | None = None) -> int:
        """Put the order's units back and clear its ``stock_committed`` flag.

        The order is mutated but not saved; callers persist it. Restoring an
        order twice gives nothing back the second time.
        """
        if not order.stock_committed:
            return 0

        keys = group_lines(order.stock_lines()).keys()
        restored = current_domain.repository_for(StockRecord).restore_for_order(str(order.id), keys, reason)
        order.mark_stock_restored()
        logger.info("Stock restored for order", order_id=str(order.id), quantity=restored)
        return restored

    def restore(self, order_id: str, reason: str | None = None) -> int:
        order_repo = current_domain.repository_for(Order)
        order = order_repo.get(order_id)
        restored = self.restore_for(order, reason)
        order_repo.add(order)
        return restored

    def receive(self, product_id: str, variant_id: str | None, quantity: int, label: str | None = None) -> StockRecord:
        """Start tracking a product/variant or add units to an existing record."""
        return current_domain.repository_for(StockRecord).receive(product_id, variant_id, quantity, label)
