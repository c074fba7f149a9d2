"""Stock record repository with an atomic compare-and-decrement."""

import threading
from collections import OrderedDict

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from checkout.domain import checkout, logger
from checkout.errors import StockDecrementError
from checkout.stock.stock import MovementKind, StockMovement, StockRecord, stock_key


def group_lines(lines: list[dict]) -> "OrderedDict[str, dict]":
    """Sum quantities per stock record, keeping first-seen order and labels."""
    grouped: OrderedDict[str, dict] = OrderedDict()
    for index, line in enumerate(lines):
        key = stock_key(line["product_id"], line.get("variant_id"))
        if key not in grouped:
            grouped[key] = {
                "line": index,
                "product_id": line["product_id"],
                "variant_id": line.get("variant_id"),
                "label": line.get("label"),
                "quantity": 0,
            }
        grouped[key]["quantity"] += int(line["quantity"])
    return grouped


def missing_reason(line: dict) -> str:
    if line.get("variant_id"):
        return f"Variant {line['variant_id']} not found"
    return f"Product {line['product_id']} not found"


def shortage_reason(record: StockRecord, line: dict) -> str:
    label = line.get("label") or record.display_label
    return f"Insufficient stock for {label}. Available: {record.available}, Required: {line['quantity']}"


@checkout.repository(part_of=StockMovement)
class StockMovementRepository:
    def held(self, order_id: str, key: str) -> int:
        """Net units ``order_id`` currently holds on the record ``key``."""
        movements = self._dao.query.filter(order_id=str(order_id), stock_key=key).all().items
        return sum(movement.signed_quantity for movement in movements)

    def history(self, key: str) -> list[StockMovement]:
        return self._dao.query.filter(stock_key=key).order_by("recorded_at").all().items


@checkout.repository(part_of=StockRecord)
class StockRecordRepository:
    # Serialises every read-check-write on stock in this process
    _lock = threading.RLock()

    @property
    def movements(self) -> StockMovementRepository:
        return current_domain.repository_for(StockMovement)

    def find(self, product_id: str, variant_id: str | None = None) -> StockRecord | None:
        try:
            return self.get(stock_key(product_id, variant_id))
        except ObjectNotFoundError:
            return None

    def snapshot(self, keys) -> dict:
        """Load several records under the lock so the reads are mutually consistent."""
        with self._lock:
            records = {}
            for key in keys:
                try:
                    records[key] = self.get(key)
                except ObjectNotFoundError:
                    records[key] = None
            return records

    def decrement_for_order(self, order_id: str, lines: list[dict]) -> list[str]:
        """Check and decrement every line for ``order_id`` as one unit.

        Availability is re-checked inside the lock that guards the writes.
        Lines this order already holds are skipped, so a retry never
        decrements twice. If any line falls short nothing is written.
        Returns the stock keys that were decremented by this call.
        """
        grouped = group_lines(lines)
        with self._lock:
            records = self.snapshot(grouped.keys())

            failures = []
            pending = []
            for key, line in grouped.items():
                record = records[key]
                if record is None:
                    failures.append({"line": line["line"], "reason": missing_reason(line)})
                elif self.movements.held(order_id, key) > 0:
                    continue
                elif not record.can_fulfil(line["quantity"]):
                    failures.append({"line": line["line"], "reason": shortage_reason(record, line)})
                else:
                    pending.append((record, line["quantity"]))

            if failures:
                raise StockDecrementError(details=failures)

            applied = []
            try:
                for record, quantity in pending:
                    record.decrement(order_id, quantity)
                    self.add(record)
                    applied.append((record.stock_key, quantity))
                    self.movements.add(StockMovement.log(record.stock_key, MovementKind.SALE, quantity, order_id))
            except Exception as exc:
                logger.error(
                    "Stock decrement interrupted, restoring applied lines",
                    order_id=order_id,
                    applied=[key for key, _ in applied],
                    error=str(exc),
                )
                self._roll_back(order_id, applied)
                raise StockDecrementError(str(exc)) from exc
            return [key for key, _ in applied]

    def _roll_back(self, order_id: str, applied: list[tuple[str, int]]) -> None:
        """Return units taken by an interrupted decrement, whether or not their movement was logged."""
        for key, quantity in applied:
            record = self.get(key)
            record.restore(order_id, quantity, reason="Decrement rolled back")
            self.add(record)
            if self.movements.held(order_id, key) > 0:
                self.movements.add(StockMovement.log(key, MovementKind.RESTORE, quantity, order_id))

    def restore_for_order(self, order_id: str, keys, reason: str | None = None) -> int:
        """Give back whatever ``order_id`` holds on ``keys``. Returns units restored."""
        restored = 0
        with self._lock:
            for key in keys:
                held = self.movements.held(order_id, key)
                if held <= 0:
                    continue
                try:
                    record = self.get(key)
                except ObjectNotFoundError:
                    continue
                record.restore(order_id, held, reason)
                self.add(record)
                self.movements.add(StockMovement.log(key, MovementKind.RESTORE, held, order_id))
                restored += held
        return restored

    def receive(self, product_id: str, variant_id: str | None, quantity: int, label: str | None = None) -> StockRecord:
        with self._lock:
            record = self.find(product_id, variant_id)
            if record is None:
                record = StockRecord.stock(product_id, variant_id, quantity=quantity, label=label)
            else:
                if label:
                    record.label = label
                if quantity:
                    record.receive(quantity)
            self.add(record)
            if quantity:
                self.movements.add(StockMovement.log(record.stock_key, MovementKind.RECEIVED, quantity))
        return record
