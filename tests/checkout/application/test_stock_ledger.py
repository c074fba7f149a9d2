"""Application tests for the stock ledger: availability, decrement and restore."""

from unittest.mock import patch

import pytest
from checkout.errors import StockDecrementError
from checkout.order.order import Order
from checkout.stock.ledger import StockLedger
from checkout.stock.repository import StockRecordRepository
from checkout.stock.stock import MovementKind, StockMovement, StockRecord
from protean import current_domain


def _persisted_order(items, order_number="DM000001"):
    order = Order.create(
        order_number=order_number,
        ref_number=order_number.replace("DM0", "REF"),
        contact={"email": "ayesha@example.com"},
        shipping_address={"first_name": "Ayesha", "address": "12 Mall Road", "city": "Lahore"},
        items=items,
        subtotal=100.0,
        total=100.0,
        shipping_method="home_delivery",
    )
    current_domain.repository_for(Order).add(order)
    return order


def _available(product_id, variant_id=None):
    return current_domain.repository_for(StockRecord).find(product_id, variant_id).available


class TestCheckAvailability:
    def test_all_lines_available(self, stock):
        stock("P1", quantity=3)
        stock("P2", "V1", quantity=1)
        result = StockLedger().check_availability(
            [
                {"product_id": "P1", "quantity": 3},
                {"product_id": "P2", "variant_id": "V1", "quantity": 1},
            ]
        )
        assert result.available is True
        assert result.errors == []

    def test_shortage_reports_line_index(self, stock):
        stock("P1", quantity=3)
        stock("P2", quantity=1, label="Haldi 100g")
        result = StockLedger().check_availability(
            [
                {"product_id": "P1", "quantity": 1},
                {"product_id": "P2", "quantity": 2},
            ]
        )
        assert result.available is False
        assert result.errors == [{"line": 1, "reason": "Insufficient stock for Haldi 100g. Available: 1, Required: 2"}]

    def test_line_label_overrides_record_label(self, stock):
        stock("P1", quantity=0)
        result = StockLedger().check_availability([{"product_id": "P1", "quantity": 1, "label": "Chilli (Large)"}])
        assert result.errors[0]["reason"].startswith("Insufficient stock for Chilli (Large).")

    def test_untracked_product_is_unavailable(self):
        result = StockLedger().check_availability([{"product_id": "P404", "quantity": 1}])
        assert result.errors == [{"line": 0, "reason": "Product P404 not found"}]

    def test_untracked_variant_is_unavailable(self, stock):
        stock("P1", quantity=5)
        result = StockLedger().check_availability([{"product_id": "P1", "variant_id": "V9", "quantity": 1}])
        assert result.errors == [{"line": 0, "reason": "Variant V9 not found"}]

    def test_duplicate_lines_are_summed(self, stock):
        stock("P1", quantity=3)
        result = StockLedger().check_availability(
            [
                {"product_id": "P1", "quantity": 2},
                {"product_id": "P1", "quantity": 2},
            ]
        )
        assert result.available is False
        assert result.errors[0]["line"] == 0
        assert "Available: 3, Required: 4" in result.errors[0]["reason"]

    def test_check_does_not_change_stock(self, stock):
        stock("P1", quantity=3)
        StockLedger().check_availability([{"product_id": "P1", "quantity": 3}])
        assert _available("P1") == 3


class TestDecrement:
    def test_decrement_applies_every_line(self, stock):
        stock("P1", quantity=3)
        stock("P2", "V1", quantity=4)
        order = _persisted_order(
            [
                {"product_id": "P1", "quantity": 2, "price_at_purchase": 10.0},
                {"product_id": "P2", "variant_id": "V1", "quantity": 4, "price_at_purchase": 20.0},
            ]
        )

        StockLedger().decrement(str(order.id))

        assert _available("P1") == 1
        assert _available("P2", "V1") == 0
        assert current_domain.repository_for(Order).get(order.id).stock_committed is True

    def test_decrement_is_idempotent(self, stock):
        stock("P1", quantity=3)
        order = _persisted_order([{"product_id": "P1", "quantity": 2, "price_at_purchase": 10.0}])

        ledger = StockLedger()
        ledger.decrement(str(order.id))
        ledger.decrement(str(order.id))

        assert _available("P1") == 1

    def test_retry_after_partial_commit_skips_applied_lines(self, stock):
        stock("P1", quantity=3)
        order = _persisted_order([{"product_id": "P1", "quantity": 2, "price_at_purchase": 10.0}])
        current_domain.repository_for(StockRecord).decrement_for_order(str(order.id), order.stock_lines())

        # Stock moved but the order flag was never saved
        StockLedger().decrement(str(order.id))

        assert _available("P1") == 1
        assert current_domain.repository_for(Order).get(order.id).stock_committed is True

    def test_shortfall_writes_nothing(self, stock):
        stock("P1", quantity=3)
        stock("P2", quantity=1)
        order = _persisted_order(
            [
                {"product_id": "P1", "quantity": 2, "price_at_purchase": 10.0},
                {"product_id": "P2", "quantity": 2, "price_at_purchase": 10.0},
            ]
        )

        with pytest.raises(StockDecrementError) as exc:
            StockLedger().decrement(str(order.id))

        assert exc.value.details == [{"line": 1, "reason": "Insufficient stock for P2. Available: 1, Required: 2"}]
        assert _available("P1") == 3
        assert _available("P2") == 1
        assert current_domain.repository_for(Order).get(order.id).stock_committed is False

    def test_missing_order(self):
        with pytest.raises(StockDecrementError):
            StockLedger().decrement("no-such-order")

    def test_second_order_cannot_oversell_after_both_passed_check(self, stock):
        stock("P1", quantity=1)
        lines = [{"product_id": "P1", "quantity": 1, "price_at_purchase": 10.0}]
        ledger = StockLedger()

        # Both shoppers pass the availability check before either decrements
        assert ledger.check_availability([{"product_id": "P1", "quantity": 1}]).available
        assert ledger.check_availability([{"product_id": "P1", "quantity": 1}]).available

        first = _persisted_order(lines, "DM000001")
        second = _persisted_order(lines, "DM000002")
        ledger.decrement(str(first.id))
        with pytest.raises(StockDecrementError):
            ledger.decrement(str(second.id))

        assert _available("P1") == 0

    def test_interrupted_write_is_compensated(self, stock):
        stock("P1", quantity=3)
        stock("P2", quantity=3)
        order = _persisted_order(
            [
                {"product_id": "P1", "quantity": 1, "price_at_purchase": 10.0},
                {"product_id": "P2", "quantity": 1, "price_at_purchase": 10.0},
            ]
        )

        original_add = StockRecordRepository.add
        calls = {"count": 0}

        def flaky_add(self, record):
            calls["count"] += 1
            if calls["count"] == 2:
                raise RuntimeError("connection reset")
            return original_add(self, record)

        with patch.object(StockRecordRepository, "add", flaky_add):
            with pytest.raises(StockDecrementError):
                StockLedger().decrement(str(order.id))

        assert _available("P1") == 3
        assert _available("P2") == 3


class TestRestore:
    def test_restore_returns_units(self, stock):
        stock("P1", quantity=3)
        order = _persisted_order([{"product_id": "P1", "quantity": 2, "price_at_purchase": 10.0}])
        ledger = StockLedger()
        ledger.decrement(str(order.id))

        assert ledger.restore(str(order.id), "Order cancelled") == 2
        assert _available("P1") == 3
        assert current_domain.repository_for(Order).get(order.id).stock_committed is False

    def test_restore_twice_is_noop(self, stock):
        stock("P1", quantity=3)
        order = _persisted_order([{"product_id": "P1", "quantity": 2, "price_at_purchase": 10.0}])
        ledger = StockLedger()
        ledger.decrement(str(order.id))
        ledger.restore(str(order.id))

        assert ledger.restore(str(order.id)) == 0
        assert _available("P1") == 3

    def test_restore_uncommitted_order_is_noop(self, stock):
        stock("P1", quantity=3)
        order = _persisted_order([{"product_id": "P1", "quantity": 2, "price_at_purchase": 10.0}])
        assert StockLedger().restore(str(order.id)) == 0
        assert _available("P1") == 3


class TestReceive:
    def test_receive_creates_record(self):
        record = StockLedger().receive("P1", None, 5, "Red Chilli 200g")
        assert record.available == 5
        assert _available("P1") == 5

    def test_receive_tops_up_existing_record(self, stock):
        stock("P1", quantity=2)
        StockLedger().receive("P1", None, 3)
        assert _available("P1") == 5

    def test_receive_zero_only_relabels(self, stock):
        stock("P1", quantity=2, label="Old")
        record = StockLedger().receive("P1", None, 0, "New")
        assert record.label == "New"
        assert record.available == 2


class TestMovementLog:
    def _movements(self):
        return current_domain.repository_for(StockMovement)

    def test_every_change_is_logged(self, stock):
        stock("P1", quantity=3)
        order = _persisted_order([{"product_id": "P1", "quantity": 2, "price_at_purchase": 10.0}])
        ledger = StockLedger()
        ledger.decrement(str(order.id))
        ledger.restore(str(order.id), reason="Order cancelled")

        kinds = [movement.kind for movement in self._movements().history("P1")]
        assert kinds == [MovementKind.RECEIVED.value, MovementKind.SALE.value, MovementKind.RESTORE.value]

    def test_held_tracks_each_order_separately(self, stock):
        stock("P1", quantity=5)
        lines = [{"product_id": "P1", "quantity": 2, "price_at_purchase": 10.0}]
        first = _persisted_order(lines, "DM000001")
        second = _persisted_order(lines, "DM000002")
        ledger = StockLedger()
        ledger.decrement(str(first.id))
        ledger.decrement(str(second.id))
        ledger.restore(str(first.id))

        assert self._movements().held(str(first.id), "P1") == 0
        assert self._movements().held(str(second.id), "P1") == 2
        assert _available("P1") == 3

    def test_interrupted_movement_log_still_rolls_back(self, stock):
        stock("P1", quantity=3)
        order = _persisted_order([{"product_id": "P1", "quantity": 2, "price_at_purchase": 10.0}])

        with patch.object(type(self._movements()), "add", side_effect=RuntimeError("log unavailable")):
            with pytest.raises(StockDecrementError):
                StockLedger().decrement(str(order.id))

        assert _available("P1") == 3
        assert self._movements().held(str(order.id), "P1") == 0
