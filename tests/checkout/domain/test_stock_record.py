"""Tests for the StockRecord aggregate."""

import pytest
from checkout.stock.events import StockDecremented, StockReceived, StockRestored
from checkout.stock.stock import MovementKind, StockMovement, StockRecord, stock_key
from protean.exceptions import ValidationError


class TestStockKey:
    def test_product_only(self):
        assert stock_key("P1") == "P1"

    def test_product_and_variant(self):
        assert stock_key("P1", "V2") == "P1:V2"


class TestStocking:
    def test_stock_with_quantity(self):
        record = StockRecord.stock("P1", quantity=5, label="Red Chilli 200g")
        assert record.stock_key == "P1"
        assert record.available == 5
        assert record.display_label == "Red Chilli 200g"
        assert isinstance(record._events[-1], StockReceived)

    def test_default_label_mentions_variant(self):
        record = StockRecord.stock("P1", "V1")
        assert record.label == "P1 (V1)"
        assert record.available == 0

    def test_negative_quantity_rejected(self):
        with pytest.raises(ValidationError):
            StockRecord.stock("P1", quantity=-1)

    def test_receive_adds_units(self):
        record = StockRecord.stock("P1", quantity=2)
        record.receive(3)
        assert record.available == 5

    def test_receive_requires_positive_quantity(self):
        record = StockRecord.stock("P1", quantity=2)
        with pytest.raises(ValidationError):
            record.receive(0)


class TestDecrement:
    def test_decrement_reduces_available(self):
        record = StockRecord.stock("P1", quantity=5)
        record.decrement("order-1", 3)
        assert record.available == 2
        event = record._events[-1]
        assert isinstance(event, StockDecremented)
        assert event.previous_available == 5
        assert event.new_available == 2

    def test_decrement_to_zero(self):
        record = StockRecord.stock("P1", quantity=2)
        record.decrement("order-1", 2)
        assert record.available == 0

    def test_cannot_oversell(self):
        record = StockRecord.stock("P1", quantity=1, label="Haldi 100g")
        with pytest.raises(ValidationError) as exc:
            record.decrement("order-1", 2)
        assert exc.value.messages["available"] == ["Insufficient stock for Haldi 100g. Available: 1, Required: 2"]
        assert record.available == 1


class TestRestore:
    def test_restore_puts_units_back(self):
        record = StockRecord.stock("P1", quantity=5)
        record.decrement("order-1", 2)
        assert record.restore("order-1", 2, "Order cancelled") == 2
        assert record.available == 5
        event = record._events[-1]
        assert isinstance(event, StockRestored)
        assert event.order_id == "order-1"
        assert event.reason == "Order cancelled"

    def test_restore_nothing_held_is_noop(self):
        record = StockRecord.stock("P1", quantity=5)
        assert record.restore("order-9", 0) == 0
        assert record.available == 5


class TestStockMovement:
    def test_sale_counts_towards_order(self):
        movement = StockMovement.log("P1", MovementKind.SALE, 2, order_id="order-1")
        assert movement.kind == MovementKind.SALE.value
        assert movement.signed_quantity == 2

    def test_restore_counts_against_order(self):
        assert StockMovement.log("P1", MovementKind.RESTORE, 2, order_id="order-1").signed_quantity == -2

    def test_receipt_belongs_to_no_order(self):
        movement = StockMovement.log("P1", MovementKind.RECEIVED, 5)
        assert movement.order_id is None
        assert movement.signed_quantity == 0
