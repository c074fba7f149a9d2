"""Application tests for the checkout orchestrator."""

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

import pytest
from checkout.domain import checkout
from checkout.errors import InsufficientStockError, JobEnqueueError, PersistenceError, StockDecrementError
from checkout.jobs.job import JobStatus, JobType, ScheduledJob
from checkout.jobs.queue import jobs_for_order
from checkout.orchestrator import CheckoutOrchestrator, place_order
from checkout.order.order import ContactInfo, CourierStatus, Order, OrderStatus
from checkout.order.repository import OrderRepository
from checkout.stock.stock import StockRecord
from protean import current_domain
from protean.exceptions import ValidationError


def _available(product_id, variant_id=None):
    return current_domain.repository_for(StockRecord).find(product_id, variant_id).available


def _stored(result):
    return current_domain.repository_for(Order).get(result.internal_order_id)


class TestHomeDelivery:
    @pytest.fixture(autouse=True)
    def _stock(self, stock):
        stock("P1", quantity=3, label="Red Chilli 200g")

    def test_order_persisted_pending(self, make_draft, whatsapp):
        result = place_order(make_draft(items=[{"product_id": "P1", "quantity": 2, "price": 500.0}]))

        assert result.success is True
        assert result.order_id == "DM000001"
        assert result.ref_id == "REF00001"
        order = _stored(result)
        assert order.status == OrderStatus.PENDING.value
        assert len(order.status_history()) == 1
        assert order.courier is None
        assert order.tracking_number is None

    def test_stock_decremented(self, make_draft, whatsapp):
        result = place_order(make_draft(items=[{"product_id": "P1", "quantity": 2, "price": 500.0}]))
        assert _available("P1") == 1
        assert _stored(result).stock_committed is True

    def test_whatsapp_confirmation_sent(self, make_draft, whatsapp):
        place_order(make_draft())
        assert len(whatsapp.sent_messages) == 1
        message = whatsapp.sent_messages[0]
        assert message["to"] == "03001234567"
        assert message["template"] == "order_confirmation"
        assert message["parameters"][1] == "DM000001"

    def test_checkout_complete_job_enqueued(self, make_draft, whatsapp):
        result = place_order(make_draft())
        jobs = jobs_for_order(result.internal_order_id)
        assert len(jobs) == 1
        job = jobs[0]
        assert job.job_type == JobType.CHECKOUT_COMPLETE.value
        assert job.status == JobStatus.PENDING.value
        payload = job.payload_data()
        assert payload["order_id"] == "DM000001"
        assert payload["delivery_method"] == "Home Delivery"
        assert payload["courier"] is None

    def test_orders_get_consecutive_identifiers(self, make_draft, whatsapp):
        first = place_order(make_draft())
        second = place_order(make_draft())
        assert (first.order_id, second.order_id) == ("DM000001", "DM000002")

    def test_variant_label_is_kept_on_line(self, make_draft, whatsapp, stock):
        stock("P2", "V1", quantity=1)
        line = {"product_id": "P2", "variant_id": "V1", "quantity": 1, "price": 90.0, "variant_label": "Large"}
        result = place_order(make_draft(items=[line]))
        item = _stored(result).items[0]
        assert item.label == "Large"
        assert item.price_at_purchase == 90.0


class TestCourierShipping:
    @pytest.fixture(autouse=True)
    def _stock(self, stock):
        stock("P1", quantity=3)

    def test_booking_confirms_order(self, make_draft, courier, whatsapp):
        courier.configure(tracking_number="779000123")
        result = place_order(make_draft(shipping_method="tcs", city="Karachi"))

        order = _stored(result)
        assert order.status == OrderStatus.CONFIRMED.value
        assert order.tracking_number == "779000123"
        assert order.courier.provider == "tcs"
        assert order.courier.status == CourierStatus.CREATED.value
        assert order.courier.consignee_city == "Karachi"

        history = order.status_history()
        assert [h.status for h in history] == ["Pending", "Confirmed"]
        assert "779000123" in history[-1].reason

    def test_booking_uses_order_reference(self, make_draft, courier, whatsapp):
        place_order(make_draft(shipping_method="tcs"))
        assert courier.created[0]["reference"] == "REF00001"

    def test_shipping_method_key_is_case_insensitive(self, make_draft, courier, whatsapp):
        result = place_order(make_draft(shipping_method="TCS"))
        assert _stored(result).status == OrderStatus.CONFIRMED.value

    def test_job_payload_carries_consignment(self, make_draft, courier, whatsapp):
        courier.configure(tracking_number="779000123")
        result = place_order(make_draft(shipping_method="tcs", city="Karachi"))

        payload = jobs_for_order(result.internal_order_id)[0].payload_data()
        assert payload["delivery_method"] == "TCS Express"
        assert payload["courier"]["consignment_number"] == "779000123"
        assert payload["courier"]["is_outside_city"] is True
        assert payload["estimated_delivery"] == "2 business days"

    def test_booking_failure_does_not_block_sale(self, make_draft, courier, whatsapp):
        courier.configure(should_succeed=False, failure_reason="TCS timeout")
        result = place_order(make_draft(shipping_method="tcs"))

        assert result.success is True
        order = _stored(result)
        assert order.status == OrderStatus.PENDING.value
        assert order.courier is None
        assert len(order.status_history()) == 1
        assert _available("P1") == 2

    def test_booking_failure_still_notifies(self, make_draft, courier, whatsapp):
        courier.configure(should_succeed=False)
        result = place_order(make_draft(shipping_method="tcs"))
        assert len(whatsapp.sent_messages) == 1
        assert len(jobs_for_order(result.internal_order_id)) == 1

    def test_booking_without_tracking_leaves_order_pending(self, make_draft, courier, whatsapp):
        courier.configure(return_tracking=False)
        result = place_order(make_draft(shipping_method="tcs"))

        order = _stored(result)
        assert order.status == OrderStatus.PENDING.value
        assert order.courier is None

    def test_unregistered_method_skips_courier(self, make_draft, courier, whatsapp):
        result = place_order(make_draft(shipping_method="pickup"))
        assert courier.created == []
        assert _stored(result).status == OrderStatus.PENDING.value


class TestInsufficientStock:
    def test_rejected_with_line_details(self, make_draft, stock):
        stock("P1", quantity=1, label="Haldi 100g")
        with pytest.raises(InsufficientStockError) as exc:
            place_order(make_draft(items=[{"product_id": "P1", "quantity": 2, "price": 100.0}]))

        assert exc.value.error == "Insufficient stock"
        assert exc.value.details == [
            {"line": 0, "reason": "Insufficient stock for Haldi 100g. Available: 1, Required: 2"}
        ]

    def test_nothing_written(self, make_draft, stock, courier, whatsapp):
        stock("P1", quantity=1)
        with pytest.raises(InsufficientStockError):
            place_order(make_draft(items=[{"product_id": "P1", "quantity": 2, "price": 100.0}], shipping_method="tcs"))

        assert current_domain.repository_for(Order)._dao.query.all().items == []
        assert current_domain.repository_for(ScheduledJob)._dao.query.all().items == []
        assert _available("P1") == 1
        assert courier.created == []
        assert whatsapp.sent_messages == []

    def test_unknown_product_rejected(self, make_draft):
        with pytest.raises(InsufficientStockError) as exc:
            place_order(make_draft(items=[{"product_id": "P404", "quantity": 1, "price": 10.0}]))
        assert exc.value.details == [{"line": 0, "reason": "Product P404 not found"}]


class TestFailureIsolation:
    @pytest.fixture(autouse=True)
    def _stock(self, stock):
        stock("P1", quantity=3)

    def test_empty_items_rejected(self, make_draft):
        draft = make_draft()
        draft["items"] = []
        with pytest.raises(ValidationError):
            place_order(draft)

    def test_identifier_failure_is_persistence_error(self, make_draft):
        with patch("checkout.orchestrator.generate_order_identifiers", side_effect=RuntimeError("db down")):
            with pytest.raises(PersistenceError):
                place_order(make_draft())
        assert _available("P1") == 3

    def test_decrement_failure_still_succeeds(self, make_draft, whatsapp):
        orchestrator = CheckoutOrchestrator()
        with patch.object(orchestrator.ledger, "decrement", side_effect=StockDecrementError("lock timeout")):
            result = orchestrator.place_order(make_draft())

        assert result.success is True
        order = _stored(result)
        assert order.status == OrderStatus.PENDING.value
        assert order.stock_committed is False
        assert _available("P1") == 3
        assert len(jobs_for_order(result.internal_order_id)) == 1

    def test_failed_reread_after_persist_still_succeeds(self, make_draft, whatsapp):
        original_get = OrderRepository.get
        calls = []

        def flaky_get(repo, identifier):
            calls.append(identifier)
            if len(calls) == 2:
                raise RuntimeError("read timeout")
            return original_get(repo, identifier)

        with patch.object(OrderRepository, "get", flaky_get):
            result = place_order(make_draft())

        assert result.success is True
        assert result.order_id == "DM000001"
        assert len(current_domain.repository_for(Order)._dao.query.all().items) == 1
        assert _stored(result).stock_committed is True
        assert _available("P1") == 2
        assert len(jobs_for_order(result.internal_order_id)) == 1

    def test_failed_reread_after_courier_error_still_succeeds(self, make_draft, courier, whatsapp):
        courier.configure(tracking_number="TCS123")
        with (
            patch.object(Order, "attach_courier", side_effect=RuntimeError("snapshot rejected")),
            patch.object(OrderRepository, "get", side_effect=RuntimeError("read timeout")),
        ):
            result = place_order(make_draft(shipping_method="tcs"))

        assert result.success is True
        assert result.order.courier is None
        assert len(current_domain.repository_for(Order)._dao.query.all().items) == 1

    def test_whatsapp_exception_is_swallowed(self, make_draft, whatsapp):
        whatsapp.configure(should_raise=True)
        result = place_order(make_draft())
        assert result.success is True
        assert len(jobs_for_order(result.internal_order_id)) == 1

    def test_missing_phone_skips_whatsapp_only(self, make_draft, whatsapp):
        draft = make_draft(phone=None)
        result = place_order(draft)
        assert whatsapp.sent_messages == []
        assert len(jobs_for_order(result.internal_order_id)) == 1

    def test_enqueue_failure_still_succeeds(self, make_draft, whatsapp):
        with patch("checkout.orchestrator.enqueue_job", side_effect=JobEnqueueError("queue unavailable")):
            result = place_order(make_draft())

        assert result.success is True
        assert jobs_for_order(result.internal_order_id) == []
        assert len(whatsapp.sent_messages) == 1


class TestJobSnapshot:
    def test_payload_does_not_follow_order_edits(self, make_draft, stock, whatsapp):
        stock("P1", quantity=3)
        result = place_order(make_draft())

        repo = current_domain.repository_for(Order)
        order = repo.get(result.internal_order_id)
        order.cancel(changed_by="admin")
        order.contact = ContactInfo(email="changed@example.com")
        repo.add(order)

        payload = jobs_for_order(result.internal_order_id)[0].payload_data()
        assert payload["status"] == "Pending"
        assert payload["email"] == "ayesha@example.com"


class TestConcurrentCheckouts:
    def test_concurrent_checkouts_never_oversell(self, make_draft, stock, whatsapp):
        stock("P1", quantity=5)

        def buy(_):
            with checkout.domain_context():
                try:
                    return place_order(make_draft(items=[{"product_id": "P1", "quantity": 1, "price": 500.0}]))
                except InsufficientStockError:
                    return None

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(buy, range(20)))

        available = _available("P1")
        committed = [result for result in results if result is not None and _stored(result).stock_committed]
        assert available >= 0
        assert len(committed) == 5 - available
        assert len(committed) <= 5
