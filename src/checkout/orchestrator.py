"""Checkout orchestrator: turns a checkout request into a persisted order.

Steps run strictly in order, each committing on its own:

    VALIDATING → RESERVING_STOCK → PERSISTED(PENDING) → [COURIER_ATTEMPTED]
        → PERSISTED(CONFIRMED | PENDING) → NOTIFIED

Only a stock shortage (before anything is written) or a failure to write the
order is reported to the shopper. Once the order exists the sale stands:
stock decrement, courier booking, the direct message and the job enqueue
can each fail, and each failure is logged and absorbed. There is no
automatic rollback. An order whose decrement failed stays PENDING with
``stock_committed`` false for reconciliation.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from checkout.courier import resolve_provider
from checkout.errors import InsufficientStockError, JobEnqueueError, PersistenceError
from checkout.jobs.job import JobType
from checkout.jobs.payloads import build_order_confirmation_payload
from checkout.jobs.queue import enqueue_job
from checkout.messaging.notify import send_order_confirmation
from checkout.order.identifiers import generate_order_identifiers
from checkout.order.order import Order
from checkout.stock.ledger import StockLedger
from checkout.utils.logging import order_log_context

logger = structlog.get_logger(__name__)


@dataclass
class CheckoutResult:
    success: bool
    order_id: str
    ref_id: str
    internal_order_id: str
    order: Order


def _order_items(draft_items: list[dict]) -> list[dict]:
    return [
        {
            "product_id": item["product_id"],
            "variant_id": item.get("variant_id"),
            "quantity": item["quantity"],
            "price_at_purchase": item["price"],
            "label": item.get("label") or item.get("variant_label"),
            "image": item.get("image"),
        }
        for item in draft_items
    ]


class CheckoutOrchestrator:
    def __init__(self, ledger: StockLedger | None = None):
        self.ledger = ledger or StockLedger()

    def place_order(self, draft: dict) -> CheckoutResult:
        """Run the checkout pipeline for ``draft``.

        ``draft`` carries contact, shipping_address, optional billing_address,
        items (product_id, variant_id, quantity, price, label, image),
        subtotal, shipping_fee, total, shipping_method, and optional user_id
        and session_id. Amounts are taken as given.

        Raises:
            InsufficientStockError: a line cannot be served; nothing was written.
            ValidationError: the draft does not describe a valid order.
            PersistenceError: the order could not be stored.
        """
        items = _order_items(draft.get("items") or [])
        if not items:
            raise ValidationError({"items": ["An order must contain at least one item"]})

        # VALIDATING
        availability = self.ledger.check_availability(
            [
                {
                    "product_id": item["product_id"],
                    "variant_id": item["variant_id"],
                    "quantity": item["quantity"],
                    "label": item["label"],
                }
                for item in items
            ]
        )
        if not availability.available:
            logger.warning("Checkout rejected for insufficient stock", errors=availability.errors)
            raise InsufficientStockError(details=availability.errors)

        # RESERVING_STOCK: identifiers and the PENDING order
        order = self._persist_order(draft, items)
        with order_log_context(order_id=order.order_number, ref_id=order.ref_number):
            logger.info("Order created", internal_order_id=str(order.id), total=order.total)

            order = self._decrement_stock(order)

            # COURIER_ATTEMPTED
            provider = resolve_provider(order.shipping_method)
            if provider is not None:
                order = self._book_courier(order, provider)

            # NOTIFIED
            payload = build_order_confirmation_payload(order, provider)
            self._notify(payload)
            self._enqueue_confirmation(order, payload)

        return CheckoutResult(
            success=True,
            order_id=order.order_number,
            ref_id=order.ref_number,
            internal_order_id=str(order.id),
            order=order,
        )

    # -------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------
    def _persist_order(self, draft: dict, items: list[dict]) -> Order:
        try:
            identifiers = generate_order_identifiers()
        except Exception as exc:
            logger.error("Order identifiers could not be allocated", error=str(exc))
            raise PersistenceError(str(exc)) from exc

        try:
            order = Order.create(
                order_number=identifiers.order_id,
                ref_number=identifiers.ref_id,
                contact=draft["contact"],
                shipping_address=draft["shipping_address"],
                billing_address=draft.get("billing_address"),
                items=items,
                subtotal=draft["subtotal"],
                shipping_fee=draft.get("shipping_fee") or 0.0,
                total=draft["total"],
                shipping_method=draft["shipping_method"],
                user_id=draft.get("user_id"),
                session_id=draft.get("session_id"),
                order_type=draft.get("order_type"),
            )
        except KeyError as exc:
            raise ValidationError({str(exc.args[0]): ["is required"]}) from exc

        try:
            current_domain.repository_for(Order).add(order)
        except Exception as exc:
            logger.error("Order could not be persisted", order_id=order.order_number, error=str(exc))
            raise PersistenceError(str(exc)) from exc
        return order

    def _reload(self, order: Order) -> Order:
        """Fetch the stored order, falling back to ``order`` when the read fails."""
        try:
            return current_domain.repository_for(Order).get(order.id)
        except Exception as e:
            logger.error("Order could not be re-read after persisting, continuing with local copy", error=str(e))
            return order

    def _decrement_stock(self, order: Order) -> Order:
        try:
            self.ledger.decrement(str(order.id))
        except Exception as e:
            logger.error(
                "Stock decrement failed after order creation, order left pending for reconciliation",
                error=str(e),
                details=getattr(e, "details", None),
            )
        # The ledger saved its own copy of the order
        return self._reload(order)

    def _book_courier(self, order: Order, provider) -> Order:
        try:
            booking = provider.create(provider.map_from_order(order))
        except Exception as e:
            logger.warning("Courier booking failed, continuing without courier", provider=provider.name, error=str(e))
            return order

        if not booking.tracking:
            logger.warning("Courier booking returned no tracking number", provider=provider.name)
            return order

        try:
            order.attach_courier(provider.snapshot(order, booking))
            current_domain.repository_for(Order).add(order)
        except Exception as e:
            logger.error(
                "Courier booked but not recorded on the order",
                provider=provider.name,
                consignment_number=booking.tracking,
                error=str(e),
            )
            return self._reload(order)

        logger.info("Courier booked", provider=provider.name, consignment_number=booking.tracking)
        return order

    def _notify(self, payload: dict) -> None:
        try:
            send_order_confirmation(payload)
        except Exception as e:
            logger.warning("Direct order confirmation failed", error=str(e))

    def _enqueue_confirmation(self, order: Order, payload: dict) -> None:
        try:
            job = enqueue_job(JobType.CHECKOUT_COMPLETE.value, payload, order_id=str(order.id))
        except JobEnqueueError as e:
            logger.error("Checkout complete job could not be enqueued, customer will not be emailed", error=str(e))
            return
        logger.info("Checkout complete job enqueued", job_id=str(job.id))


def place_order(draft: dict) -> CheckoutResult:
    return CheckoutOrchestrator().place_order(draft)
