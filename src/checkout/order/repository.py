from protean.exceptions import ObjectNotFoundError

from checkout.domain import checkout
from checkout.order.order import Order


@checkout.repository(part_of=Order)
class OrderRepository:
    def find_by_order_number(self, order_number: str) -> Order | None:
        items = self._dao.query.filter(order_number=order_number).all().items
        return items[0] if items else None

    def find_by_ref_number(self, ref_number: str) -> Order | None:
        items = self._dao.query.filter(ref_number=ref_number).all().items
        return items[0] if items else None

    def lookup(self, reference: str) -> Order:
        """Resolve an order from its order id (DM…), ref id (REF…) or internal id."""
        order = self.find_by_order_number(reference) or self.find_by_ref_number(reference)
        if order is not None:
            return order
        try:
            return self.get(reference)
        except ObjectNotFoundError:
            raise ObjectNotFoundError(f"Order `{reference}` does not exist") from None
