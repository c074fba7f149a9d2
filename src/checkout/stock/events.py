"""Domain events for the StockRecord aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from checkout.domain import checkout


@checkout.event(part_of="StockRecord")
class StockReceived:
    __version__ = 1

    stock_key = Identifier(required=True)
    quantity = Integer(required=True)
    new_available = Integer(required=True)
    received_at = DateTime(required=True)


@checkout.event(part_of="StockRecord")
class StockDecremented:
    """Units left the sellable pool for an order."""

    __version__ = 1

    stock_key = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_available = Integer(required=True)
    new_available = Integer(required=True)
    decremented_at = DateTime(required=True)


@checkout.event(part_of="StockRecord")
class StockRestored:
    """Units sold to an order went back into the sellable pool."""

    __version__ = 1

    stock_key = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_available = Integer(required=True)
    reason = String()
    restored_at = DateTime(required=True)
