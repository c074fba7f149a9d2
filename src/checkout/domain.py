"""Checkout bounded context: order placement through fulfillment hand-off.

Covers the stock ledger, the Order aggregate with its status history and
courier snapshot, courier provider integrations, customer messaging and the
scheduled job queue that backs post-checkout notifications.
"""

import structlog
from protean.domain import Domain

checkout = Domain(name="checkout")

logger = structlog.get_logger(__name__)
