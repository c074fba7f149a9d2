"""Shared BDD fixtures and step definitions for the Checkout domain."""

import pytest
from checkout.stock.stock import StockRecord
from protean import current_domain
from pytest_bdd import given, parsers, then


@pytest.fixture()
def outcome():
    """Container for the checkout result or the error it raised."""
    return {"result": None, "exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('"{product_id}" has {quantity:d} units in stock'))
def _(stock, product_id, quantity):
    stock(product_id, quantity=quantity)


@given(parsers.cfparse('the courier will book consignment "{tracking}"'))
def _(courier, tracking):
    courier.configure(tracking_number=tracking)


@given("the courier is down")
def _(courier):
    courier.configure(should_succeed=False, failure_reason="TCS API timeout")


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.re(r'"(?P<product_id>\w+)" has (?P<quantity>\d+) units? left'))
def _(product_id, quantity):
    record = current_domain.repository_for(StockRecord).find(product_id)
    assert record.available == int(quantity)
