import pytest
from checkout.courier import register_provider, reset_providers
from checkout.courier.fake_adapter import FakeCourier
from checkout.messaging import EMAIL, WHATSAPP, reset_channels, set_channel
from checkout.messaging.fake_email import FakeEmailAdapter
from checkout.messaging.fake_whatsapp import FakeWhatsAppAdapter
from checkout.stock.ledger import StockLedger
from checkout.utils.db import drop_db, setup_db
from protean import current_domain
from protean.integrations.pytest import DomainFixture


@pytest.fixture(scope="session")
def checkout_bed():
    from checkout.domain import checkout

    bed = DomainFixture(checkout)
    bed.setup()
    setup_db(checkout)
    yield bed
    drop_db(checkout)
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(checkout_bed):
    with checkout_bed.domain_context():
        yield

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()


@pytest.fixture(autouse=True)
def _adapters():
    """Fresh registries for every test."""
    reset_providers()
    reset_channels()
    yield
    reset_providers()
    reset_channels()


# ---------------------------------------------------------------------------
# Adapters
# ---------------------------------------------------------------------------
@pytest.fixture()
def courier():
    provider = FakeCourier(name="tcs", origin_city="Lahore")
    register_provider("tcs", provider)
    return provider


@pytest.fixture()
def whatsapp():
    adapter = FakeWhatsAppAdapter()
    set_channel(WHATSAPP, adapter)
    return adapter


@pytest.fixture()
def email():
    adapter = FakeEmailAdapter()
    set_channel(EMAIL, adapter)
    return adapter


# ---------------------------------------------------------------------------
# Data builders
# ---------------------------------------------------------------------------
@pytest.fixture()
def stock():
    """Receive stock: ``stock("P1", quantity=3)`` or ``stock("P2", "V1", 5)``."""
    ledger = StockLedger()

    def _stock(product_id, variant_id=None, quantity=0, label=None):
        return ledger.receive(product_id, variant_id, quantity, label)

    return _stock


@pytest.fixture()
def make_draft():
    def _make_draft(items=None, shipping_method="home_delivery", city="Lahore", phone="03001234567", **overrides):
        items = items or [{"product_id": "P1", "quantity": 1, "price": 500.0, "label": "Red Chilli 200g"}]
        subtotal = sum(item["price"] * item["quantity"] for item in items)
        shipping_fee = overrides.pop("shipping_fee", 0.0)
        draft = {
            "contact": {"email": "ayesha@example.com", "phone": phone},
            "shipping_address": {
                "first_name": "Ayesha",
                "last_name": "Khan",
                "address": "12 Mall Road",
                "city": city,
                "phone": phone,
            },
            "items": items,
            "subtotal": subtotal,
            "shipping_fee": shipping_fee,
            "total": subtotal + shipping_fee,
            "shipping_method": shipping_method,
        }
        draft.update(overrides)
        return draft

    return _make_draft
