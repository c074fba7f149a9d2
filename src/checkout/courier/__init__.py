"""Courier provider registry: maps a shipping method key to a provider.

Keys without a provider (``home_delivery``, ``pickup``) are valid and resolve
to ``None``: the order is delivered without a courier integration. New
couriers register under their own key at startup.

The ``tcs`` provider is the fake adapter unless ``TCS_ADAPTER=http``.
"""

import os

from checkout.courier.port import CourierProvider

_providers: dict[str, CourierProvider] = {}
_defaults_loaded = False


def _load_defaults() -> None:
    global _defaults_loaded
    if _defaults_loaded:
        return
    _defaults_loaded = True

    adapter = os.environ.get("TCS_ADAPTER", "fake")
    if "tcs" in _providers:
        return
    if adapter == "fake":
        from checkout.courier.fake_adapter import FakeCourier

        _providers["tcs"] = FakeCourier(name="tcs", origin_city=os.environ.get("TCS_ORIGIN_CITY", "Lahore"))
    elif adapter == "http":
        from checkout.courier.tcs import TCSCourier

        _providers["tcs"] = TCSCourier.from_env()
    else:
        raise ValueError(f"Unknown TCS adapter: {adapter}")


def register_provider(key: str, provider: CourierProvider) -> None:
    """Register (or replace) the provider serving ``key``. Keys are case-insensitive."""
    _load_defaults()
    _providers[key.lower()] = provider


def unregister_provider(key: str) -> None:
    _load_defaults()
    _providers.pop(key.lower(), None)


def resolve_provider(shipping_method: str | None) -> CourierProvider | None:
    """Return the provider for ``shipping_method``, or None when there is none."""
    _load_defaults()
    if not shipping_method:
        return None
    return _providers.get(shipping_method.lower())


def reset_providers() -> None:
    """Reset the registry to its defaults (useful for testing)."""
    global _defaults_loaded
    _providers.clear()
    _defaults_loaded = False
