"""Messaging channel registry: customer-facing message channels.

Provides singleton access to channel adapters. Fake adapters are used by
default; ``WHATSAPP_ADAPTER=cloud`` switches WhatsApp to the Cloud API and
``EMAIL_ADAPTER=resend`` sends email through Resend.
"""

import os

WHATSAPP = "whatsapp"
EMAIL = "email"

_channel_instances: dict[str, object] = {}


def get_channel(channel_type: str):
    """Return the configured adapter for ``channel_type`` ("whatsapp" or "email")."""
    if channel_type not in _channel_instances:
        if channel_type == WHATSAPP:
            adapter = os.environ.get("WHATSAPP_ADAPTER", "fake")
            if adapter == "fake":
                from checkout.messaging.fake_whatsapp import FakeWhatsAppAdapter

                _channel_instances[channel_type] = FakeWhatsAppAdapter()
            elif adapter == "cloud":
                from checkout.messaging.whatsapp import WhatsAppCloudAdapter

                _channel_instances[channel_type] = WhatsAppCloudAdapter.from_env()
            else:
                raise ValueError(f"Unknown WhatsApp adapter: {adapter}")
        elif channel_type == EMAIL:
            adapter = os.environ.get("EMAIL_ADAPTER", "fake")
            if adapter == "fake":
                from checkout.messaging.fake_email import FakeEmailAdapter

                _channel_instances[channel_type] = FakeEmailAdapter()
            elif adapter == "resend":
                from checkout.messaging.resend import ResendEmailAdapter

                _channel_instances[channel_type] = ResendEmailAdapter.from_env()
            else:
                raise ValueError(f"Unknown email adapter: {adapter}")
        else:
            raise ValueError(f"Unknown channel type: {channel_type}")

    return _channel_instances[channel_type]


def set_channel(channel_type: str, adapter) -> None:
    """Override the adapter for a channel (useful for tests)."""
    _channel_instances[channel_type] = adapter


def reset_channels():
    """Reset all channel singletons (useful for testing)."""
    _channel_instances.clear()
