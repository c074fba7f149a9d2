"""Messaging ports: abstract interfaces for customer message channels."""

from abc import ABC, abstractmethod


class WhatsAppPort(ABC):
    """Abstract interface for WhatsApp template message adapters."""

    @abstractmethod
    def send_template(self, to: str, template: str, parameters: list[str]) -> dict:
        """Send an approved template message.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...


class EmailPort(ABC):
    """Abstract interface for email dispatch adapters."""

    @abstractmethod
    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
    ) -> dict:
        """Send an email message.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
