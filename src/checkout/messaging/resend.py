"""Resend email adapter.

Sends transactional email through the Resend HTTP API
(``POST {api_url}/emails``). Without an API key the adapter reports a
failed send, so a queued confirmation job is marked failed rather than done.
"""

import os

import requests
import structlog

from checkout.messaging.port import EmailPort

logger = structlog.get_logger(__name__)

DEFAULT_API_URL = "https://api.resend.com"
DEFAULT_SENDER = "Dehli Mirch <orders@socian.app>"


class ResendEmailAdapter(EmailPort):
    def __init__(
        self,
        api_key: str,
        sender: str = DEFAULT_SENDER,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.sender = sender
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls) -> "ResendEmailAdapter":
        return cls(
            api_key=os.environ.get("RESEND_API_KEY", ""),
            sender=os.environ.get("EMAIL_FROM", DEFAULT_SENDER),
            api_url=os.environ.get("RESEND_API_URL", DEFAULT_API_URL),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def send(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
    ) -> dict:
        if not self.is_configured:
            logger.warning("Resend API key not configured", subject=subject)
            return {"message_id": None, "status": "failed", "error": "Email not configured"}

        message = {"from": self.sender, "to": [to], "subject": subject, "text": body}
        if html_body:
            message["html"] = html_body

        try:
            response = self.session.post(
                f"{self.api_url}/emails",
                json=message,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            logger.error("Resend API request failed", subject=subject, error=str(exc))
            return {"message_id": None, "status": "failed", "error": str(exc)}
        except ValueError:
            logger.error("Resend API returned a non-JSON response", subject=subject)
            return {"message_id": None, "status": "failed", "error": "Resend returned a non-JSON response"}

        return {"message_id": data.get("id"), "status": "sent"}
