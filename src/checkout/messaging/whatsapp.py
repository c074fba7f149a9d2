"""WhatsApp Cloud API adapter.

Sends pre-approved template messages through the Graph API
(``POST {api_url}/{phone_number_id}/messages``). When the access token or
phone number id is missing the adapter reports a failed send rather than
calling out.
"""

import os
import re

import requests
import structlog

from checkout.messaging.port import WhatsAppPort

logger = structlog.get_logger(__name__)

DEFAULT_API_URL = "https://graph.facebook.com/v18.0"


def normalize_phone(phone: str, country_code: str = "92") -> str:
    """Digits only, with the country code replacing a leading trunk zero."""
    digits = re.sub(r"\D", "", phone or "")
    if digits.startswith("00"):
        digits = digits[2:]
    if digits.startswith("0"):
        digits = country_code + digits[1:]
    elif not digits.startswith(country_code):
        digits = country_code + digits
    return digits


class WhatsAppCloudAdapter(WhatsAppPort):
    def __init__(
        self,
        access_token: str,
        phone_number_id: str,
        api_url: str = DEFAULT_API_URL,
        country_code: str = "92",
        language: str = "en",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.access_token = access_token
        self.phone_number_id = phone_number_id
        self.api_url = api_url.rstrip("/")
        self.country_code = country_code
        self.language = language
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_env(cls) -> "WhatsAppCloudAdapter":
        return cls(
            access_token=os.environ.get("WHATSAPP_ACCESS_TOKEN", ""),
            phone_number_id=os.environ.get("WHATSAPP_PHONE_NUMBER_ID", ""),
            api_url=os.environ.get("WHATSAPP_API_URL", DEFAULT_API_URL),
            country_code=os.environ.get("WHATSAPP_COUNTRY_CODE", "92"),
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token and self.phone_number_id)

    def send_template(self, to: str, template: str, parameters: list[str]) -> dict:
        if not self.is_configured:
            logger.warning("WhatsApp credentials not configured", template=template)
            return {"message_id": None, "status": "failed", "error": "WhatsApp not configured"}

        body = {
            "messaging_product": "whatsapp",
            "to": normalize_phone(to, self.country_code),
            "type": "template",
            "template": {
                "name": template,
                "language": {"code": self.language},
                "components": [
                    {
                        "type": "body",
                        "parameters": [{"type": "text", "text": str(value)} for value in parameters],
                    }
                ],
            },
        }
        try:
            response = self.session.post(
                f"{self.api_url}/{self.phone_number_id}/messages",
                json=body,
                headers={"Authorization": f"Bearer {self.access_token}"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as exc:
            logger.error("WhatsApp API request failed", template=template, error=str(exc))
            return {"message_id": None, "status": "failed", "error": str(exc)}

        messages = data.get("messages") or [{}]
        return {"message_id": messages[0].get("id"), "status": "sent"}
